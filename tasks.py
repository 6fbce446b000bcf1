# tasks.py

import logging

from celery import Celery

from config import CELERY_BROKER_URL, CELERY_RESULT_BACKEND, RENDER_WORKERS
from database import SessionLocal
from orchestrator import render_job

celery = Celery('tasks', broker=CELERY_BROKER_URL, backend=CELERY_RESULT_BACKEND)
celery.conf.update(
    # A fixed pool of render workers; extra jobs wait in the queue.
    worker_concurrency=RENDER_WORKERS,
    worker_prefetch_multiplier=1,
    task_ignore_result=True,
)
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")


@celery.task(name="tasks.render_video_task")
def render_video_task(job_id: str):
    """
    Background task that renders one job and records its terminal status.
    """
    db = SessionLocal()
    try:
        logging.info(f"📝 Worker received job {job_id}")
        render_job(db, job_id)
    finally:
        db.close()
