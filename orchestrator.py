"""
Job lifecycle for video ad generation.

A job is created as `processing` once its product data and ad script are in
hand, then reaches `completed` or `failed` exactly once through the render
step. Transitions only ever apply to rows still in `processing`.
"""

import os
import uuid
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from config import (
    ASPECT_RATIOS,
    ON_RENDER_FAILURE,
    ON_RENDER_FAILURE_PLACEHOLDER,
    REMOTION_PUBLIC_DIR,
    TTS_SPEED,
    TTS_VOICE,
)
from exceptions import InputError, RenderError
from models import Job, JobStatus
from schemas import AdScript, GenerateVideoRequest, ProductData, VideoResponse, VoiceoverConfig
from services import (
    ProductScraper,
    RemotionRunner,
    VoiceSynthesizer,
    build_narration_text,
    create_placeholder_video,
    get_script_provider,
    stage_audio,
    staged_audio_path,
)
from timeline import build_timeline


def video_url(job_id: str) -> str:
    return f"/api/video/{job_id}/file"


def job_view(job: Job) -> VideoResponse:
    completed = job.status == JobStatus.COMPLETED.value
    return VideoResponse(
        id=job.id,
        status=job.status,
        video_url=video_url(job.id) if completed else None,
        error=job.error if job.status == JobStatus.FAILED.value else None,
        created_at=job.created_at,
    )


def attach_voiceover(script: AdScript, voice: Optional[str] = None, speed: Optional[float] = None) -> AdScript:
    voiceover = VoiceoverConfig(
        enabled=True,
        voice=voice or TTS_VOICE,
        speed=speed or TTS_SPEED,
        text=build_narration_text(script),
    )
    return script.model_copy(update={"voiceover": voiceover})


def _transition(db: Session, job_id: str, status: JobStatus,
                video_path: Optional[str] = None, error: Optional[str] = None) -> bool:
    """Moves a processing job to a terminal status. Returns False if the job was already terminal or gone."""
    updated = (
        db.query(Job)
        .filter(Job.id == job_id, Job.status == JobStatus.PROCESSING.value)
        .update({"status": status.value, "video_path": video_path, "error": error}, synchronize_session=False)
    )
    db.commit()
    if not updated:
        logging.warning(f"Job {job_id} is no longer processing; {status.value} not recorded")
    return bool(updated)


def create_job(db: Session, request: GenerateVideoRequest, schedule_render: Callable[[str], object],
               script_provider=None) -> VideoResponse:
    """
    Resolves product data and the ad script up front, persists the job as
    processing and hands it to `schedule_render`. Extraction or script
    failures produce a job that is already `failed`.
    """
    if request.product_data is None and not (request.url or "").strip():
        raise InputError("Product data is required")
    if request.aspect_ratio not in ASPECT_RATIOS:
        raise InputError(f"Unsupported aspect ratio: {request.aspect_ratio}")

    job_id = str(uuid.uuid4())
    url = request.product_data.url if request.product_data else request.url.strip()
    product = request.product_data

    try:
        if product is None:
            product = ProductScraper(url).run()

        if request.ad_script is not None and request.ad_script.is_complete():
            script = request.ad_script.model_copy(update={"voiceover": None})
        else:
            logging.info("Generating ad script with LLM...")
            script = (script_provider or get_script_provider()).generate(product)

        if request.voiceover_enabled:
            script = attach_voiceover(script, request.voice, request.speed)

    except Exception as e:
        logging.error(f"❌ Could not prepare job {job_id}: {e}")
        job = Job(
            id=job_id,
            url=url,
            product_data=product.model_dump_json(by_alias=True) if product else "{}",
            ad_script="{}",
            aspect_ratio=request.aspect_ratio,
            template=request.template,
            status=JobStatus.FAILED.value,
            error=str(e) or type(e).__name__,
        )
        db.add(job)
        db.commit()
        db.refresh(job)
        return job_view(job)

    job = Job(
        id=job_id,
        url=url,
        product_data=product.model_dump_json(by_alias=True),
        ad_script=script.model_dump_json(by_alias=True, exclude_none=True),
        aspect_ratio=request.aspect_ratio,
        template=request.template,
        status=JobStatus.PROCESSING.value,
    )
    db.add(job)
    db.commit()
    db.refresh(job)

    try:
        schedule_render(job_id)
    except Exception as e:
        logging.error(f"Failed to schedule render for job {job_id}: {e}")
        _transition(db, job_id, JobStatus.FAILED, error="Failed to start the video generation job.")
        db.refresh(job)
        return job_view(job)

    logging.info(f"✨ Job {job_id} submitted for product: '{product.title}'")
    return job_view(job)


def _remove_file(path: Optional[str]):
    if not path:
        return
    try:
        if os.path.exists(path):
            os.remove(path)
    except OSError as e:
        logging.warning(f"Could not delete {path}: {e}")


def render_job(db: Session, job_id: str,
               synthesizer_factory=VoiceSynthesizer,
               runner_factory=RemotionRunner,
               placeholder_factory=create_placeholder_video,
               on_render_failure: str = ON_RENDER_FAILURE,
               public_dir: str = REMOTION_PUBLIC_DIR) -> Optional[str]:
    """
    Background half of the pipeline: voiceover, staging, render, terminal
    status. Returns the video path on success.
    """
    job = db.get(Job, job_id)
    if job is None:
        logging.warning(f"Job {job_id} not found; nothing to render")
        return None
    if job.status != JobStatus.PROCESSING.value:
        logging.info(f"Job {job_id} is already {job.status}; skipping render")
        return None

    asset = None
    staged_path = None
    try:
        logging.info(f"Starting video generation for {job_id}")
        product = ProductData.model_validate_json(job.product_data)
        script = AdScript.model_validate_json(job.ad_script)
        timeline = build_timeline()

        audio_ref = None
        voiceover = script.voiceover
        if voiceover is not None and voiceover.enabled and voiceover.text:
            asset = synthesizer_factory().synthesize(voiceover.text, voiceover.voice, voiceover.speed)
            if asset.duration > timeline.duration_seconds:
                logging.warning(
                    f"⚠️ Narration for job {job_id} runs ~{asset.duration}s but the timeline is "
                    f"{timeline.duration_seconds:.0f}s; audio will be cut off"
                )
            # Known before copying so a partial copy is still cleaned up.
            staged_path = staged_audio_path(job_id, public_dir)
            staged_path, audio_ref = stage_audio(asset, job_id, public_dir)

        props = {
            "productData": product.model_dump(by_alias=True),
            "adScript": script.model_dump(by_alias=True, exclude_none=True),
            "aspectRatio": job.aspect_ratio,
            "template": job.template,
            "audioPath": audio_ref,
            "timeline": timeline.to_props(),
        }
        runner = runner_factory(job_id, props, job.aspect_ratio)
        try:
            video_path = runner.run()
        except RenderError as render_error:
            if on_render_failure != ON_RENDER_FAILURE_PLACEHOLDER:
                raise
            logging.warning(f"⚠️ Render failed for job {job_id}, substituting placeholder: {render_error}")
            try:
                video_path = placeholder_factory(runner.output_path, job.aspect_ratio)
            except RenderError as placeholder_error:
                logging.error(f"Placeholder video failed for job {job_id}: {placeholder_error}")
                raise render_error

        if _transition(db, job_id, JobStatus.COMPLETED, video_path=video_path):
            logging.info(f"✅ Video generation completed for {job_id}. Video at: {video_path}")
        return video_path

    except Exception as e:
        logging.exception(f"❌ Video generation failed for {job_id}: {e}")
        _transition(db, job_id, JobStatus.FAILED, error=str(e) or type(e).__name__)
        return None

    finally:
        if asset is not None:
            asset.remove()
        _remove_file(staged_path)


def get_job(db: Session, job_id: str) -> Optional[Job]:
    return db.get(Job, job_id)


def list_jobs(db: Session) -> List[Job]:
    return db.query(Job).order_by(Job.created_at.desc()).all()


def get_video_file(db: Session, job_id: str) -> Optional[str]:
    """Path of a completed job's video, re-checked on disk since it may have been removed."""
    job = db.get(Job, job_id)
    if job is None or job.status != JobStatus.COMPLETED.value or not job.video_path:
        return None
    return job.video_path if os.path.isfile(job.video_path) else None


def delete_job(db: Session, job_id: str) -> bool:
    job = db.get(Job, job_id)
    if job is None:
        return False

    _remove_file(job.video_path)
    db.delete(job)
    db.commit()
    logging.info(f"🗑️ Deleted job {job_id}")
    return True


def reconcile_stuck_jobs(db: Session, max_age_seconds: int) -> int:
    """
    Fails jobs left in `processing` longer than `max_age_seconds`, e.g. after
    a worker restart mid-render. Only runs when explicitly invoked.
    """
    cutoff = datetime.now(timezone.utc) - timedelta(seconds=max_age_seconds)
    stuck = (
        db.query(Job.id)
        .filter(Job.status == JobStatus.PROCESSING.value, Job.created_at < cutoff)
        .all()
    )
    count = 0
    for (job_id,) in stuck:
        if _transition(db, job_id, JobStatus.FAILED, error="Render interrupted"):
            count += 1
    if count:
        logging.warning(f"Marked {count} stuck job(s) as failed")
    return count
