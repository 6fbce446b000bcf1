"""
Router for the video ad endpoints.
Handles scraping, job submission, job status and video delivery.
"""

import os
import re
import logging
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import FileResponse, StreamingResponse
from sqlalchemy.orm import Session

import orchestrator
from database import get_db
from exceptions import NotFoundError
from schemas import GenerateVideoRequest, MessageResponse, ProductData, ScrapeRequest, VideoResponse
from services import ProductScraper
from tasks import render_video_task


router = APIRouter(tags=["videos"])

CHUNK_SIZE = 64 * 1024
RANGE_PATTERN = re.compile(r"^bytes=(\d*)-(\d*)$")


def parse_range_header(range_header: str, file_size: int) -> Optional[Tuple[int, int]]:
    """
    Parses a single `bytes=start-end` range into an inclusive (start, end)
    pair clamped to the file. Returns None for headers that cannot be
    satisfied, including multi-range requests.
    """
    match = RANGE_PATTERN.match(range_header.strip())
    if not match or file_size <= 0:
        return None
    start_text, end_text = match.groups()
    if not start_text and not end_text:
        return None

    if not start_text:
        # Suffix range: the last N bytes
        length = int(end_text)
        if length == 0:
            return None
        return max(file_size - length, 0), file_size - 1

    start = int(start_text)
    end = int(end_text) if end_text else file_size - 1
    if start >= file_size or end < start:
        return None
    return start, min(end, file_size - 1)


def iter_file(path: str, start: int, length: int):
    with open(path, "rb") as f:
        f.seek(start)
        remaining = length
        while remaining > 0:
            chunk = f.read(min(CHUNK_SIZE, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk


def _require_video_file(db: Session, job_id: str) -> str:
    path = orchestrator.get_video_file(db, job_id)
    if not path:
        raise NotFoundError("Video file not found")
    return path


@router.post("/scrape", response_model=ProductData, response_model_exclude_none=True)
def scrape_product(request: ScrapeRequest):
    """Scrapes product data from a product page URL."""
    logging.info(f"Scraping product from: {request.url}")
    return ProductScraper(request.url).run()


@router.post("/generate-video", response_model=VideoResponse, response_model_exclude_none=True)
def generate_video(request: GenerateVideoRequest, db: Session = Depends(get_db)):
    """
    Creates a job record, queues the render on Celery and returns
    immediately with the job id.
    """
    return orchestrator.create_job(db, request, schedule_render=render_video_task.delay)


@router.get("/video/{job_id}", response_model=VideoResponse, response_model_exclude_none=True)
def get_video(job_id: str, db: Session = Depends(get_db)):
    job = orchestrator.get_job(db, job_id)
    if not job:
        raise NotFoundError("Video not found")
    return orchestrator.job_view(job)


@router.get("/videos", response_model=List[VideoResponse], response_model_exclude_none=True)
def get_all_videos(db: Session = Depends(get_db)):
    return [orchestrator.job_view(job) for job in orchestrator.list_jobs(db)]


@router.get("/video/{job_id}/download")
def download_video(job_id: str, db: Session = Depends(get_db)):
    path = _require_video_file(db, job_id)
    return FileResponse(path, media_type="video/mp4", filename=f"video-{job_id}.mp4")


@router.get("/video/{job_id}/file")
def stream_video(job_id: str, range_header: Optional[str] = Header(None, alias="Range"), db: Session = Depends(get_db)):
    """Serves the video for in-browser preview, honoring single byte ranges."""
    path = _require_video_file(db, job_id)
    file_size = os.path.getsize(path)

    if range_header is None:
        headers = {"Content-Length": str(file_size), "Accept-Ranges": "bytes"}
        return StreamingResponse(iter_file(path, 0, file_size), media_type="video/mp4", headers=headers)

    byte_range = parse_range_header(range_header, file_size)
    if byte_range is None:
        raise HTTPException(
            status_code=416,
            detail="Requested range not satisfiable",
            headers={"Content-Range": f"bytes */{file_size}"},
        )

    start, end = byte_range
    length = end - start + 1
    headers = {
        "Content-Range": f"bytes {start}-{end}/{file_size}",
        "Accept-Ranges": "bytes",
        "Content-Length": str(length),
    }
    return StreamingResponse(iter_file(path, start, length), status_code=206, media_type="video/mp4", headers=headers)


@router.delete("/video/{job_id}", response_model=MessageResponse)
def delete_video(job_id: str, db: Session = Depends(get_db)):
    if not orchestrator.delete_job(db, job_id):
        raise NotFoundError("Video not found")
    return {"message": "Video deleted successfully"}
