# models.py

import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text
from database import Base


class JobStatus(str, enum.Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


def _utcnow():
    return datetime.now(timezone.utc)


class Job(Base):
    """Job model for tracking video ad generation."""

    __tablename__ = "jobs"

    id = Column(String, primary_key=True, index=True)
    url = Column(String, nullable=False)
    product_data = Column(Text, nullable=False)  # JSON-serialized ProductData
    ad_script = Column(Text, nullable=False)  # JSON-serialized AdScript
    aspect_ratio = Column(String, nullable=False)
    template = Column(String, nullable=False)
    status = Column(String, default=JobStatus.PROCESSING.value, index=True)  # processing, completed, failed
    video_path = Column(String, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)
