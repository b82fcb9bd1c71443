"""Recorded content ORM model."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import JSON, BigInteger, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from eduvideo.content.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ContentStatus(str, Enum):
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class RecordedContent(Base):
    __tablename__ = "recorded_content"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    course_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    batch_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    teacher_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    video_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # seconds
    file_size: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)  # bytes
    format: Mapped[Optional[str]] = mapped_column(String(32), nullable=True, default="mp4")
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=ContentStatus.PROCESSING.value)

    # "metadata" is reserved on declarative classes
    content_metadata: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, nullable=True, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    @property
    def cloud_upload_failed(self) -> bool:
        return bool((self.content_metadata or {}).get("cloudUploadFailed"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "course_id": self.course_id,
            "batch_id": self.batch_id,
            "teacher_id": self.teacher_id,
            "video_url": self.video_url,
            "thumbnail_url": self.thumbnail_url,
            "duration": self.duration,
            "file_size": self.file_size,
            "format": self.format,
            "status": self.status,
            "metadata": dict(self.content_metadata or {}),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<RecordedContent {self.id} {self.title!r} {self.status}>"
