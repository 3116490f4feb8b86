"""SQLAlchemy models for uploaded media and their transcode job history."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, Enum, Float, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base, JSONType, UTCDateTime, utcnow


__all__ = [
    "ALLOWED_TRANSITIONS",
    "JobStatus",
    "Media",
    "MediaStatus",
    "TranscodeJobLog",
]


class MediaStatus(enum.StrEnum):
    """Lifecycle of an uploaded asset."""

    UPLOADED = "UPLOADED"
    PROCESSING = "PROCESSING"
    READY = "READY"
    FAILED = "FAILED"


# FAILED -> PROCESSING only happens through an operator retry
ALLOWED_TRANSITIONS: dict[MediaStatus, frozenset[MediaStatus]] = {
    MediaStatus.UPLOADED: frozenset({MediaStatus.PROCESSING, MediaStatus.READY}),
    MediaStatus.PROCESSING: frozenset({MediaStatus.READY, MediaStatus.FAILED}),
    MediaStatus.FAILED: frozenset({MediaStatus.PROCESSING}),
    MediaStatus.READY: frozenset(),
}


class JobStatus(enum.StrEnum):
    """Status of one transcode attempt."""

    QUEUED = "QUEUED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"

    @property
    def is_terminal(self) -> bool:
        return self in {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.TIMED_OUT}


class Media(Base):
    """One uploaded asset and the outputs the transcoder derived from it."""

    __tablename__ = "media"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_key: Mapped[str] = mapped_column(String(1024), nullable=False, unique=True)
    mime_type: Mapped[str] = mapped_column(String(127), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[MediaStatus] = mapped_column(
        Enum(MediaStatus, name="media_status", native_enum=False, length=20),
        nullable=False,
        default=MediaStatus.UPLOADED,
        index=True,
    )

    # Set once, when a transcode succeeds
    manifest_key: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    thumbnails: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    duration: Mapped[float | None] = mapped_column(Float, nullable=True)  # seconds
    width: Mapped[int | None] = mapped_column(Integer, nullable=True)
    height: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # "metadata" is reserved on declarative classes
    extra_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, nullable=False, default=dict)
    uploaded_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def is_video(self) -> bool:
        return self.mime_type.startswith("video/")


class TranscodeJobLog(Base):
    """Append-only record of one transcode attempt.

    No foreign key to media: the audit trail outlives the asset.
    """

    __tablename__ = "transcode_job_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    media_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    job_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    attempt: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[JobStatus] = mapped_column(
        Enum(JobStatus, name="transcode_job_status", native_enum=False, length=20),
        nullable=False,
        default=JobStatus.QUEUED,
        index=True,
    )
    queued_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    started_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
