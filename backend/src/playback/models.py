"""SQLAlchemy model for playback sessions opened by playback grants."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Float, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base, UTCDateTime, utcnow


__all__ = ["PlaybackSession"]


class PlaybackSession(Base):
    """One viewer watching one lesson, fed by client heartbeats.

    `watch_time` and `completion_rate` only ever grow.
    """

    __tablename__ = "playback_sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    # NULL for legacy direct-URL lessons
    media_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("media.id", ondelete="SET NULL"), nullable=True, index=True
    )
    lesson_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, index=True
    )
    course_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    legacy_source: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    started_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    last_heartbeat_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)  # expiry of the latest grant
    ended_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    watch_time: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)  # seconds
    completion_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)  # percent
    last_position: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
