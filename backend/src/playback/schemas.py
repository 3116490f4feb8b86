from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PlaybackTokenRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    lesson_id: UUID = Field(..., alias="lessonId")
    media_id: UUID | None = Field(None, alias="mediaId")


class PlaybackGrantResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    signed_url: str = Field(alias="signedUrl")
    expires_at: datetime = Field(alias="expiresAt")
    session_id: UUID = Field(alias="sessionId")
    legacy_source: bool = Field(False, alias="legacySource")
    # Same manifest with every segment signed; HLS players should load this one
    manifest_url: str | None = Field(None, alias="manifestUrl")


class HeartbeatRequest(BaseModel):
    """Client-reported progress. Positions and durations are in seconds."""

    model_config = ConfigDict(populate_by_name=True)

    position: float = Field(..., ge=0)
    duration: float | None = Field(None, gt=0)
    watch_time: float | None = Field(None, ge=0, alias="watchTime")


class PlaybackSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    user_id: UUID = Field(alias="userId")
    media_id: UUID | None = Field(None, alias="mediaId")
    lesson_id: UUID = Field(alias="lessonId")
    course_id: UUID = Field(alias="courseId")
    legacy_source: bool = Field(alias="legacySource")
    started_at: datetime = Field(alias="startedAt")
    last_heartbeat_at: datetime = Field(alias="lastHeartbeatAt")
    expires_at: datetime = Field(alias="expiresAt")
    ended_at: datetime | None = Field(None, alias="endedAt")
    watch_time: float = Field(alias="watchTime")
    completion_rate: float = Field(alias="completionRate")
    last_position: float = Field(alias="lastPosition")


class HeartbeatResponse(PlaybackSessionResponse):
    lesson_completed: bool = Field(False, alias="lessonCompleted")
