from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from src.media.models import JobStatus, MediaStatus


class UploadGrantRequest(BaseModel):
    """Schema for requesting a pre-signed upload URL."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    file_name: str = Field(..., min_length=1, max_length=255, alias="fileName")
    mime_type: str = Field(..., min_length=1, max_length=127, alias="mimeType")
    file_size: int = Field(..., alias="fileSize", description="Size in bytes")


class UploadGrantResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    upload_url: str = Field(alias="uploadUrl")
    media_id: UUID = Field(alias="mediaId")
    expires_at: datetime = Field(alias="expiresAt")


class CompleteUploadRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    media_id: UUID = Field(..., alias="mediaId")


class TranscodeResult(BaseModel):
    """Outputs reported by the transcode worker for a successful job."""

    model_config = ConfigDict(populate_by_name=True)

    manifest_key: str = Field(..., min_length=1, alias="manifestKey")
    thumbnails: list[str] = Field(default_factory=list)
    duration: float | None = Field(None, ge=0)
    width: int | None = Field(None, gt=0)
    height: int | None = Field(None, gt=0)


class MediaResponse(BaseModel):
    """Schema for media responses."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    original_name: str = Field(alias="originalName")
    storage_key: str = Field(alias="storageKey")
    mime_type: str = Field(alias="mimeType")
    file_size: int = Field(alias="fileSize")
    status: MediaStatus
    manifest_key: str | None = Field(None, alias="manifestKey")
    thumbnails: list[str] = Field(default_factory=list)
    duration: float | None = None
    width: int | None = None
    height: int | None = None
    # ORM objects expose `metadata` as the table MetaData, so read the attribute name first
    extra_metadata: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("extra_metadata", "metadata"),
        serialization_alias="metadata",
    )
    uploaded_by: UUID = Field(alias="uploadedBy")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")


class MediaListResponse(BaseModel):
    """Schema for paginated media list responses."""

    model_config = ConfigDict(populate_by_name=True)

    items: list[MediaResponse]
    total: int
    page: int
    per_page: int = Field(alias="perPage")
    pages: int


class TranscodeJobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    media_id: UUID = Field(alias="mediaId")
    job_id: str = Field(alias="jobId")
    attempt: int
    status: JobStatus
    queued_at: datetime = Field(alias="queuedAt")
    started_at: datetime | None = Field(None, alias="startedAt")
    completed_at: datetime | None = Field(None, alias="completedAt")
    duration_ms: int | None = Field(None, alias="durationMs")
    error: str | None = None
