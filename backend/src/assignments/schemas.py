from datetime import UTC, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AssignmentCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    title: str = Field(..., max_length=200)
    description: str | None = None
    requirements: str | None = None
    due_date: datetime | None = Field(None, alias="dueDate")
    max_marks: int = Field(100, alias="maxMarks")

    @field_validator("due_date")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        """Due dates without an offset are taken as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


class AssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    title: str
    description: str | None = None
    requirements: str | None = None
    due_date: datetime | None = Field(None, alias="dueDate")
    max_marks: int = Field(alias="maxMarks")
    created_by: UUID = Field(alias="createdBy")
    created_at: datetime = Field(alias="createdAt")


class SubmissionUploadRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    file_name: str = Field(..., min_length=1, max_length=255, alias="fileName")
    content_type: str = Field("application/octet-stream", max_length=127, alias="contentType")


class SubmissionUploadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    upload_url: str = Field(alias="uploadUrl")
    submission_id: UUID = Field(alias="submissionId")
    expires_at: datetime = Field(alias="expiresAt")
    is_late: bool = Field(alias="isLate")


class GradeSubmissionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    marks: int
    feedback: str | None = None


class SubmissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    assignment_id: UUID = Field(alias="assignmentId")
    user_id: UUID = Field(alias="userId")
    file_name: str = Field(alias="fileName")
    storage_key: str = Field(alias="storageKey")
    submitted_at: datetime = Field(alias="submittedAt")
    uploaded_at: datetime | None = Field(None, alias="uploadedAt")
    is_late: bool = Field(alias="isLate")
    marks: int | None = None
    feedback: str | None = None
    graded_at: datetime | None = Field(None, alias="gradedAt")
    graded_by: UUID | None = Field(None, alias="gradedBy")
