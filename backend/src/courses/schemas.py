"""Request and response schemas for the course catalogue.

Lesson bodies are a tagged union on `kind`: each variant carries only the
reference its lesson type needs, so a VIDEO lesson without a source or a
QUIZ lesson without a quiz never reaches the database.
"""

from datetime import datetime
from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.courses.models import EnrollmentStatus, LessonKind


class CourseCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)
    slug: str | None = Field(None, min_length=1, max_length=200, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    description: str | None = None


class ModuleCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)
    order: int | None = Field(None, ge=0)


class _LessonBodyBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)
    order: int | None = Field(None, ge=0)
    duration: int | None = Field(None, ge=0, description="Duration in seconds")


class VideoLessonBody(_LessonBodyBase):
    kind: Literal["VIDEO"]
    media_id: UUID | None = Field(None, alias="mediaId")
    video_url: str | None = Field(None, min_length=1, max_length=2048, alias="videoUrl")

    @model_validator(mode="after")
    def require_source(self) -> "VideoLessonBody":
        if self.media_id is None and self.video_url is None:
            msg = "A video lesson needs a mediaId or a legacy videoUrl"
            raise ValueError(msg)
        return self


class ArticleLessonBody(_LessonBodyBase):
    kind: Literal["ARTICLE"]
    content: str = Field(..., min_length=1)


class ArLessonBody(_LessonBodyBase):
    kind: Literal["AR"]
    content: str = Field(..., min_length=1)


class QuizLessonBody(_LessonBodyBase):
    kind: Literal["QUIZ", "MCQ"]
    quiz_id: UUID = Field(..., alias="quizId")


class AssignmentLessonBody(_LessonBodyBase):
    kind: Literal["ASSIGNMENT"]
    assignment_id: UUID = Field(..., alias="assignmentId")


class LiveLessonBody(_LessonBodyBase):
    kind: Literal["LIVE"]


LessonBody = Annotated[
    VideoLessonBody | ArticleLessonBody | ArLessonBody | QuizLessonBody | AssignmentLessonBody | LiveLessonBody,
    Field(discriminator="kind"),
]


class LessonUpdate(BaseModel):
    """Partial lesson update. `definition` replaces the kind and its reference."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    title: str | None = Field(None, min_length=1, max_length=200)
    order: int | None = Field(None, ge=0)
    duration: int | None = Field(None, ge=0)
    definition: LessonBody | None = None


class LessonResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    module_id: UUID = Field(alias="moduleId")
    title: str
    kind: LessonKind
    order: int
    duration: int | None = None
    media_id: UUID | None = Field(None, alias="mediaId")
    video_url: str | None = Field(None, alias="videoUrl")
    quiz_id: UUID | None = Field(None, alias="quizId")
    assignment_id: UUID | None = Field(None, alias="assignmentId")
    content: str | None = None


class ModuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    course_id: UUID = Field(alias="courseId")
    title: str
    order: int
    lessons: list[LessonResponse] = Field(default_factory=list)


class CourseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    title: str
    slug: str
    description: str | None = None
    created_by: UUID = Field(alias="createdBy")
    created_at: datetime = Field(alias="createdAt")
    modules: list[ModuleResponse] = Field(default_factory=list)


class EnrollmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    user_id: UUID = Field(alias="userId")
    course_id: UUID = Field(alias="courseId")
    status: EnrollmentStatus
    completion_percentage: float = Field(alias="completionPercentage")
    enrolled_at: datetime = Field(alias="enrolledAt")
    completed_at: datetime | None = Field(None, alias="completedAt")
