from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.courses.models import EnrollmentStatus


class CourseCompletionResponse(BaseModel):
    """A learner's completion of one course."""

    model_config = ConfigDict(populate_by_name=True)

    course_id: UUID = Field(alias="courseId")
    completion_percentage: float = Field(alias="completionPercentage")
    status: EnrollmentStatus | None = None
    total_lessons: int = Field(alias="totalLessons")
    completed_lesson_ids: list[UUID] = Field(default_factory=list, alias="completedLessonIds")
