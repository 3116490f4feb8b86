"""Progress tracking API endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter

from src.auth import CurrentAuth

from .schemas import CourseCompletionResponse
from .service import CompletionAggregator


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/progress", tags=["progress"])


@router.post("/lessons/{lesson_id}/complete")
async def complete_lesson(lesson_id: UUID, auth: CurrentAuth) -> CourseCompletionResponse:
    """Mark an article, AR or live lesson complete."""
    return await CompletionAggregator(auth.session).complete_manually(auth, lesson_id)


@router.get("/courses/{course_id}")
async def get_course_progress(course_id: UUID, auth: CurrentAuth) -> CourseCompletionResponse:
    """Completion percentage, enrollment status and completed lessons for the caller."""
    return await CompletionAggregator(auth.session).get_course_completion(auth, course_id)
