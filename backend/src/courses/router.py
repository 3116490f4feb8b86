"""Courses API router.

Only the catalogue operations the media pipeline and completion tracking
depend on: course, module and lesson creation plus self-enrollment.
"""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Body, status

from src.auth import CurrentAuth
from src.courses.schemas import (
    CourseCreate,
    CourseResponse,
    EnrollmentResponse,
    LessonBody,
    LessonResponse,
    LessonUpdate,
    ModuleCreate,
    ModuleResponse,
)
from src.courses.service import CourseService


logger = logging.getLogger(__name__)


router = APIRouter(
    prefix="/api/v1/courses",
    tags=["courses"],
    responses={404: {"description": "Not found"}},
)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_course(data: CourseCreate, auth: CurrentAuth) -> CourseResponse:
    course = await CourseService(auth.session).create_course(auth, data)
    return CourseResponse.model_validate(course)


@router.get("/{course_id}")
async def get_course(course_id: UUID, auth: CurrentAuth) -> CourseResponse:
    """Course with its ordered modules and lessons."""
    course = await CourseService(auth.session).get_course(course_id)
    return CourseResponse.model_validate(course)


@router.post("/{course_id}/modules", status_code=status.HTTP_201_CREATED)
async def add_module(course_id: UUID, data: ModuleCreate, auth: CurrentAuth) -> ModuleResponse:
    module = await CourseService(auth.session).add_module(auth, course_id, data)
    return ModuleResponse.model_validate(module)


@router.post("/modules/{module_id}/lessons", status_code=status.HTTP_201_CREATED)
async def add_lesson(
    module_id: UUID,
    body: Annotated[LessonBody, Body()],
    auth: CurrentAuth,
) -> LessonResponse:
    """Create a lesson; the body's `kind` decides which reference is required."""
    lesson = await CourseService(auth.session).add_lesson(auth, module_id, body)
    return LessonResponse.model_validate(lesson)


@router.patch("/lessons/{lesson_id}")
async def update_lesson(lesson_id: UUID, update: LessonUpdate, auth: CurrentAuth) -> LessonResponse:
    lesson = await CourseService(auth.session).update_lesson(auth, lesson_id, update)
    return LessonResponse.model_validate(lesson)


@router.post("/{course_id}/enroll", status_code=status.HTTP_201_CREATED)
async def enroll(course_id: UUID, auth: CurrentAuth) -> EnrollmentResponse:
    enrollment = await CourseService(auth.session).enroll(auth, course_id)
    return EnrollmentResponse.model_validate(enrollment)
