"""Completion aggregator.

Every lesson handler (video heartbeats, quiz passes, assignment grading,
manual completion) reports through `complete_lesson`. Nothing else writes
`Enrollment.completion_percentage` or `Enrollment.status`.
"""

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import AuthContext
from src.courses.models import (
    ENTITLED_STATUSES,
    MANUALLY_COMPLETABLE,
    CourseModule,
    CourseProgress,
    Enrollment,
    EnrollmentStatus,
    Lesson,
)
from src.courses.service import get_entitled_enrollment, get_lesson_with_course
from src.database.base import utcnow
from src.exceptions import InternalError, ValidationError
from src.progress.schemas import CourseCompletionResponse


logger = logging.getLogger(__name__)


def compute_completion_percentage(total_lessons: int, completed_lessons: int) -> float:
    """100 * completed / total, rounded to two decimals; 0 for an empty course."""
    if total_lessons <= 0:
        return 0.0
    completed = min(max(completed_lessons, 0), total_lessons)
    return round(completed * 100 / total_lessons, 2)


def next_enrollment_status(current: EnrollmentStatus, percentage: float) -> EnrollmentStatus:
    """COMPLETED at 100%, ACTIVE below; suspended and cancelled enrollments keep their status."""
    if current not in ENTITLED_STATUSES:
        return current
    return EnrollmentStatus.COMPLETED if percentage >= 100 else EnrollmentStatus.ACTIVE


class CompletionAggregator:
    """Turns per-lesson completion into course completion."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _get_progress(self, user_id: UUID, lesson_id: UUID) -> CourseProgress | None:
        return await self.session.scalar(
            select(CourseProgress).where(CourseProgress.user_id == user_id, CourseProgress.lesson_id == lesson_id)
        )

    async def _ensure_progress(self, user_id: UUID, lesson_id: UUID, course_id: UUID) -> CourseProgress:
        """Return the (user, lesson) row, inserting it if missing.

        INSERT ... ON CONFLICT DO NOTHING keeps concurrent first writes (two
        heartbeats, a heartbeat and a manual completion) from colliding on the
        unique constraint.
        """
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            insert = postgresql.insert
        elif dialect == "sqlite":
            insert = sqlite.insert
        else:
            msg = f"Unsupported database dialect for progress upserts: {dialect}"
            raise InternalError(msg)

        await self.session.execute(
            insert(CourseProgress)
            .values(user_id=user_id, course_id=course_id, lesson_id=lesson_id)
            .on_conflict_do_nothing(index_elements=["user_id", "lesson_id"])
        )
        progress = await self._get_progress(user_id, lesson_id)
        if progress is None:
            msg = f"Progress row for user {user_id} and lesson {lesson_id} vanished after upsert"
            raise InternalError(msg)
        return progress

    async def mark_complete(self, user_id: UUID, lesson_id: UUID) -> tuple[CourseProgress, UUID]:
        """Upsert the (user, lesson) row as completed. Repeated calls change nothing.

        Returns the row and the owning course id.
        """
        lesson, course_id = await get_lesson_with_course(self.session, lesson_id)
        progress = await self._ensure_progress(user_id, lesson.id, course_id)

        if not progress.completed:
            progress.completed = True
            progress.completed_at = utcnow()
            logger.info(f"User {user_id} completed lesson {lesson.id} ({lesson.kind})")
        return progress, course_id

    async def record_activity(self, user_id: UUID, lesson_id: UUID, position: float, time_spent: float) -> None:
        """Keep the resume position and the largest reported time spent. Does not commit."""
        lesson, course_id = await get_lesson_with_course(self.session, lesson_id)
        progress = await self._ensure_progress(user_id, lesson.id, course_id)
        progress.last_position = position
        progress.time_spent = max(progress.time_spent or 0, int(time_spent))

    async def calculate_course_completion(self, user_id: UUID, course_id: UUID) -> CourseCompletionResponse:
        """Recompute the percentage from CourseProgress rows and update the enrollment.

        Only lessons that still belong to the course are counted.
        """
        await self.session.flush()

        lesson_ids = select(Lesson.id).join(CourseModule, Lesson.module_id == CourseModule.id).where(
            CourseModule.course_id == course_id
        )
        total = await self.session.scalar(select(func.count()).select_from(lesson_ids.subquery())) or 0
        completed_ids = list(
            (
                await self.session.scalars(
                    select(CourseProgress.lesson_id).where(
                        CourseProgress.user_id == user_id,
                        CourseProgress.completed.is_(True),
                        CourseProgress.lesson_id.in_(lesson_ids),
                    )
                )
            ).all()
        )
        percentage = compute_completion_percentage(total, len(completed_ids))

        enrollment = await self.session.scalar(
            select(Enrollment).where(Enrollment.user_id == user_id, Enrollment.course_id == course_id)
        )
        if enrollment is not None:
            new_status = next_enrollment_status(enrollment.status, percentage)
            if new_status != enrollment.status:
                logger.info(f"Enrollment {enrollment.id}: {enrollment.status} -> {new_status} at {percentage}%")
            if new_status == EnrollmentStatus.COMPLETED and enrollment.status != EnrollmentStatus.COMPLETED:
                enrollment.completed_at = utcnow()
            elif new_status == EnrollmentStatus.ACTIVE:
                enrollment.completed_at = None
            enrollment.status = new_status
            enrollment.completion_percentage = percentage

        return CourseCompletionResponse(
            course_id=course_id,
            completion_percentage=percentage,
            status=enrollment.status if enrollment is not None else None,
            total_lessons=total,
            completed_lesson_ids=completed_ids,
        )

    async def complete_lesson(self, user_id: UUID, lesson_id: UUID) -> CourseCompletionResponse:
        """Mark a lesson complete and recompute the course. Commits."""
        _, course_id = await self.mark_complete(user_id, lesson_id)
        completion = await self.calculate_course_completion(user_id, course_id)
        await self.session.commit()
        return completion

    async def complete_manually(self, auth: AuthContext, lesson_id: UUID) -> CourseCompletionResponse:
        """Learner-driven completion for lessons with no completion handler of their own."""
        lesson, course_id = await get_lesson_with_course(self.session, lesson_id)
        if lesson.kind not in MANUALLY_COMPLETABLE:
            msg = f"{lesson.kind} lessons are completed by their own activity, not manually"
            raise ValidationError(msg)
        await get_entitled_enrollment(self.session, auth.user_id, course_id)
        return await self.complete_lesson(auth.user_id, lesson_id)

    async def get_course_completion(self, auth: AuthContext, course_id: UUID) -> CourseCompletionResponse:
        """The caller's progress in a course, recomputed from the current rows."""
        await get_entitled_enrollment(self.session, auth.user_id, course_id)
        completion = await self.calculate_course_completion(auth.user_id, course_id)
        await self.session.commit()
        return completion
