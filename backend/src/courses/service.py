"""Course catalogue glue: courses, modules, lessons and enrollments."""

import logging
import re
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.assignments.models import Assignment
from src.auth import AuthContext
from src.courses.models import (
    ENTITLED_STATUSES,
    Course,
    CourseModule,
    Enrollment,
    EnrollmentStatus,
    Lesson,
    LessonKind,
)
from src.courses.schemas import (
    AssignmentLessonBody,
    CourseCreate,
    LessonBody,
    LessonUpdate,
    ModuleCreate,
    QuizLessonBody,
    VideoLessonBody,
)
from src.exceptions import AuthorizationError, ConflictError, ResourceNotFoundError, ValidationError
from src.media.models import Media
from src.quizzes.models import Quiz


logger = logging.getLogger(__name__)

# Reference columns reset whenever a lesson's definition is replaced
_REFERENCE_FIELDS = ("media_id", "video_url", "quiz_id", "assignment_id", "content")


def slugify(title: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return slug or "course"


async def get_lesson_with_course(session: AsyncSession, lesson_id: UUID) -> tuple[Lesson, UUID]:
    """Load a lesson together with the id of the course that owns it."""
    row = (
        await session.execute(
            select(Lesson, CourseModule.course_id)
            .join(CourseModule, Lesson.module_id == CourseModule.id)
            .where(Lesson.id == lesson_id)
        )
    ).first()
    if row is None:
        raise ResourceNotFoundError("Lesson", lesson_id)
    return row[0], row[1]


async def get_entitled_enrollment(session: AsyncSession, user_id: UUID, course_id: UUID) -> Enrollment:
    """Return the caller's ACTIVE or COMPLETED enrollment, else raise AuthorizationError."""
    enrollment = await session.scalar(
        select(Enrollment).where(Enrollment.user_id == user_id, Enrollment.course_id == course_id)
    )
    if enrollment is None or enrollment.status not in ENTITLED_STATUSES:
        msg = "You are not enrolled in this course"
        raise AuthorizationError(msg)
    return enrollment


class CourseService:
    """Minimal course management the media pipeline and completion tracking rely on."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_course(self, course_id: UUID) -> Course:
        course = await self.session.scalar(
            select(Course)
            .where(Course.id == course_id)
            .options(selectinload(Course.modules).selectinload(CourseModule.lessons))
        )
        if course is None:
            raise ResourceNotFoundError("Course", course_id)
        return course

    async def create_course(self, auth: AuthContext, data: CourseCreate) -> Course:
        auth.require_staff()
        course = Course(
            title=data.title,
            slug=data.slug or slugify(data.title),
            description=data.description,
            created_by=auth.user_id,
            modules=[],
        )
        self.session.add(course)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            msg = f"A course with slug '{course.slug}' already exists"
            raise ConflictError(msg, code="SLUG_TAKEN") from e
        logger.info(f"Created course {course.id} ({course.slug})")
        return course

    async def add_module(self, auth: AuthContext, course_id: UUID, data: ModuleCreate) -> CourseModule:
        auth.require_staff()
        if await self.session.get(Course, course_id) is None:
            raise ResourceNotFoundError("Course", course_id)

        order = data.order
        if order is None:
            count = await self.session.scalar(
                select(func.count()).select_from(CourseModule).where(CourseModule.course_id == course_id)
            )
            order = count or 0
        module = CourseModule(course_id=course_id, title=data.title, order=order, lessons=[])
        self.session.add(module)
        await self.session.commit()
        return module

    async def _validate_references(self, body: LessonBody) -> None:
        """Referenced media, quizzes and assignments must exist."""
        if isinstance(body, VideoLessonBody) and body.media_id is not None:
            media = await self.session.get(Media, body.media_id)
            if media is None:
                msg = f"Media {body.media_id} does not exist"
                raise ValidationError(msg)
            if not media.is_video:
                msg = f"Media {body.media_id} is {media.mime_type}, not a video"
                raise ValidationError(msg)
        elif isinstance(body, QuizLessonBody):
            if await self.session.get(Quiz, body.quiz_id) is None:
                msg = f"Quiz {body.quiz_id} does not exist"
                raise ValidationError(msg)
        elif isinstance(body, AssignmentLessonBody) and await self.session.get(Assignment, body.assignment_id) is None:
            msg = f"Assignment {body.assignment_id} does not exist"
            raise ValidationError(msg)

    @staticmethod
    def _apply_definition(lesson: Lesson, body: LessonBody) -> None:
        for field in _REFERENCE_FIELDS:
            setattr(lesson, field, None)
        lesson.kind = LessonKind(body.kind)
        lesson.title = body.title
        if body.duration is not None:
            lesson.duration = body.duration
        for field in _REFERENCE_FIELDS:
            if field in type(body).model_fields:
                setattr(lesson, field, getattr(body, field))

    async def add_lesson(self, auth: AuthContext, module_id: UUID, body: LessonBody) -> Lesson:
        auth.require_staff()
        if await self.session.get(CourseModule, module_id) is None:
            raise ResourceNotFoundError("Module", module_id)
        await self._validate_references(body)

        order = body.order
        if order is None:
            count = await self.session.scalar(
                select(func.count()).select_from(Lesson).where(Lesson.module_id == module_id)
            )
            order = count or 0

        lesson = Lesson(module_id=module_id, order=order)
        self._apply_definition(lesson, body)
        self.session.add(lesson)
        await self.session.commit()
        logger.info(f"Added {lesson.kind} lesson {lesson.id} to module {module_id}")
        return lesson

    async def update_lesson(self, auth: AuthContext, lesson_id: UUID, update: LessonUpdate) -> Lesson:
        """Update a lesson. A new definition is validated like a fresh lesson."""
        auth.require_staff()
        lesson = await self.session.get(Lesson, lesson_id)
        if lesson is None:
            raise ResourceNotFoundError("Lesson", lesson_id)

        if update.definition is not None:
            await self._validate_references(update.definition)
            previous = lesson.kind
            self._apply_definition(lesson, update.definition)
            if update.definition.order is not None:
                lesson.order = update.definition.order
            if previous != lesson.kind:
                logger.info(f"Lesson {lesson_id} changed kind {previous} -> {lesson.kind}")
        if update.title is not None:
            lesson.title = update.title
        if update.order is not None:
            lesson.order = update.order
        if update.duration is not None:
            lesson.duration = update.duration

        await self.session.commit()
        return lesson

    async def enroll(self, auth: AuthContext, course_id: UUID) -> Enrollment:
        """Self-enrollment. Enrolling twice returns the existing enrollment."""
        if await self.session.get(Course, course_id) is None:
            raise ResourceNotFoundError("Course", course_id)

        existing = await self.session.scalar(
            select(Enrollment).where(Enrollment.user_id == auth.user_id, Enrollment.course_id == course_id)
        )
        if existing is not None:
            if existing.status not in ENTITLED_STATUSES:
                msg = f"Enrollment is {existing.status} and cannot be reopened by the learner"
                raise ConflictError(msg, code="ENROLLMENT_INACTIVE")
            return existing

        enrollment = Enrollment(user_id=auth.user_id, course_id=course_id, status=EnrollmentStatus.ACTIVE)
        self.session.add(enrollment)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            msg = "Already enrolled in this course"
            raise ConflictError(msg, code="ALREADY_ENROLLED") from e
        logger.info(f"User {auth.user_id} enrolled in course {course_id}")
        return enrollment
