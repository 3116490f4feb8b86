"""Assignment workflow: submission upload grants, lateness and grading."""

import logging
import uuid
from datetime import timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.assignments.models import Assignment, AssignmentSubmission
from src.assignments.schemas import AssignmentCreate, SubmissionUploadResponse
from src.auth import AuthContext
from src.config import get_settings
from src.courses.models import Lesson
from src.database.base import utcnow
from src.exceptions import AuthorizationError, ConflictError, ResourceNotFoundError, ValidationError
from src.media.service import sanitize_file_name
from src.progress.service import CompletionAggregator
from src.storage import AbstractStorage


logger = logging.getLogger(__name__)


class AssignmentService:
    def __init__(self, session: AsyncSession, storage: AbstractStorage) -> None:
        self.session = session
        self.storage = storage

    async def get_assignment(self, assignment_id: UUID) -> Assignment:
        assignment = await self.session.get(Assignment, assignment_id)
        if assignment is None:
            raise ResourceNotFoundError("Assignment", assignment_id)
        return assignment

    async def _get_submission(self, submission_id: UUID) -> AssignmentSubmission:
        submission = await self.session.get(AssignmentSubmission, submission_id)
        if submission is None:
            raise ResourceNotFoundError("Submission", submission_id)
        return submission

    async def create_assignment(self, auth: AuthContext, data: AssignmentCreate) -> Assignment:
        auth.require_staff()
        if not data.title:
            msg = "Assignment title is required"
            raise ValidationError(msg)
        if data.max_marks <= 0:
            msg = "Maximum marks must be positive"
            raise ValidationError(msg)

        assignment = Assignment(
            title=data.title,
            description=data.description,
            requirements=data.requirements,
            due_date=data.due_date,
            max_marks=data.max_marks,
            created_by=auth.user_id,
        )
        self.session.add(assignment)
        await self.session.commit()
        return assignment

    async def generate_submission_upload(
        self, auth: AuthContext, assignment_id: UUID, file_name: str, content_type: str
    ) -> SubmissionUploadResponse:
        """Create the learner's single submission and return a pre-signed PUT URL.

        The unique (assignment, user) constraint is the only duplicate guard,
        so two racing requests cannot both succeed. Lateness is decided here
        and never revisited.
        """
        assignment = await self.get_assignment(assignment_id)
        safe_name = sanitize_file_name(file_name)

        now = utcnow()
        submission_id = uuid.uuid4()
        storage_key = f"assignments/{assignment.id}/{submission_id}/{safe_name}"
        expires_in = get_settings().UPLOAD_URL_TTL_SECONDS
        upload_url = await self.storage.generate_upload_url(storage_key, content_type, expires_in)

        submission = AssignmentSubmission(
            id=submission_id,
            assignment_id=assignment.id,
            user_id=auth.user_id,
            file_name=safe_name,
            storage_key=storage_key,
            submitted_at=now,
            is_late=assignment.due_date is not None and now > assignment.due_date,
        )
        self.session.add(submission)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            msg = "You have already submitted this assignment"
            raise ConflictError(msg, code="DUPLICATE_SUBMISSION") from e

        logger.info(f"User {auth.user_id} started submission {submission_id} (late={submission.is_late})")
        return SubmissionUploadResponse(
            upload_url=upload_url,
            submission_id=submission_id,
            expires_at=now + timedelta(seconds=expires_in),
            is_late=submission.is_late,
        )

    async def complete_submission_upload(self, auth: AuthContext, submission_id: UUID) -> AssignmentSubmission:
        """Record that the file reached storage. Repeating it keeps the first timestamp."""
        submission = await self._get_submission(submission_id)
        if submission.user_id != auth.user_id:
            msg = "Only the submitting learner can complete this upload"
            raise AuthorizationError(msg)
        if submission.uploaded_at is None:
            submission.uploaded_at = utcnow()
            await self.session.commit()
        return submission

    async def grade_submission(
        self, auth: AuthContext, submission_id: UUID, marks: int, feedback: str | None
    ) -> AssignmentSubmission:
        """Grade once. Grading, whatever the marks, completes the lessons using the assignment."""
        auth.require_staff()
        submission = await self._get_submission(submission_id)
        assignment = await self.get_assignment(submission.assignment_id)

        if submission.is_graded:
            msg = f"Submission {submission_id} has already been graded"
            raise ConflictError(msg, code="ALREADY_GRADED")
        if not 0 <= marks <= assignment.max_marks:
            msg = f"Marks must be between 0 and {assignment.max_marks}"
            raise ValidationError(msg)

        submission.marks = marks
        submission.feedback = feedback
        submission.graded_at = utcnow()
        submission.graded_by = auth.user_id
        await self.session.commit()
        logger.info(f"Submission {submission_id} graded {marks}/{assignment.max_marks} by {auth.user_id}")

        lesson_ids = (
            await self.session.scalars(select(Lesson.id).where(Lesson.assignment_id == assignment.id))
        ).all()
        aggregator = CompletionAggregator(self.session)
        for lesson_id in lesson_ids:
            await aggregator.complete_lesson(submission.user_id, lesson_id)
        return submission

    async def get_submission(self, auth: AuthContext, submission_id: UUID) -> AssignmentSubmission:
        submission = await self._get_submission(submission_id)
        auth.require_owner_or_staff(submission.user_id, "submission")
        return submission

    async def get_submission_by_assignment(self, auth: AuthContext, assignment_id: UUID) -> AssignmentSubmission:
        """The caller's own submission for an assignment."""
        await self.get_assignment(assignment_id)
        submission = await self.session.scalar(
            select(AssignmentSubmission).where(
                AssignmentSubmission.assignment_id == assignment_id,
                AssignmentSubmission.user_id == auth.user_id,
            )
        )
        if submission is None:
            raise ResourceNotFoundError("Submission", assignment_id)
        return submission

    async def list_submissions(self, auth: AuthContext, assignment_id: UUID) -> list[AssignmentSubmission]:
        auth.require_staff()
        await self.get_assignment(assignment_id)
        result = await self.session.scalars(
            select(AssignmentSubmission)
            .where(AssignmentSubmission.assignment_id == assignment_id)
            .order_by(AssignmentSubmission.submitted_at)
        )
        return list(result.all())
