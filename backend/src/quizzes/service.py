"""Quiz grading engine: quiz authoring, submission grading and attempt history."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import AuthContext
from src.courses.models import Lesson
from src.exceptions import ResourceNotFoundError, ValidationError
from src.progress.service import CompletionAggregator
from src.quizzes.grading import grade_answers, validate_question_definition
from src.quizzes.models import Quiz, QuizAttempt, QuizQuestion
from src.quizzes.schemas import (
    QuestionDetail,
    QuestionResult,
    QuestionView,
    QuizAttemptResponse,
    QuizCreate,
    QuizResponse,
    QuizSubmission,
)


logger = logging.getLogger(__name__)


def _validate_quiz(data: QuizCreate) -> None:
    if not data.title:
        msg = "Quiz title is required"
        raise ValidationError(msg)
    if not data.questions:
        msg = "A quiz needs at least one question"
        raise ValidationError(msg)
    if not 0 <= data.passing_score <= 100:
        msg = "Passing score must be between 0 and 100"
        raise ValidationError(msg)
    if data.time_limit is not None and data.time_limit <= 0:
        msg = "Time limit must be a positive number of minutes"
        raise ValidationError(msg)
    for index, question in enumerate(data.questions, start=1):
        try:
            validate_question_definition(
                question.type, [option.id for option in question.options], question.correct_answer, question.points
            )
        except ValidationError as e:
            msg = f"Question {index}: {e.message}"
            raise ValidationError(msg) from e


def to_quiz_response(quiz: Quiz, *, include_answers: bool) -> QuizResponse:
    view = QuestionDetail if include_answers else QuestionView
    return QuizResponse(
        id=quiz.id,
        title=quiz.title,
        description=quiz.description,
        passing_score=quiz.passing_score,
        time_limit=quiz.time_limit,
        total_points=sum(q.points for q in quiz.questions),
        questions=[view.model_validate(q) for q in quiz.questions],
    )


def to_attempt_response(attempt: QuizAttempt) -> QuizAttemptResponse:
    return QuizAttemptResponse(
        attempt_id=attempt.id,
        quiz_id=attempt.quiz_id,
        score=attempt.score,
        passed=attempt.passed,
        earned_points=attempt.earned_points,
        total_points=attempt.total_points,
        results=[QuestionResult.model_validate(r) for r in attempt.results],
        submitted_at=attempt.submitted_at,
    )


class QuizService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _get_quiz(self, quiz_id: UUID) -> Quiz:
        quiz = await self.session.get(Quiz, quiz_id)
        if quiz is None:
            raise ResourceNotFoundError("Quiz", quiz_id)
        return quiz

    async def create_quiz(self, auth: AuthContext, data: QuizCreate) -> Quiz:
        auth.require_staff()
        _validate_quiz(data)

        quiz = Quiz(
            title=data.title,
            description=data.description,
            passing_score=data.passing_score,
            time_limit=data.time_limit,
            created_by=auth.user_id,
            questions=[
                QuizQuestion(
                    type=q.type,
                    prompt=q.prompt,
                    options=[option.model_dump() for option in q.options],
                    correct_answer=q.correct_answer,
                    points=q.points,
                    explanation=q.explanation,
                    order=index,
                )
                for index, q in enumerate(data.questions)
            ],
        )
        self.session.add(quiz)
        await self.session.commit()
        logger.info(f"Created quiz {quiz.id} with {len(quiz.questions)} questions")
        return quiz

    async def get_quiz(self, auth: AuthContext, quiz_id: UUID) -> QuizResponse:
        quiz = await self._get_quiz(quiz_id)
        return to_quiz_response(quiz, include_answers=auth.is_staff)

    async def submit(self, auth: AuthContext, quiz_id: UUID, submission: QuizSubmission) -> QuizAttempt:
        """Grade and store an attempt. A pass completes every lesson that uses this quiz.

        Failed attempts never touch progress, so an already completed lesson
        stays completed.
        """
        quiz = await self._get_quiz(quiz_id)
        answers = {str(question_id): answer for question_id, answer in submission.answers.items()}
        report = grade_answers(quiz.questions, answers)
        passed = report.score >= quiz.passing_score

        attempt = QuizAttempt(
            quiz_id=quiz.id,
            user_id=auth.user_id,
            answers=answers,
            results=[
                QuestionResult(
                    question_id=UUID(r.question_id),
                    correct=r.correct,
                    earned_points=r.earned_points,
                    points=r.points,
                    submitted_answer=r.submitted_answer,
                    correct_answer=r.correct_answer,
                    explanation=r.explanation,
                ).model_dump(mode="json")
                for r in report.results
            ],
            earned_points=report.earned_points,
            total_points=report.total_points,
            score=report.score,
            passed=passed,
        )
        self.session.add(attempt)
        await self.session.commit()
        logger.info(f"User {auth.user_id} scored {report.score} on quiz {quiz.id} (passed={passed})")

        if passed:
            lesson_ids = (await self.session.scalars(select(Lesson.id).where(Lesson.quiz_id == quiz.id))).all()
            aggregator = CompletionAggregator(self.session)
            for lesson_id in lesson_ids:
                await aggregator.complete_lesson(auth.user_id, lesson_id)
        return attempt

    async def get_attempt(self, auth: AuthContext, attempt_id: UUID) -> QuizAttempt:
        attempt = await self.session.get(QuizAttempt, attempt_id)
        if attempt is None:
            raise ResourceNotFoundError("QuizAttempt", attempt_id)
        auth.require_owner_or_staff(attempt.user_id, "quiz attempt")
        return attempt

    async def list_attempts(self, auth: AuthContext, quiz_id: UUID) -> list[QuizAttempt]:
        """The caller's attempts at a quiz, newest first."""
        await self._get_quiz(quiz_id)
        result = await self.session.scalars(
            select(QuizAttempt)
            .where(QuizAttempt.quiz_id == quiz_id, QuizAttempt.user_id == auth.user_id)
            .order_by(QuizAttempt.submitted_at.desc())
        )
        return list(result.all())
