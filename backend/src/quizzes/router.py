import logging
from uuid import UUID

from fastapi import APIRouter, status

from src.auth import CurrentAuth
from src.quizzes.schemas import QuizAttemptResponse, QuizCreate, QuizResponse, QuizSubmission
from src.quizzes.service import QuizService, to_attempt_response, to_quiz_response


logger = logging.getLogger(__name__)


router = APIRouter(prefix="/api/v1/quizzes", tags=["quizzes"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_quiz(data: QuizCreate, auth: CurrentAuth) -> QuizResponse:
    quiz = await QuizService(auth.session).create_quiz(auth, data)
    return to_quiz_response(quiz, include_answers=True)


@router.get("/attempts/{attempt_id}")
async def get_attempt(attempt_id: UUID, auth: CurrentAuth) -> QuizAttemptResponse:
    """One attempt with per-question results."""
    attempt = await QuizService(auth.session).get_attempt(auth, attempt_id)
    return to_attempt_response(attempt)


@router.get("/{quiz_id}")
async def get_quiz(quiz_id: UUID, auth: CurrentAuth) -> QuizResponse:
    """Quiz with its questions. Correct answers are only shown to staff."""
    return await QuizService(auth.session).get_quiz(auth, quiz_id)


@router.post("/{quiz_id}/submit")
async def submit_quiz(quiz_id: UUID, submission: QuizSubmission, auth: CurrentAuth) -> QuizAttemptResponse:
    """Grade a submission. Every attempt is kept."""
    attempt = await QuizService(auth.session).submit(auth, quiz_id, submission)
    return to_attempt_response(attempt)


@router.get("/{quiz_id}/attempts")
async def list_attempts(quiz_id: UUID, auth: CurrentAuth) -> list[QuizAttemptResponse]:
    attempts = await QuizService(auth.session).list_attempts(auth, quiz_id)
    return [to_attempt_response(a) for a in attempts]
