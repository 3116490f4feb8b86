from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.quizzes.models import QuestionType


class QuestionOption(BaseModel):
    id: str = Field(..., min_length=1, max_length=50)
    text: str = Field(..., min_length=1)


class QuestionCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    type: QuestionType
    prompt: str = Field(..., min_length=1)
    options: list[QuestionOption] = Field(default_factory=list)
    correct_answer: str | list[str] = Field(..., alias="correctAnswer")
    points: int = Field(1, description="Point weight")
    explanation: str | None = None


class QuizCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    title: str = Field(..., max_length=200)
    description: str | None = None
    passing_score: int = Field(70, alias="passingScore")
    time_limit: int | None = Field(None, alias="timeLimit", description="Minutes")
    questions: list[QuestionCreate] = Field(default_factory=list)


class QuestionView(BaseModel):
    """A question as a learner sees it: no answers."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    type: QuestionType
    prompt: str
    options: list[QuestionOption] = Field(default_factory=list)
    points: int
    order: int


class QuestionDetail(QuestionView):
    correct_answer: Any = Field(alias="correctAnswer")
    explanation: str | None = None


class QuizResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    title: str
    description: str | None = None
    passing_score: int = Field(alias="passingScore")
    time_limit: int | None = Field(None, alias="timeLimit")
    total_points: int = Field(alias="totalPoints")
    # Staff get answers and explanations; learners only the questions
    questions: list[QuestionDetail] | list[QuestionView]


class QuizSubmission(BaseModel):
    """Answers keyed by question id: an option id, a list of option ids or free text."""

    answers: dict[UUID, str | list[str]]


class QuestionResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_id: UUID = Field(alias="questionId")
    correct: bool
    earned_points: int = Field(alias="earnedPoints")
    points: int
    submitted_answer: Any = Field(None, alias="submittedAnswer")
    correct_answer: Any = Field(alias="correctAnswer")
    explanation: str | None = None


class QuizAttemptResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    attempt_id: UUID = Field(alias="attemptId")
    quiz_id: UUID = Field(alias="quizId")
    score: int
    passed: bool
    earned_points: int = Field(alias="earnedPoints")
    total_points: int = Field(alias="totalPoints")
    results: list[QuestionResult]
    submitted_at: datetime = Field(alias="submittedAt")
