"""Pure grading rules for quiz submissions."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from src.exceptions import ValidationError
from src.quizzes.models import QuestionType, QuizQuestion


@dataclass(frozen=True)
class QuestionGrade:
    question_id: str
    correct: bool
    earned_points: int
    points: int
    submitted_answer: Any
    correct_answer: Any
    explanation: str | None


@dataclass(frozen=True)
class GradeReport:
    results: list[QuestionGrade]
    earned_points: int
    total_points: int
    score: int


def score_percentage(earned_points: int, total_points: int) -> int:
    """Integer percentage, rounding halves up, without floating point."""
    if total_points <= 0:
        return 0
    return (earned_points * 200 + total_points) // (2 * total_points)


def _normalize_text(value: str) -> str:
    return value.strip().casefold()


def is_answer_correct(question_type: QuestionType, correct_answer: Any, submitted: Any) -> bool:
    """Apply the rule for one question type.

    SINGLE_CHOICE needs the exact option id, MULTIPLE_CHOICE the exact set
    of option ids (subsets and supersets are wrong), TEXT_ANSWER a match
    after trimming and ignoring case.
    """
    if submitted is None:
        return False
    if question_type == QuestionType.SINGLE_CHOICE:
        return isinstance(submitted, str) and submitted == correct_answer
    if question_type == QuestionType.MULTIPLE_CHOICE:
        if not isinstance(submitted, list) or not all(isinstance(item, str) for item in submitted):
            return False
        return set(submitted) == set(correct_answer)
    if question_type == QuestionType.TEXT_ANSWER:
        return isinstance(submitted, str) and _normalize_text(submitted) == _normalize_text(correct_answer)
    return False


def grade_answers(questions: Sequence[QuizQuestion], answers: Mapping[str, Any]) -> GradeReport:
    """Grade a whole submission. Unanswered questions earn nothing."""
    known = {str(q.id) for q in questions}
    unknown = sorted(set(answers) - known)
    if unknown:
        msg = f"Answers reference questions not in this quiz: {', '.join(unknown)}"
        raise ValidationError(msg)

    results = []
    for question in questions:
        submitted = answers.get(str(question.id))
        correct = is_answer_correct(question.type, question.correct_answer, submitted)
        results.append(
            QuestionGrade(
                question_id=str(question.id),
                correct=correct,
                earned_points=question.points if correct else 0,
                points=question.points,
                submitted_answer=submitted,
                correct_answer=question.correct_answer,
                explanation=question.explanation,
            )
        )

    earned = sum(r.earned_points for r in results)
    total = sum(r.points for r in results)
    return GradeReport(results=results, earned_points=earned, total_points=total, score=score_percentage(earned, total))


def validate_question_definition(
    question_type: QuestionType, option_ids: Sequence[str], correct_answer: Any, points: int
) -> None:
    """Check that a question's answer specification fits its type."""
    if points < 1:
        msg = "Question points must be at least 1"
        raise ValidationError(msg)
    if len(set(option_ids)) != len(option_ids):
        msg = "Option ids must be unique within a question"
        raise ValidationError(msg)

    if question_type == QuestionType.SINGLE_CHOICE:
        if not isinstance(correct_answer, str) or correct_answer not in option_ids:
            msg = "A SINGLE_CHOICE answer must be exactly one of the question's option ids"
            raise ValidationError(msg)
    elif question_type == QuestionType.MULTIPLE_CHOICE:
        if not isinstance(correct_answer, list) or not correct_answer:
            msg = "A MULTIPLE_CHOICE answer must be a non-empty list of option ids"
            raise ValidationError(msg)
        if len(set(correct_answer)) != len(correct_answer) or not set(correct_answer) <= set(option_ids):
            msg = "A MULTIPLE_CHOICE answer must list distinct option ids of the question"
            raise ValidationError(msg)
    elif question_type == QuestionType.TEXT_ANSWER:
        if not isinstance(correct_answer, str) or not correct_answer.strip():
            msg = "A TEXT_ANSWER answer must be a non-empty string"
            raise ValidationError(msg)
