"""Quiz authoring, grading over HTTP and completion of quiz lessons."""

from uuid import UUID, uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from src.courses.models import LessonKind

from factories import create_course, enroll


QUIZ = {
    "title": "Cell biology",
    "passingScore": 60,
    "questions": [
        {
            "type": "SINGLE_CHOICE",
            "prompt": "Powerhouse of the cell?",
            "options": [{"id": "a", "text": "Nucleus"}, {"id": "b", "text": "Mitochondria"}],
            "correctAnswer": "b",
        },
        {
            "type": "MULTIPLE_CHOICE",
            "prompt": "Which contain DNA?",
            "options": [{"id": "a", "text": "Nucleus"}, {"id": "b", "text": "Mitochondria"}, {"id": "c", "text": "Ribosome"}],
            "correctAnswer": ["a", "b"],
        },
        {
            "type": "TEXT_ANSWER",
            "prompt": "Process plants use to make sugar?",
            "correctAnswer": "Photosynthesis",
            "explanation": "Light energy becomes chemical energy.",
        },
    ],
}


async def _create_quiz(instructor: AsyncClient) -> dict:
    resp = await instructor.post("/api/v1/quizzes", json=QUIZ)
    assert resp.status_code == 201
    return resp.json()


def _answers(quiz: dict, single: str, multiple: list[str], text: str) -> dict:
    ids = [q["id"] for q in quiz["questions"]]
    return {"answers": {ids[0]: single, ids[1]: multiple, ids[2]: text}}


@pytest.mark.asyncio
async def test_staff_see_answers_learners_do_not(instructor: AsyncClient, learner: AsyncClient) -> None:
    quiz = await _create_quiz(instructor)
    assert quiz["totalPoints"] == 3
    assert quiz["questions"][0]["correctAnswer"] == "b"

    resp = await learner.get(f"/api/v1/quizzes/{quiz['id']}")

    assert resp.status_code == 200
    assert all("correctAnswer" not in q for q in resp.json()["questions"])


@pytest.mark.asyncio
async def test_learners_cannot_author_quizzes(learner: AsyncClient) -> None:
    resp = await learner.post("/api/v1/quizzes", json=QUIZ)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_invalid_answer_specification_is_rejected(instructor: AsyncClient) -> None:
    bad = {**QUIZ, "questions": [{**QUIZ["questions"][0], "correctAnswer": "z"}]}
    resp = await instructor.post("/api/v1/quizzes", json=bad)
    assert resp.status_code == 400
    assert "Question 1" in resp.json()["error"]["detail"]


@pytest.mark.asyncio
async def test_two_of_three_scores_67(instructor: AsyncClient, learner: AsyncClient) -> None:
    quiz = await _create_quiz(instructor)

    resp = await learner.post(f"/api/v1/quizzes/{quiz['id']}/submit", json=_answers(quiz, "b", ["a"], " photosynthesis "))

    assert resp.status_code == 200
    attempt = resp.json()
    assert attempt["score"] == 67
    assert attempt["passed"] is True
    assert [r["correct"] for r in attempt["results"]] == [True, False, True]
    assert attempt["results"][2]["explanation"] == "Light energy becomes chemical energy."


@pytest.mark.asyncio
async def test_unknown_question_ids_are_rejected(instructor: AsyncClient, learner: AsyncClient) -> None:
    quiz = await _create_quiz(instructor)

    resp = await learner.post(f"/api/v1/quizzes/{quiz['id']}/submit", json={"answers": {str(uuid4()): "a"}})

    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_attempts_are_kept_and_private(instructor: AsyncClient, learner: AsyncClient, client_factory) -> None:
    quiz = await _create_quiz(instructor)
    first = (await learner.post(f"/api/v1/quizzes/{quiz['id']}/submit", json=_answers(quiz, "a", [], ""))).json()
    await learner.post(f"/api/v1/quizzes/{quiz['id']}/submit", json=_answers(quiz, "b", ["a", "b"], "photosynthesis"))

    attempts = (await learner.get(f"/api/v1/quizzes/{quiz['id']}/attempts")).json()
    assert [a["score"] for a in attempts] == [100, 0]

    stranger = await client_factory()
    resp = await stranger.get(f"/api/v1/quizzes/attempts/{first['attemptId']}")
    assert resp.status_code == 403
    resp = await instructor.get(f"/api/v1/quizzes/attempts/{first['attemptId']}")
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_passing_completes_quiz_lesson_and_failing_later_keeps_it(
    db_session: AsyncSession, instructor: AsyncClient, learner: AsyncClient
) -> None:
    quiz = await _create_quiz(instructor)
    course, lessons = await create_course(db_session, {"kind": LessonKind.QUIZ, "quiz_id": UUID(quiz["id"])}, {})
    await enroll(db_session, course.id)

    await learner.post(f"/api/v1/quizzes/{quiz['id']}/submit", json=_answers(quiz, "a", [], ""))
    progress = (await learner.get(f"/api/v1/progress/courses/{course.id}")).json()
    assert progress["completionPercentage"] == 0.0

    await learner.post(f"/api/v1/quizzes/{quiz['id']}/submit", json=_answers(quiz, "b", ["a", "b"], "x"))
    progress = (await learner.get(f"/api/v1/progress/courses/{course.id}")).json()
    assert progress["completedLessonIds"] == [str(lessons[0].id)]
    assert progress["completionPercentage"] == 50.0

    await learner.post(f"/api/v1/quizzes/{quiz['id']}/submit", json=_answers(quiz, "a", [], ""))
    progress = (await learner.get(f"/api/v1/progress/courses/{course.id}")).json()
    assert progress["completionPercentage"] == 50.0
