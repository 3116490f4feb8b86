"""Completion aggregation and manual completion."""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.courses.models import CourseProgress, EnrollmentStatus, LessonKind
from src.database.session import async_session_maker
from src.progress import CompletionAggregator

from factories import LEARNER_ID, create_course, enroll


@pytest.mark.asyncio
async def test_percentage_climbs_until_the_enrollment_completes(db_session: AsyncSession) -> None:
    course, lessons = await create_course(db_session, {}, {}, {}, {}, {})
    enrollment = await enroll(db_session, course.id)
    aggregator = CompletionAggregator(db_session)

    for lesson in lessons[:3]:
        completion = await aggregator.complete_lesson(LEARNER_ID, lesson.id)

    assert completion.completion_percentage == 60.0
    assert completion.status == EnrollmentStatus.ACTIVE
    assert enrollment.completed_at is None

    for lesson in lessons[3:]:
        completion = await aggregator.complete_lesson(LEARNER_ID, lesson.id)

    assert completion.completion_percentage == 100.0
    assert completion.total_lessons == 5
    assert enrollment.status == EnrollmentStatus.COMPLETED
    assert enrollment.completion_percentage == 100.0
    assert enrollment.completed_at is not None


@pytest.mark.asyncio
async def test_completing_twice_changes_nothing(db_session: AsyncSession) -> None:
    course, lessons = await create_course(db_session, {}, {}, {})
    await enroll(db_session, course.id)
    aggregator = CompletionAggregator(db_session)

    first = await aggregator.complete_lesson(LEARNER_ID, lessons[0].id)
    second = await aggregator.complete_lesson(LEARNER_ID, lessons[0].id)

    assert first.completion_percentage == second.completion_percentage == 33.33
    rows = await db_session.scalar(select(func.count()).select_from(CourseProgress))
    assert rows == 1


@pytest.mark.asyncio
async def test_suspended_enrollment_keeps_its_status(db_session: AsyncSession) -> None:
    course, lessons = await create_course(db_session, {})
    enrollment = await enroll(db_session, course.id, status=EnrollmentStatus.SUSPENDED)

    completion = await CompletionAggregator(db_session).complete_lesson(LEARNER_ID, lessons[0].id)

    assert completion.completion_percentage == 100.0
    assert enrollment.status == EnrollmentStatus.SUSPENDED
    assert enrollment.completed_at is None


@pytest.mark.asyncio
async def test_only_lessons_still_in_the_course_count(db_session: AsyncSession) -> None:
    course, lessons = await create_course(db_session, {}, {})
    enrollment = await enroll(db_session, course.id)
    aggregator = CompletionAggregator(db_session)
    await aggregator.complete_lesson(LEARNER_ID, lessons[0].id)
    assert enrollment.completion_percentage == 50.0

    await db_session.delete(lessons[1])
    await db_session.commit()
    completion = await aggregator.calculate_course_completion(LEARNER_ID, course.id)

    assert completion.completion_percentage == 100.0
    assert enrollment.status == EnrollmentStatus.COMPLETED


@pytest.mark.asyncio
async def test_learner_marks_an_article_complete(db_session: AsyncSession, learner: AsyncClient) -> None:
    course, lessons = await create_course(db_session, {"kind": LessonKind.ARTICLE}, {"kind": LessonKind.LIVE})
    await enroll(db_session, course.id)

    resp = await learner.post(f"/api/v1/progress/lessons/{lessons[0].id}/complete")

    assert resp.status_code == 200
    assert resp.json()["completionPercentage"] == 50.0
    assert resp.json()["status"] == "ACTIVE"

    resp = await learner.post(f"/api/v1/progress/lessons/{lessons[1].id}/complete")
    assert resp.json()["completionPercentage"] == 100.0
    assert resp.json()["status"] == "COMPLETED"


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", [LessonKind.VIDEO, LessonKind.QUIZ, LessonKind.ASSIGNMENT])
async def test_activity_lessons_cannot_be_marked_by_hand(
    db_session: AsyncSession, learner: AsyncClient, kind: LessonKind
) -> None:
    course, lessons = await create_course(db_session, {"kind": kind})
    await enroll(db_session, course.id)

    resp = await learner.post(f"/api/v1/progress/lessons/{lessons[0].id}/complete")

    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_manual_completion_requires_enrollment(db_session: AsyncSession, learner: AsyncClient) -> None:
    _, lessons = await create_course(db_session, {})

    resp = await learner.post(f"/api/v1/progress/lessons/{lessons[0].id}/complete")

    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_unknown_lesson_is_not_found(learner: AsyncClient) -> None:
    resp = await learner.post("/api/v1/progress/lessons/00000000-0000-0000-0000-000000000000/complete")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_first_writes_reuse_a_row_another_session_already_inserted(db_session: AsyncSession) -> None:
    course, lessons = await create_course(db_session, {"kind": LessonKind.VIDEO})
    await enroll(db_session, course.id)
    db_session.add(CourseProgress(user_id=LEARNER_ID, course_id=course.id, lesson_id=lessons[0].id, time_spent=30))
    await db_session.commit()

    async with async_session_maker() as other:
        aggregator = CompletionAggregator(other)
        await aggregator.record_activity(LEARNER_ID, lessons[0].id, position=42.0, time_spent=10)
        completion = await aggregator.complete_lesson(LEARNER_ID, lessons[0].id)

    assert completion.completion_percentage == 100.0
    rows = (await db_session.scalars(select(CourseProgress).execution_options(populate_existing=True))).all()
    assert len(rows) == 1
    assert rows[0].completed is True
    assert rows[0].last_position == 42.0
    assert rows[0].time_spent == 30
