"""Course catalogue endpoints: authoring, lesson validation and enrollment."""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from src.courses.models import EnrollmentStatus

from factories import create_course, create_media, enroll


async def _course_with_module(instructor: AsyncClient, title: str = "Intro to Biology") -> tuple[dict, dict]:
    course = (await instructor.post("/api/v1/courses", json={"title": title})).json()
    module = (await instructor.post(f"/api/v1/courses/{course['id']}/modules", json={"title": "Cells"})).json()
    return course, module


@pytest.mark.asyncio
async def test_instructor_builds_a_course(db_session: AsyncSession, instructor: AsyncClient) -> None:
    media = await create_media(db_session)
    course, module = await _course_with_module(instructor)
    assert course["slug"] == "intro-to-biology"

    resp = await instructor.post(
        f"/api/v1/courses/modules/{module['id']}/lessons",
        json={"kind": "VIDEO", "title": "Welcome", "mediaId": str(media.id), "duration": 600},
    )
    assert resp.status_code == 201
    assert resp.json()["order"] == 0

    resp = await instructor.post(
        f"/api/v1/courses/modules/{module['id']}/lessons",
        json={"kind": "ARTICLE", "title": "Reading", "content": "Cells are small."},
    )
    assert resp.json()["order"] == 1

    resp = await instructor.get(f"/api/v1/courses/{course['id']}")
    lessons = resp.json()["modules"][0]["lessons"]
    assert [lesson["kind"] for lesson in lessons] == ["VIDEO", "ARTICLE"]


@pytest.mark.asyncio
async def test_learners_cannot_create_courses(learner: AsyncClient) -> None:
    resp = await learner.post("/api/v1/courses", json={"title": "Mine"})
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_duplicate_slug_conflicts(instructor: AsyncClient) -> None:
    await instructor.post("/api/v1/courses", json={"title": "Chemistry"})

    resp = await instructor.post("/api/v1/courses", json={"title": "Chemistry!"})

    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "SLUG_TAKEN"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"kind": "VIDEO", "title": "No source"},
        {"kind": "QUIZ", "title": "No quiz"},
        {"kind": "ARTICLE", "title": "No content"},
        {"kind": "PODCAST", "title": "Unknown kind"},
    ],
)
async def test_lesson_body_must_match_its_kind(instructor: AsyncClient, body: dict) -> None:
    _, module = await _course_with_module(instructor)

    resp = await instructor.post(f"/api/v1/courses/modules/{module['id']}/lessons", json=body)

    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_video_lesson_rejects_non_video_media(db_session: AsyncSession, instructor: AsyncClient) -> None:
    pdf = await create_media(db_session, mime_type="application/pdf")
    _, module = await _course_with_module(instructor)

    resp = await instructor.post(
        f"/api/v1/courses/modules/{module['id']}/lessons",
        json={"kind": "VIDEO", "title": "Slides", "mediaId": str(pdf.id)},
    )

    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_lesson_kind_can_be_redefined(instructor: AsyncClient) -> None:
    _, module = await _course_with_module(instructor)
    lesson = (
        await instructor.post(
            f"/api/v1/courses/modules/{module['id']}/lessons",
            json={"kind": "VIDEO", "title": "Legacy", "videoUrl": "https://cdn.test/old.mp4"},
        )
    ).json()

    resp = await instructor.patch(
        f"/api/v1/courses/lessons/{lesson['id']}",
        json={"definition": {"kind": "LIVE", "title": "Live session"}},
    )

    assert resp.status_code == 200
    assert resp.json()["kind"] == "LIVE"
    assert resp.json()["videoUrl"] is None


@pytest.mark.asyncio
async def test_enrolling_twice_returns_the_same_enrollment(db_session: AsyncSession, learner: AsyncClient) -> None:
    course, _ = await create_course(db_session, {})

    first = (await learner.post(f"/api/v1/courses/{course.id}/enroll")).json()
    second = (await learner.post(f"/api/v1/courses/{course.id}/enroll")).json()

    assert first["id"] == second["id"]
    assert first["status"] == "ACTIVE"
    assert first["completionPercentage"] == 0.0


@pytest.mark.asyncio
async def test_suspended_learner_cannot_re_enroll(db_session: AsyncSession, learner: AsyncClient) -> None:
    course, _ = await create_course(db_session, {})
    await enroll(db_session, course.id, status=EnrollmentStatus.SUSPENDED)

    resp = await learner.post(f"/api/v1/courses/{course.id}/enroll")

    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "ENROLLMENT_INACTIVE"
