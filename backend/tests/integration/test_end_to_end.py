"""A learner finishing a mixed course, driven entirely over HTTP."""

import pytest
from httpx import AsyncClient

from src.transcode.queue import InMemoryTranscodeQueue


QUIZ = {
    "title": "Checkpoint",
    "passingScore": 50,
    "questions": [
        {
            "type": "SINGLE_CHOICE",
            "prompt": "Powerhouse of the cell?",
            "options": [{"id": "a", "text": "Nucleus"}, {"id": "b", "text": "Mitochondria"}],
            "correctAnswer": "b",
        },
        {"type": "TEXT_ANSWER", "prompt": "Process plants use to make sugar?", "correctAnswer": "Photosynthesis"},
    ],
}


@pytest.mark.asyncio
async def test_learner_completes_a_mixed_course(
    instructor: AsyncClient, learner: AsyncClient, worker: AsyncClient, queue: InMemoryTranscodeQueue
) -> None:
    # Upload and transcode the lecture
    media_id = (
        await instructor.post(
            "/api/v1/media/presign", json={"fileName": "lecture.mp4", "mimeType": "video/mp4", "fileSize": 5_000_000}
        )
    ).json()["mediaId"]
    await instructor.post("/api/v1/media/complete", json={"mediaId": media_id})
    await worker.post(
        "/api/v1/transcode/callback",
        json={
            "jobId": queue.jobs[0].job_id,
            "status": "COMPLETED",
            "result": {"manifestKey": f"media/{media_id}/hls/master.m3u8", "duration": 1200},
        },
    )

    quiz = (await instructor.post("/api/v1/quizzes", json=QUIZ)).json()
    assignment = (await instructor.post("/api/v1/assignments", json={"title": "Essay", "maxMarks": 10})).json()

    course = (await instructor.post("/api/v1/courses", json={"title": "Cell Biology"})).json()
    module = (await instructor.post(f"/api/v1/courses/{course['id']}/modules", json={"title": "Week 1"})).json()
    lessons_url = f"/api/v1/courses/modules/{module['id']}/lessons"
    video = (await instructor.post(lessons_url, json={"kind": "VIDEO", "title": "Lecture", "mediaId": media_id})).json()
    await instructor.post(lessons_url, json={"kind": "QUIZ", "title": "Check", "quizId": quiz["id"]})
    await instructor.post(lessons_url, json={"kind": "ASSIGNMENT", "title": "Essay", "assignmentId": assignment["id"]})
    article = (await instructor.post(lessons_url, json={"kind": "ARTICLE", "title": "Notes", "content": "..."})).json()

    resp = await learner.post(f"/api/v1/courses/{course['id']}/enroll")
    assert resp.status_code == 201

    # Watch 90% of the lecture; duration comes from the transcoded media
    grant = (await learner.post("/api/v1/playback/token", json={"lessonId": video["id"]})).json()
    assert grant["legacySource"] is False
    beat = (
        await learner.post(
            f"/api/v1/playback/sessions/{grant['sessionId']}/heartbeat", json={"position": 1080, "watchTime": 1100}
        )
    ).json()
    assert beat["completionRate"] == 90.0
    assert beat["lessonCompleted"] is True

    ids = [q["id"] for q in quiz["questions"]]
    answers = {ids[0]: "b", ids[1]: "photosynthesis"}
    attempt = (await learner.post(f"/api/v1/quizzes/{quiz['id']}/submit", json={"answers": answers})).json()
    assert attempt["passed"] is True

    submission = (
        await learner.post(f"/api/v1/assignments/{assignment['id']}/presign", json={"fileName": "essay.pdf"})
    ).json()
    await learner.post(f"/api/v1/assignments/submissions/{submission['submissionId']}/complete")
    await instructor.post(f"/api/v1/assignments/submissions/{submission['submissionId']}/grade", json={"marks": 7})

    progress = (await learner.get(f"/api/v1/progress/courses/{course['id']}")).json()
    assert progress["completionPercentage"] == 75.0
    assert progress["status"] == "ACTIVE"

    resp = await learner.post(f"/api/v1/progress/lessons/{article['id']}/complete")

    assert resp.json()["completionPercentage"] == 100.0
    assert resp.json()["status"] == "COMPLETED"
    assert len(resp.json()["completedLessonIds"]) == 4
