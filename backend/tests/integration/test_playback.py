"""Playback grants and heartbeats."""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import Role
from src.courses.models import EnrollmentStatus, LessonKind
from src.database.base import utcnow
from src.exceptions import ConflictError
from src.media.models import MediaStatus
from src.playback.models import PlaybackSession
from src.playback.schemas import HeartbeatRequest
from src.playback.service import PlaybackService

from factories import LEARNER_ID, OTHER_LEARNER_ID, RecordingStorage, create_course, create_media, enroll, make_auth


async def _video_course(session: AsyncSession, status: MediaStatus = MediaStatus.READY, **lesson: object):
    media = await create_media(session, status=status)
    course, lessons = await create_course(
        session,
        {"kind": LessonKind.VIDEO, "media_id": media.id, "duration": 600, **lesson},
        {"kind": LessonKind.ARTICLE},
    )
    return media, course, lessons


@pytest.mark.asyncio
async def test_grant_signs_the_manifest_for_enrolled_learners(
    db_session: AsyncSession, learner: AsyncClient, storage: RecordingStorage
) -> None:
    media, course, lessons = await _video_course(db_session)
    await enroll(db_session, course.id)

    resp = await learner.post("/api/v1/playback/token", json={"lessonId": str(lessons[0].id)})

    assert resp.status_code == 200
    body = resp.json()
    assert body["signedUrl"].startswith(f"https://storage.test/{media.manifest_key}")
    assert body["legacySource"] is False
    assert storage.download_urls == [media.manifest_key]


@pytest.mark.asyncio
async def test_grant_refused_without_enrollment(db_session: AsyncSession, learner: AsyncClient) -> None:
    _, _, lessons = await _video_course(db_session)

    resp = await learner.post("/api/v1/playback/token", json={"lessonId": str(lessons[0].id)})

    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [EnrollmentStatus.SUSPENDED, EnrollmentStatus.CANCELLED])
async def test_grant_refused_for_inactive_enrollment(
    db_session: AsyncSession, learner: AsyncClient, status: EnrollmentStatus
) -> None:
    _, course, lessons = await _video_course(db_session)
    await enroll(db_session, course.id, status=status)

    resp = await learner.post("/api/v1/playback/token", json={"lessonId": str(lessons[0].id)})

    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_processing_media_is_not_ready(db_session: AsyncSession, learner: AsyncClient) -> None:
    media, course, lessons = await _video_course(db_session, status=MediaStatus.PROCESSING)
    await enroll(db_session, course.id)

    resp = await learner.post("/api/v1/playback/token", json={"lessonId": str(lessons[0].id)})

    assert resp.status_code == 409
    error = resp.json()["error"]
    assert error["code"] == "MEDIA_PROCESSING"
    assert error["metadata"] == {"media_id": str(media.id), "status": "PROCESSING", "retryable": True}


@pytest.mark.asyncio
async def test_failed_media_is_not_retryable(db_session: AsyncSession, learner: AsyncClient) -> None:
    _, course, lessons = await _video_course(db_session, status=MediaStatus.FAILED)
    await enroll(db_session, course.id)

    resp = await learner.post("/api/v1/playback/token", json={"lessonId": str(lessons[0].id)})

    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "MEDIA_FAILED"
    assert resp.json()["error"]["metadata"]["retryable"] is False


@pytest.mark.asyncio
async def test_processing_media_does_not_fall_back_to_legacy_url(
    db_session: AsyncSession, learner: AsyncClient
) -> None:
    media, course, lessons = await _video_course(
        db_session, status=MediaStatus.PROCESSING, video_url="https://cdn.test/legacy.mp4"
    )
    await enroll(db_session, course.id)

    resp = await learner.post(
        "/api/v1/playback/token", json={"lessonId": str(lessons[0].id), "mediaId": str(media.id)}
    )

    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "MEDIA_PROCESSING"


@pytest.mark.asyncio
async def test_legacy_url_plays_for_lessons_without_media(db_session: AsyncSession, learner: AsyncClient) -> None:
    course, lessons = await create_course(
        db_session, {"kind": LessonKind.VIDEO, "video_url": "https://cdn.test/legacy.mp4", "duration": 600}
    )
    await enroll(db_session, course.id)

    resp = await learner.post("/api/v1/playback/token", json={"lessonId": str(lessons[0].id)})

    assert resp.status_code == 200
    assert resp.json()["signedUrl"] == "https://cdn.test/legacy.mp4"
    assert resp.json()["legacySource"] is True


@pytest.mark.asyncio
async def test_grant_rejects_wrong_lesson_or_media(db_session: AsyncSession, learner: AsyncClient) -> None:
    other_media = await create_media(db_session)
    _, course, lessons = await _video_course(db_session)
    await enroll(db_session, course.id)

    resp = await learner.post("/api/v1/playback/token", json={"lessonId": str(lessons[1].id)})
    assert resp.status_code == 400

    resp = await learner.post(
        "/api/v1/playback/token", json={"lessonId": str(lessons[0].id), "mediaId": str(other_media.id)}
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_open_session_is_reused(db_session: AsyncSession, learner: AsyncClient) -> None:
    _, course, lessons = await _video_course(db_session)
    await enroll(db_session, course.id)
    body = {"lessonId": str(lessons[0].id)}

    first = (await learner.post("/api/v1/playback/token", json=body)).json()
    second = (await learner.post("/api/v1/playback/token", json=body)).json()

    assert first["sessionId"] == second["sessionId"]


@pytest.mark.asyncio
async def test_heartbeats_keep_the_maximum(db_session: AsyncSession, learner: AsyncClient) -> None:
    _, course, lessons = await _video_course(db_session)
    await enroll(db_session, course.id)
    grant = (await learner.post("/api/v1/playback/token", json={"lessonId": str(lessons[0].id)})).json()
    url = f"/api/v1/playback/sessions/{grant['sessionId']}/heartbeat"

    resp = await learner.post(url, json={"position": 300, "watchTime": 320})
    assert resp.json()["completionRate"] == 50.0

    # An older heartbeat arriving late
    resp = await learner.post(url, json={"position": 120, "watchTime": 130})

    body = resp.json()
    assert body["completionRate"] == 50.0
    assert body["watchTime"] == 320
    assert body["lastPosition"] == 120
    assert body["lessonCompleted"] is False


@pytest.mark.asyncio
async def test_crossing_the_threshold_completes_the_lesson(db_session: AsyncSession, learner: AsyncClient) -> None:
    _, course, lessons = await _video_course(db_session)
    await enroll(db_session, course.id)
    grant = (await learner.post("/api/v1/playback/token", json={"lessonId": str(lessons[0].id)})).json()

    resp = await learner.post(
        f"/api/v1/playback/sessions/{grant['sessionId']}/heartbeat", json={"position": 570, "watchTime": 575}
    )

    assert resp.json()["completionRate"] == 95.0
    assert resp.json()["lessonCompleted"] is True
    progress = (await learner.get(f"/api/v1/progress/courses/{course.id}")).json()
    assert progress["completionPercentage"] == 50.0
    assert progress["completedLessonIds"] == [str(lessons[0].id)]


@pytest.mark.asyncio
async def test_heartbeat_belongs_to_the_session_owner(
    db_session: AsyncSession, learner: AsyncClient, client_factory
) -> None:
    _, course, lessons = await _video_course(db_session)
    await enroll(db_session, course.id)
    grant = (await learner.post("/api/v1/playback/token", json={"lessonId": str(lessons[0].id)})).json()

    intruder = await client_factory(OTHER_LEARNER_ID, Role.LEARNER)
    resp = await intruder.post(f"/api/v1/playback/sessions/{grant['sessionId']}/heartbeat", json={"position": 10})

    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_ended_session_rejects_heartbeats(db_session: AsyncSession, learner: AsyncClient) -> None:
    _, course, lessons = await _video_course(db_session)
    await enroll(db_session, course.id)
    grant = (await learner.post("/api/v1/playback/token", json={"lessonId": str(lessons[0].id)})).json()

    resp = await learner.post(f"/api/v1/playback/sessions/{grant['sessionId']}/end")
    assert resp.json()["endedAt"] is not None

    resp = await learner.post(f"/api/v1/playback/sessions/{grant['sessionId']}/heartbeat", json={"position": 10})
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "SESSION_CLOSED"


@pytest.mark.asyncio
async def test_idle_session_expires(db_session: AsyncSession, storage: RecordingStorage) -> None:
    _, course, lessons = await _video_course(db_session)
    await enroll(db_session, course.id)
    auth = make_auth(db_session, LEARNER_ID)
    service = PlaybackService(db_session, storage)
    grant = await service.issue_playback_grant(auth, lessons[0].id)

    playback = await db_session.get(PlaybackSession, grant.session_id)
    playback.last_heartbeat_at = utcnow() - timedelta(hours=2)
    await db_session.commit()

    with pytest.raises(ConflictError) as exc_info:
        await service.heartbeat(auth, grant.session_id, HeartbeatRequest(position=30))
    assert exc_info.value.code == "SESSION_EXPIRED"

    # A fresh token opens a new session instead of reviving the idle one
    renewed = await service.issue_playback_grant(auth, lessons[0].id)
    assert renewed.session_id != grant.session_id


def _store_hls(storage: RecordingStorage, media_key: str) -> str:
    hls_dir = media_key.rsplit("/", 1)[0]
    storage.objects[media_key] = b"#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=800000\n720p/index.m3u8\n"
    storage.objects[f"{hls_dir}/720p/index.m3u8"] = (
        b"#EXTM3U\n#EXT-X-TARGETDURATION:6\n#EXTINF:6.0,\nseg-0.ts\n#EXTINF:6.0,\nseg-1.ts\n#EXT-X-ENDLIST\n"
    )
    return hls_dir


@pytest.mark.asyncio
async def test_manifest_signs_every_segment(
    db_session: AsyncSession, learner: AsyncClient, storage: RecordingStorage
) -> None:
    media, course, lessons = await _video_course(db_session)
    await enroll(db_session, course.id)
    hls_dir = _store_hls(storage, media.manifest_key)
    grant = (await learner.post("/api/v1/playback/token", json={"lessonId": str(lessons[0].id)})).json()
    assert grant["manifestUrl"] == f"/api/v1/playback/sessions/{grant['sessionId']}/manifest"

    resp = await learner.get(grant["manifestUrl"])

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("application/vnd.apple.mpegurl")
    assert resp.headers["cache-control"] == "no-store"
    variant_url = f"{grant['manifestUrl']}?path=720p/index.m3u8"
    assert resp.text.splitlines() == ["#EXTM3U", "#EXT-X-STREAM-INF:BANDWIDTH=800000", variant_url]

    resp = await learner.get(variant_url)

    assert resp.status_code == 200
    segments = [line for line in resp.text.splitlines() if not line.startswith("#")]
    assert [url.split("?")[0] for url in segments] == [
        f"https://storage.test/{hls_dir}/720p/seg-0.ts",
        f"https://storage.test/{hls_dir}/720p/seg-1.ts",
    ]
    assert all("method=GET" in url for url in segments)
    assert "#EXT-X-ENDLIST" in resp.text


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["../../other/master.m3u8", "/media/x/hls/master.m3u8", "720p/seg-0.ts"])
async def test_manifest_stays_inside_the_video(
    db_session: AsyncSession, learner: AsyncClient, storage: RecordingStorage, path: str
) -> None:
    media, course, lessons = await _video_course(db_session)
    await enroll(db_session, course.id)
    _store_hls(storage, media.manifest_key)
    grant = (await learner.post("/api/v1/playback/token", json={"lessonId": str(lessons[0].id)})).json()

    resp = await learner.get(grant["manifestUrl"], params={"path": path})

    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_manifest_belongs_to_the_session_owner(
    db_session: AsyncSession, learner: AsyncClient, storage: RecordingStorage, client_factory
) -> None:
    media, course, lessons = await _video_course(db_session)
    await enroll(db_session, course.id)
    _store_hls(storage, media.manifest_key)
    grant = (await learner.post("/api/v1/playback/token", json={"lessonId": str(lessons[0].id)})).json()

    intruder = await client_factory(OTHER_LEARNER_ID, Role.LEARNER)
    resp = await intruder.get(grant["manifestUrl"])

    assert resp.status_code == 403
    assert storage.download_urls == [media.manifest_key]


@pytest.mark.asyncio
async def test_ended_session_stops_serving_the_manifest(
    db_session: AsyncSession, learner: AsyncClient, storage: RecordingStorage
) -> None:
    media, course, lessons = await _video_course(db_session)
    await enroll(db_session, course.id)
    _store_hls(storage, media.manifest_key)
    grant = (await learner.post("/api/v1/playback/token", json={"lessonId": str(lessons[0].id)})).json()
    await learner.post(f"/api/v1/playback/sessions/{grant['sessionId']}/end")

    resp = await learner.get(grant["manifestUrl"])

    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "SESSION_CLOSED"
