"""Playback authorizer: entitlement checks, signed manifest URLs and heartbeats."""

import logging
import posixpath
from datetime import datetime, timedelta
from urllib.parse import quote
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import AuthContext
from src.config import get_settings
from src.courses.models import LessonKind
from src.courses.service import get_entitled_enrollment, get_lesson_with_course
from src.database.base import utcnow
from src.exceptions import (
    AuthorizationError,
    ConflictError,
    NotReadyError,
    ResourceNotFoundError,
    ValidationError,
)
from src.media.models import Media, MediaStatus
from src.playback.models import PlaybackSession
from src.playback.schemas import HeartbeatRequest, PlaybackGrantResponse
from src.playback.video_source import resolve_video_source
from src.progress.service import CompletionAggregator
from src.storage import AbstractStorage
from src.storage.exceptions import StorageFileNotFoundError


logger = logging.getLogger(__name__)


def completion_rate(position: float, duration: float | None) -> float | None:
    """Percent of the video reached, capped at 100; None when the duration is unknown."""
    if not duration or duration <= 0:
        return None
    return min(position / duration * 100, 100.0)


def is_idle_expired(session: PlaybackSession, now: datetime, idle_seconds: int) -> bool:
    return now - session.last_heartbeat_at > timedelta(seconds=idle_seconds)


def manifest_path(session_id: UUID) -> str:
    return f"/api/v1/playback/sessions/{session_id}/manifest"


def resolve_playlist_key(manifest_key: str, path: str | None) -> str:
    """Storage key of a playlist under the manifest's directory.

    `path` is relative to that directory; anything escaping it is rejected.
    """
    if not path:
        return manifest_key
    base_dir = posixpath.dirname(manifest_key)
    key = posixpath.normpath(posixpath.join(base_dir, path))
    inside = key.startswith(f"{base_dir}/") if base_dir else not key.startswith("..")
    if path.startswith("/") or not inside or not key.endswith(".m3u8"):
        msg = f"Playlist path '{path}' is outside this video"
        raise ValidationError(msg)
    return key


class PlaybackService:
    def __init__(self, session: AsyncSession, storage: AbstractStorage) -> None:
        self.session = session
        self.storage = storage

    async def _get_session(self, auth: AuthContext, session_id: UUID) -> PlaybackSession:
        playback = await self.session.get(PlaybackSession, session_id)
        if playback is None:
            raise ResourceNotFoundError("PlaybackSession", session_id)
        if playback.user_id != auth.user_id:
            msg = "This playback session belongs to another user"
            raise AuthorizationError(msg)
        return playback

    @staticmethod
    def _require_open(playback: PlaybackSession, now: datetime) -> None:
        if playback.ended_at is not None:
            msg = "Playback session has ended"
            raise ConflictError(msg, code="SESSION_CLOSED")
        if is_idle_expired(playback, now, get_settings().PLAYBACK_SESSION_IDLE_SECONDS):
            msg = "Playback session expired after inactivity; request a new playback token"
            raise ConflictError(msg, code="SESSION_EXPIRED")

    async def _open_session(
        self, user_id: UUID, lesson_id: UUID, media_id: UUID | None, now: datetime
    ) -> PlaybackSession | None:
        idle_cutoff = now - timedelta(seconds=get_settings().PLAYBACK_SESSION_IDLE_SECONDS)
        media_clause = PlaybackSession.media_id.is_(None) if media_id is None else PlaybackSession.media_id == media_id
        return await self.session.scalar(
            select(PlaybackSession)
            .where(
                PlaybackSession.user_id == user_id,
                PlaybackSession.lesson_id == lesson_id,
                media_clause,
                PlaybackSession.ended_at.is_(None),
                PlaybackSession.last_heartbeat_at >= idle_cutoff,
            )
            .order_by(PlaybackSession.started_at.desc())
            .limit(1)
        )

    async def issue_playback_grant(
        self, auth: AuthContext, lesson_id: UUID, media_id: UUID | None = None
    ) -> PlaybackGrantResponse:
        """Check entitlement and readiness, then sign a short-lived manifest URL.

        There is no renewal: once `expiresAt` passes the client asks again.
        """
        lesson, course_id = await get_lesson_with_course(self.session, lesson_id)
        if lesson.kind != LessonKind.VIDEO:
            msg = f"Lesson {lesson_id} is a {lesson.kind} lesson, not a video"
            raise ValidationError(msg)
        if media_id is not None and media_id != lesson.media_id:
            msg = f"Media {media_id} is not the video of lesson {lesson_id}"
            raise ValidationError(msg)

        media = await self.session.get(Media, lesson.media_id) if lesson.media_id else None
        if media_id is not None and media is None:
            raise ResourceNotFoundError("Media", media_id)

        try:
            await get_entitled_enrollment(self.session, auth.user_id, course_id)
        except AuthorizationError:
            logger.warning(f"Playback refused for user {auth.user_id} on lesson {lesson_id}: not enrolled")
            raise

        source = resolve_video_source(lesson, media)
        if source is None:
            if media is not None and media.status != MediaStatus.READY:
                logger.info(f"Playback refused for lesson {lesson_id}: media {media.id} is {media.status}")
                raise NotReadyError(media.id, media.status.value)
            if media is not None:
                msg = f"Media {media.id} has no playable manifest"
                raise ValidationError(msg)
            raise ResourceNotFoundError("Media", lesson.media_id or lesson_id)

        now = utcnow()
        ttl = get_settings().PLAYBACK_URL_TTL_SECONDS
        expires_at = now + timedelta(seconds=ttl)
        if source.is_legacy:
            signed_url = source.legacy_url
        else:
            signed_url = await self.storage.get_download_url(source.manifest_key, expires_in=ttl)
        session_media_id = None if source.is_legacy else source.media.id

        playback = await self._open_session(auth.user_id, lesson.id, session_media_id, now)
        if playback is None:
            playback = PlaybackSession(
                user_id=auth.user_id,
                media_id=session_media_id,
                lesson_id=lesson.id,
                course_id=course_id,
                legacy_source=source.is_legacy,
                started_at=now,
                last_heartbeat_at=now,
                expires_at=expires_at,
                watch_time=0.0,
                completion_rate=0.0,
                last_position=0.0,
            )
            self.session.add(playback)
        else:
            playback.expires_at = expires_at
        await self.session.commit()

        logger.info(f"Playback granted to user {auth.user_id} for lesson {lesson_id} until {expires_at.isoformat()}")
        return PlaybackGrantResponse(
            signed_url=signed_url,
            expires_at=expires_at,
            session_id=playback.id,
            legacy_source=source.is_legacy,
            manifest_url=None if source.is_legacy else manifest_path(playback.id),
        )

    async def heartbeat(
        self, auth: AuthContext, session_id: UUID, beat: HeartbeatRequest
    ) -> tuple[PlaybackSession, bool]:
        """Fold a client heartbeat into the session.

        Heartbeats may arrive out of order, so watch time and completion rate
        take the maximum ever reported. Reaching the completion threshold
        reports the lesson to the completion aggregator.

        Returns the session and whether the lesson is now complete.
        """
        playback = await self._get_session(auth, session_id)
        settings = get_settings()
        now = utcnow()
        self._require_open(playback, now)

        duration = beat.duration
        if duration is None and playback.media_id is not None:
            media = await self.session.get(Media, playback.media_id)
            duration = media.duration if media is not None else None
        if duration is None:
            lesson, _ = await get_lesson_with_course(self.session, playback.lesson_id)
            duration = lesson.duration

        rate = completion_rate(beat.position, duration)
        if rate is not None:
            playback.completion_rate = max(playback.completion_rate, rate)
        if beat.watch_time is not None:
            playback.watch_time = max(playback.watch_time, beat.watch_time)
        playback.last_position = beat.position
        playback.last_heartbeat_at = now

        aggregator = CompletionAggregator(self.session)
        await aggregator.record_activity(auth.user_id, playback.lesson_id, beat.position, playback.watch_time)

        completed = playback.completion_rate >= settings.VIDEO_COMPLETION_THRESHOLD
        if completed:
            await aggregator.complete_lesson(auth.user_id, playback.lesson_id)
        else:
            await self.session.commit()
        return playback, completed

    async def end_session(self, auth: AuthContext, session_id: UUID) -> PlaybackSession:
        playback = await self._get_session(auth, session_id)
        if playback.ended_at is None:
            playback.ended_at = utcnow()
            await self.session.commit()
        return playback

    async def render_manifest(self, auth: AuthContext, session_id: UUID, path: str | None = None) -> str:
        """The session's HLS playlist with every segment URL signed.

        Segment lines become short-lived download URLs. Variant playlists in a
        master manifest point back at this endpoint so their segments get
        signed too.
        """
        playback = await self._get_session(auth, session_id)
        self._require_open(playback, utcnow())
        if playback.legacy_source or playback.media_id is None:
            msg = "Legacy video sources have no managed manifest"
            raise ValidationError(msg)

        media = await self.session.get(Media, playback.media_id)
        if media is None:
            raise ResourceNotFoundError("Media", playback.media_id)
        if media.status != MediaStatus.READY or not media.manifest_key:
            raise NotReadyError(media.id, media.status.value)

        playlist_key = resolve_playlist_key(media.manifest_key, path)
        try:
            content = (await self.storage.download(playlist_key)).decode("utf-8")
        except StorageFileNotFoundError as e:
            raise ResourceNotFoundError("Playlist", playlist_key) from e
        return await self._sign_playlist(content, playlist_key, media.manifest_key, session_id)

    async def _sign_playlist(self, content: str, playlist_key: str, manifest_key: str, session_id: UUID) -> str:
        ttl = get_settings().PLAYBACK_URL_TTL_SECONDS
        playlist_dir = posixpath.dirname(playlist_key)
        manifest_dir = posixpath.dirname(manifest_key)
        lines = []
        for line in content.splitlines():
            uri = line.strip()
            # Tags, comments and absolute URLs pass through untouched
            if not uri or uri.startswith("#") or "://" in uri:
                lines.append(line)
                continue
            key = posixpath.normpath(posixpath.join(playlist_dir, uri))
            if key.endswith(".m3u8"):
                relative = posixpath.relpath(key, manifest_dir or ".")
                lines.append(f"{manifest_path(session_id)}?path={quote(relative)}")
            else:
                lines.append(await self.storage.get_download_url(key, expires_in=ttl))
        return "\n".join(lines) + "\n"
