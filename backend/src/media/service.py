"""Media registry: upload grants, the status state machine and deletion."""

import logging
import re
import uuid
from datetime import timedelta
from typing import Protocol
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import AuthContext
from src.config import get_settings
from src.courses.models import Lesson
from src.database.base import utcnow
from src.database.pagination import Paginator
from src.exceptions import (
    AuthorizationError,
    ConflictError,
    InternalError,
    ResourceNotFoundError,
    ValidationError,
)
from src.media.cache import MediaCache
from src.media.models import ALLOWED_TRANSITIONS, Media, MediaStatus, TranscodeJobLog
from src.media.schemas import (
    MediaListResponse,
    MediaResponse,
    TranscodeResult,
    UploadGrantResponse,
)
from src.storage import AbstractStorage


logger = logging.getLogger(__name__)

KB = 1024
MB = 1024 * KB
GB = 1024 * MB

# Category -> mime types accepted for upload
ALLOWED_MIME_TYPES: dict[str, frozenset[str]] = {
    "video": frozenset({"video/mp4", "video/quicktime", "video/x-msvideo"}),
    "document": frozenset({"application/pdf"}),
    "image": frozenset({"image/png", "image/jpeg"}),
    "model": frozenset({"model/gltf-binary", "model/gltf+json"}),
}

SIZE_LIMITS: dict[str, int] = {
    "video": 5 * GB,
    "document": 100 * MB,
    "image": 50 * MB,
    "model": 50 * MB,
}

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._ -]+")


class TranscodeStarter(Protocol):
    async def start_job(self, media: Media) -> TranscodeJobLog: ...


def media_category(mime_type: str) -> str | None:
    """Return the upload category for a mime type, or None if it is not accepted."""
    for category, mime_types in ALLOWED_MIME_TYPES.items():
        if mime_type in mime_types:
            return category
    return None


def sanitize_file_name(file_name: str) -> str:
    """Reduce a client-supplied name to a safe basename for use in a storage key."""
    base = re.split(r"[\\/]", file_name.strip())[-1]
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", base).strip(" .")
    if not cleaned:
        msg = "File name is empty or contains no usable characters"
        raise ValidationError(msg)
    return cleaned[:255]


def validate_upload(mime_type: str, file_size: int) -> str:
    """Check the mime type against the allow-list and the size against its ceiling.

    Returns the category on success.
    """
    category = media_category(mime_type)
    if category is None:
        msg = f"File type {mime_type} is not allowed"
        raise ValidationError(msg)
    if file_size <= 0:
        msg = "File size must be positive"
        raise ValidationError(msg)
    limit = SIZE_LIMITS[category]
    if file_size > limit:
        msg = f"File size {file_size} exceeds the {limit // MB} MB limit for {category} files"
        raise ValidationError(msg)
    return category


def media_prefix(media_id: UUID) -> str:
    return f"media/{media_id}/"


def derived_keys(media: Media) -> list[str]:
    """Storage keys of the manifest and thumbnails produced by the transcoder."""
    keys = [media.manifest_key] if media.manifest_key else []
    keys.extend(media.thumbnails or [])
    return keys


class MediaRegistry:
    """Owns the Media lifecycle.

    Status changes go through `_transition`, which enforces
    ALLOWED_TRANSITIONS. The transcode callback path is the only writer of
    the manifest fields.
    """

    def __init__(
        self,
        session: AsyncSession,
        storage: AbstractStorage,
        cache: MediaCache,
        transcoder: TranscodeStarter | None = None,
    ) -> None:
        self.session = session
        self.storage = storage
        self.cache = cache
        self.transcoder = transcoder

    async def _get(self, media_id: UUID) -> Media:
        media = await self.session.get(Media, media_id)
        if media is None:
            raise ResourceNotFoundError("Media", media_id)
        return media

    def _transition(self, media: Media, new_status: MediaStatus) -> None:
        current = media.status
        if new_status not in ALLOWED_TRANSITIONS[current]:
            msg = f"Media {media.id} cannot move from {current} to {new_status}"
            raise ConflictError(msg, code="INVALID_MEDIA_TRANSITION")
        media.status = new_status
        logger.info(f"Media {media.id}: {current} -> {new_status}")

    async def grant_upload(
        self, file_name: str, mime_type: str, file_size: int, uploader_id: UUID
    ) -> UploadGrantResponse:
        """Register a new asset in UPLOADED state and return a pre-signed PUT URL."""
        validate_upload(mime_type, file_size)
        safe_name = sanitize_file_name(file_name)

        media_id = uuid.uuid4()
        storage_key = f"{media_prefix(media_id)}{safe_name}"
        expires_in = get_settings().UPLOAD_URL_TTL_SECONDS

        upload_url = await self.storage.generate_upload_url(storage_key, mime_type, expires_in)
        media = Media(
            id=media_id,
            original_name=safe_name,
            storage_key=storage_key,
            mime_type=mime_type,
            file_size=file_size,
            status=MediaStatus.UPLOADED,
            uploaded_by=uploader_id,
        )
        self.session.add(media)
        await self.session.commit()

        logger.info(f"Upload granted for media {media_id} ({mime_type}, {file_size} bytes) to user {uploader_id}")
        return UploadGrantResponse(
            upload_url=upload_url,
            media_id=media_id,
            expires_at=utcnow() + timedelta(seconds=expires_in),
        )

    async def complete_upload(self, media_id: UUID, uploader_id: UUID) -> Media:
        """Mark the direct upload finished.

        Videos go to PROCESSING and get a transcode job; anything else is
        playable as uploaded and goes straight to READY.
        """
        media = await self._get(media_id)
        if media.uploaded_by != uploader_id:
            msg = "Only the uploader can complete this upload"
            raise AuthorizationError(msg)
        if media.status != MediaStatus.UPLOADED:
            msg = f"Upload for media {media_id} was already completed (status: {media.status})"
            raise ConflictError(msg, code="UPLOAD_ALREADY_COMPLETED")

        if media.is_video:
            if self.transcoder is None:
                msg = "No transcoder configured for video uploads"
                raise InternalError(msg)
            self._transition(media, MediaStatus.PROCESSING)
            try:
                # start_job commits the transition together with the job row
                await self.transcoder.start_job(media)
            finally:
                await self.cache.invalidate(media.id)
        else:
            self._transition(media, MediaStatus.READY)
            await self.session.commit()
            await self.cache.invalidate(media.id)

        return media

    async def apply_transcode_result(
        self, media_id: UUID, result: TranscodeResult | None = None, error: str | None = None
    ) -> Media:
        """Record the outcome of a transcode on the media row.

        Idempotent: a media already in a terminal state is returned unchanged.
        """
        media = await self._get(media_id)
        target = MediaStatus.READY if result is not None else MediaStatus.FAILED

        if media.status in (MediaStatus.READY, MediaStatus.FAILED):
            if media.status == target:
                logger.info(f"Ignoring duplicate {target} result for media {media_id}")
            else:
                logger.warning(f"Ignoring {target} result for media {media_id} already {media.status}")
            return media

        if media.status != MediaStatus.PROCESSING:
            msg = f"Media {media_id} is not being processed (status: {media.status})"
            raise ConflictError(msg, code="INVALID_MEDIA_TRANSITION")

        self._transition(media, target)
        if result is not None:
            media.manifest_key = result.manifest_key
            media.thumbnails = list(result.thumbnails)
            media.duration = result.duration
            media.width = result.width
            media.height = result.height
        else:
            media.extra_metadata = {**media.extra_metadata, "lastError": error or "Transcode failed"}

        await self.session.commit()
        await self.cache.invalidate(media.id)
        return media

    async def retry_transcode(self, media_id: UUID) -> TranscodeJobLog:
        """Operator retry: FAILED -> PROCESSING with a new transcode attempt."""
        media = await self._get(media_id)
        if media.status != MediaStatus.FAILED:
            msg = f"Only failed media can be retried (status: {media.status})"
            raise ConflictError(msg, code="RETRY_NOT_ALLOWED")
        if self.transcoder is None:
            msg = "No transcoder configured for video uploads"
            raise InternalError(msg)
        self._transition(media, MediaStatus.PROCESSING)
        try:
            return await self.transcoder.start_job(media)
        finally:
            # After start_job commits, so a concurrent read cannot re-cache FAILED
            await self.cache.invalidate(media.id)

    async def get_media(self, media_id: UUID, auth: AuthContext) -> MediaResponse:
        cached = await self.cache.get(media_id)
        if cached is not None:
            auth.require_owner_or_staff(cached.uploaded_by, "media")
            return cached

        media = await self._get(media_id)
        auth.require_owner_or_staff(media.uploaded_by, "media")
        response = MediaResponse.model_validate(media)
        await self.cache.set(response)
        return response

    async def list_media(
        self,
        auth: AuthContext,
        page: int = 1,
        limit: int = 20,
        status: MediaStatus | None = None,
        mime_prefix: str | None = None,
    ) -> MediaListResponse:
        """List media, newest first. Learners only see their own uploads."""
        query = select(Media).order_by(Media.created_at.desc())
        if not auth.is_staff:
            query = query.where(Media.uploaded_by == auth.user_id)
        if status is not None:
            query = query.where(Media.status == status)
        if mime_prefix:
            query = query.where(Media.mime_type.startswith(mime_prefix))

        paginator = Paginator(page=page, limit=limit)
        items, total = await paginator.paginate(self.session, query)
        return MediaListResponse(
            items=[MediaResponse.model_validate(m) for m in items],
            total=total,
            page=paginator.page,
            per_page=paginator.limit,
            pages=paginator.page_count(total),
        )

    async def list_jobs(self, media_id: UUID, auth: AuthContext) -> list[TranscodeJobLog]:
        media = await self._get(media_id)
        auth.require_owner_or_staff(media.uploaded_by, "media")
        result = await self.session.execute(
            select(TranscodeJobLog).where(TranscodeJobLog.media_id == media_id).order_by(TranscodeJobLog.attempt)
        )
        return list(result.scalars().all())

    async def delete(self, media_id: UUID, auth: AuthContext) -> None:
        """Delete the row and purge the original plus every derived object."""
        media = await self._get(media_id)
        if media.uploaded_by != auth.user_id and not auth.is_admin:
            msg = "Only the uploader or an admin can delete media"
            raise AuthorizationError(msg)

        prefix = media_prefix(media.id)
        removed = await self.storage.delete_prefix(prefix)
        # Transcode outputs the worker reported outside the media prefix
        for key in derived_keys(media):
            if not key.startswith(prefix):
                await self.storage.delete(key)
                removed += 1
        await self.session.execute(update(Lesson).where(Lesson.media_id == media.id).values(media_id=None))
        await self.session.delete(media)
        await self.session.commit()
        await self.cache.invalidate(media_id)
        logger.info(f"Deleted media {media_id} and {removed} stored objects")
