"""Redis read-through cache for media records."""

import logging
from functools import lru_cache
from uuid import UUID

from redis.asyncio import Redis
from redis.exceptions import RedisError

from src.config import get_settings
from src.media.schemas import MediaResponse


logger = logging.getLogger(__name__)


class MediaCache:
    """Caches serialized media records under `media:{id}`.

    Every write in the registry invalidates the entry. Redis being down only
    costs a database read, so cache errors are logged and ignored.
    """

    def __init__(self, client: Redis | None, ttl_seconds: int) -> None:
        self._client = client
        self._ttl = ttl_seconds

    @property
    def enabled(self) -> bool:
        return self._client is not None

    @staticmethod
    def _key(media_id: UUID) -> str:
        return f"media:{media_id}"

    async def get(self, media_id: UUID) -> MediaResponse | None:
        if self._client is None:
            return None
        try:
            raw = await self._client.get(self._key(media_id))
        except RedisError as e:
            logger.warning(f"Media cache read failed for {media_id}: {e}")
            return None
        return MediaResponse.model_validate_json(raw) if raw else None

    async def set(self, media: MediaResponse) -> None:
        if self._client is None:
            return
        try:
            await self._client.set(self._key(media.id), media.model_dump_json(by_alias=True), ex=self._ttl)
        except RedisError as e:
            logger.warning(f"Media cache write failed for {media.id}: {e}")

    async def invalidate(self, media_id: UUID) -> None:
        if self._client is None:
            return
        try:
            await self._client.delete(self._key(media_id))
        except RedisError as e:
            logger.warning(f"Media cache invalidation failed for {media_id}: {e}")


@lru_cache
def get_media_cache() -> MediaCache:
    """Build the process-wide cache; disabled when REDIS_URL is empty."""
    settings = get_settings()
    client = Redis.from_url(settings.REDIS_URL, decode_responses=True) if settings.REDIS_URL else None
    return MediaCache(client, settings.MEDIA_CACHE_TTL_SECONDS)
