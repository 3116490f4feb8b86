"""Hand-off to the external transcode worker pool."""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache
from uuid import UUID

from redis.asyncio import Redis
from redis.exceptions import RedisError

from src.config import get_settings
from src.exceptions import InternalError


logger = logging.getLogger(__name__)


class QueueError(InternalError):
    """Raised when a job cannot be handed to the worker pool."""


@dataclass(frozen=True)
class TranscodeJob:
    job_id: str
    media_id: UUID
    storage_key: str
    attempt: int

    def to_message(self) -> str:
        return json.dumps(
            {
                "jobId": self.job_id,
                "mediaId": str(self.media_id),
                "storageKey": self.storage_key,
                "attempt": self.attempt,
            }
        )


class AbstractTranscodeQueue(ABC):
    """Fire-and-forget enqueue; results come back through the callback route."""

    @abstractmethod
    async def enqueue(self, job: TranscodeJob) -> None:
        """Hand a job to the workers.

        Raises
        ------
            QueueError: If the job could not be enqueued.
        """
        raise NotImplementedError


class RedisTranscodeQueue(AbstractTranscodeQueue):
    """Pushes JSON job messages onto a Redis list the workers BRPOP from."""

    def __init__(self, client: Redis, queue_name: str) -> None:
        self.client = client
        self.queue_name = queue_name

    async def enqueue(self, job: TranscodeJob) -> None:
        try:
            await self.client.lpush(self.queue_name, job.to_message())
        except RedisError as e:
            msg = f"Failed to enqueue transcode job {job.job_id}"
            raise QueueError(msg) from e
        logger.info(f"Enqueued transcode job {job.job_id} on {self.queue_name}")


class InMemoryTranscodeQueue(AbstractTranscodeQueue):
    """Keeps jobs in process. Local development and tests drive callbacks by hand."""

    def __init__(self) -> None:
        self.jobs: list[TranscodeJob] = []

    async def enqueue(self, job: TranscodeJob) -> None:
        self.jobs.append(job)
        logger.info(f"Queued transcode job {job.job_id} in memory")


@lru_cache
def get_transcode_queue() -> AbstractTranscodeQueue:
    """Get the configured queue instance."""
    settings = get_settings()
    if settings.TRANSCODE_QUEUE_PROVIDER == "redis":
        if not settings.REDIS_URL:
            msg = "TRANSCODE_QUEUE_PROVIDER=redis requires REDIS_URL"
            raise ValueError(msg)
        client = Redis.from_url(settings.REDIS_URL, decode_responses=True)
        return RedisTranscodeQueue(client, settings.TRANSCODE_QUEUE_NAME)
    return InMemoryTranscodeQueue()
