"""Transcode orchestration: job attempts, worker callbacks, retries and the watchdog."""

import logging
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import AuthContext
from src.config import get_settings
from src.database.base import utcnow
from src.exceptions import ResourceNotFoundError
from src.media.cache import MediaCache
from src.media.models import JobStatus, Media, MediaStatus, TranscodeJobLog
from src.media.service import MediaRegistry
from src.storage import AbstractStorage
from src.transcode.queue import AbstractTranscodeQueue, QueueError, TranscodeJob
from src.transcode.schemas import CallbackStatus, SweepResponse, TranscodeCallback, TranscodeStatsResponse


logger = logging.getLogger(__name__)


def job_id_for(media_id: UUID, attempt: int) -> str:
    return f"transcode-{media_id}-{attempt}"


def _elapsed_ms(start: datetime, end: datetime) -> int:
    return max(int((end - start).total_seconds() * 1000), 0)


class TranscodeOrchestrator:
    """Drives transcode attempts for PROCESSING media.

    Workers deliver callbacks at least once, so `handle_callback` checks the
    job row before touching anything.
    """

    def __init__(self, session: AsyncSession, queue: AbstractTranscodeQueue, registry: MediaRegistry) -> None:
        self.session = session
        self.queue = queue
        self.registry = registry

    async def _next_attempt(self, media_id: UUID) -> int:
        latest = await self.session.scalar(
            select(func.max(TranscodeJobLog.attempt)).where(TranscodeJobLog.media_id == media_id)
        )
        return (latest or 0) + 1

    async def start_job(self, media: Media) -> TranscodeJobLog:
        """Record a new attempt and hand it to the workers.

        The job row is committed before enqueueing so a fast worker never
        reports on a job we have not stored. If the queue refuses the job the
        attempt and the media both end FAILED and the error propagates.
        """
        attempt = await self._next_attempt(media.id)
        log = TranscodeJobLog(
            media_id=media.id,
            job_id=job_id_for(media.id, attempt),
            attempt=attempt,
            status=JobStatus.QUEUED,
            queued_at=utcnow(),
        )
        self.session.add(log)
        await self.session.commit()

        job = TranscodeJob(job_id=log.job_id, media_id=media.id, storage_key=media.storage_key, attempt=attempt)
        try:
            await self.queue.enqueue(job)
        except QueueError as e:
            logger.exception(f"Could not enqueue {log.job_id}: {e}")
            log.status = JobStatus.FAILED
            log.completed_at = utcnow()
            log.error = e.message
            await self.registry.apply_transcode_result(media.id, error=e.message)
            raise

        logger.info(f"Started transcode attempt {attempt} for media {media.id} as {log.job_id}")
        return log

    async def get_job(self, job_id: str) -> TranscodeJobLog:
        log = await self.session.scalar(select(TranscodeJobLog).where(TranscodeJobLog.job_id == job_id))
        if log is None:
            raise ResourceNotFoundError("TranscodeJob", job_id)
        return log

    async def handle_callback(self, callback: TranscodeCallback) -> TranscodeJobLog:
        """Apply a worker report. Reports for finished jobs are ignored."""
        log = await self.get_job(callback.job_id)
        if log.status.is_terminal:
            logger.info(f"Ignoring {callback.status} callback for finished job {log.job_id} ({log.status})")
            return log

        now = utcnow()
        if callback.status == CallbackStatus.ACTIVE:
            log.status = JobStatus.ACTIVE
            if log.started_at is None:
                log.started_at = now
            await self.session.commit()
            return log

        log.status = JobStatus.COMPLETED if callback.status == CallbackStatus.COMPLETED else JobStatus.FAILED
        log.completed_at = now
        log.duration_ms = _elapsed_ms(log.started_at or log.queued_at, now)
        if log.status == JobStatus.FAILED:
            log.error = callback.error or "Transcode failed"
        logger.info(f"Job {log.job_id} finished {log.status} in {log.duration_ms} ms")

        try:
            await self.registry.apply_transcode_result(
                log.media_id,
                result=callback.result if log.status == JobStatus.COMPLETED else None,
                error=log.error,
            )
        except ResourceNotFoundError:
            logger.warning(f"Media {log.media_id} was deleted before job {log.job_id} reported back")
        await self.session.commit()
        return log

    async def retry(self, media_id: UUID, auth: AuthContext) -> TranscodeJobLog:
        """Operator retry of a FAILED media: new attempt, media back to PROCESSING."""
        auth.require_staff()
        logger.info(f"User {auth.user_id} retrying transcode for media {media_id}")
        return await self.registry.retry_transcode(media_id)

    async def sweep_stuck_jobs(self, now: datetime | None = None) -> SweepResponse:
        """Time out attempts older than the SLA and requeue their media."""
        now = now or utcnow()
        cutoff = now - timedelta(seconds=get_settings().TRANSCODE_JOB_SLA_SECONDS)
        result = await self.session.execute(
            select(TranscodeJobLog)
            .where(TranscodeJobLog.status.in_([JobStatus.QUEUED, JobStatus.ACTIVE]))
            .where(TranscodeJobLog.queued_at < cutoff)
            .order_by(TranscodeJobLog.queued_at)
        )
        stuck = list(result.scalars().all())

        response = SweepResponse()
        for log in stuck:
            log.status = JobStatus.TIMED_OUT
            log.completed_at = now
            log.duration_ms = _elapsed_ms(log.started_at or log.queued_at, now)
            log.error = "Job exceeded the transcode SLA"
            response.timed_out.append(log.job_id)
            logger.warning(f"Transcode job {log.job_id} timed out")

            media = await self.session.get(Media, log.media_id)
            if media is None or media.status != MediaStatus.PROCESSING:
                await self.session.commit()
                continue
            new_log = await self.start_job(media)
            response.requeued.append(new_log.job_id)

        return response

    async def stats(self) -> TranscodeStatsResponse:
        result = await self.session.execute(
            select(TranscodeJobLog.status, func.count()).group_by(TranscodeJobLog.status)
        )
        counts = {status: 0 for status in JobStatus}
        for status, count in result.all():
            counts[JobStatus(status)] = count
        return TranscodeStatsResponse(counts=counts, total=sum(counts.values()))


def build_pipeline(
    session: AsyncSession,
    storage: AbstractStorage,
    cache: MediaCache,
    queue: AbstractTranscodeQueue,
) -> TranscodeOrchestrator:
    """Wire a registry and an orchestrator that share one session."""
    registry = MediaRegistry(session, storage, cache)
    orchestrator = TranscodeOrchestrator(session, queue, registry)
    registry.transcoder = orchestrator
    return orchestrator
