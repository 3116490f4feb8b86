"""Periodic sweep for transcode jobs stuck past their SLA."""

import asyncio
import logging

from src.database.session import session_scope
from src.media.cache import get_media_cache
from src.storage import get_storage_provider
from src.transcode.queue import get_transcode_queue
from src.transcode.service import build_pipeline


logger = logging.getLogger(__name__)


async def sweep_once() -> None:
    async with session_scope() as session:
        orchestrator = build_pipeline(session, get_storage_provider(), get_media_cache(), get_transcode_queue())
        result = await orchestrator.sweep_stuck_jobs()
        if result.timed_out:
            logger.warning(f"Watchdog timed out {len(result.timed_out)} jobs, requeued {len(result.requeued)}")


async def run_watchdog(interval_seconds: int) -> None:
    """Sweep forever; a failed sweep is logged and retried on the next tick."""
    logger.info(f"Transcode watchdog running every {interval_seconds}s")
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await sweep_once()
        except Exception as e:
            logger.exception(f"Transcode watchdog sweep failed: {e}")
