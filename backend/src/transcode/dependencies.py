"""FastAPI dependencies wiring the media pipeline for a request."""

import hmac
from typing import Annotated

from fastapi import Depends, Header

from src.config import get_settings
from src.database.session import DbSession
from src.exceptions import AuthenticationError
from src.media.cache import MediaCache, get_media_cache
from src.media.service import MediaRegistry
from src.storage import AbstractStorage, get_storage_provider
from src.transcode.queue import AbstractTranscodeQueue, get_transcode_queue
from src.transcode.service import TranscodeOrchestrator, build_pipeline


StorageDep = Annotated[AbstractStorage, Depends(get_storage_provider)]


async def get_orchestrator(
    session: DbSession,
    storage: StorageDep,
    cache: Annotated[MediaCache, Depends(get_media_cache)],
    queue: Annotated[AbstractTranscodeQueue, Depends(get_transcode_queue)],
) -> TranscodeOrchestrator:
    return build_pipeline(session, storage, cache, queue)


async def get_media_registry(
    orchestrator: Annotated[TranscodeOrchestrator, Depends(get_orchestrator)],
) -> MediaRegistry:
    return orchestrator.registry


async def verify_worker_secret(
    x_transcode_secret: Annotated[str | None, Header(alias="X-Transcode-Secret")] = None,
) -> None:
    """Only the worker pool knows the callback secret."""
    expected = get_settings().TRANSCODE_CALLBACK_SECRET.get_secret_value()
    if not x_transcode_secret or not hmac.compare_digest(x_transcode_secret, expected):
        msg = "Invalid or missing worker secret"
        raise AuthenticationError(msg)


Orchestrator = Annotated[TranscodeOrchestrator, Depends(get_orchestrator)]
Registry = Annotated[MediaRegistry, Depends(get_media_registry)]
