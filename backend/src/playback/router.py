import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response

from src.auth import CurrentAuth
from src.middleware.security import playback_rate_limit
from src.playback.schemas import (
    HeartbeatRequest,
    HeartbeatResponse,
    PlaybackGrantResponse,
    PlaybackSessionResponse,
    PlaybackTokenRequest,
)
from src.playback.service import PlaybackService
from src.storage import AbstractStorage, get_storage_provider


logger = logging.getLogger(__name__)

HLS_MEDIA_TYPE = "application/vnd.apple.mpegurl"


router = APIRouter(prefix="/api/v1/playback", tags=["playback"])


async def get_playback_service(
    auth: CurrentAuth,
    storage: Annotated[AbstractStorage, Depends(get_storage_provider)],
) -> PlaybackService:
    return PlaybackService(auth.session, storage)


Service = Annotated[PlaybackService, Depends(get_playback_service)]


@router.post("/token")
@playback_rate_limit
async def issue_playback_token(
    request: Request,  # noqa: ARG001
    body: PlaybackTokenRequest,
    auth: CurrentAuth,
    service: Service,
) -> PlaybackGrantResponse:
    """Signed, short-lived manifest URL for an enrolled viewer."""
    return await service.issue_playback_grant(auth, body.lesson_id, body.media_id)


@router.post("/sessions/{session_id}/heartbeat")
async def heartbeat(
    session_id: UUID, beat: HeartbeatRequest, auth: CurrentAuth, service: Service
) -> HeartbeatResponse:
    playback, completed = await service.heartbeat(auth, session_id, beat)
    session = PlaybackSessionResponse.model_validate(playback)
    return HeartbeatResponse(**session.model_dump(), lesson_completed=completed)


@router.post("/sessions/{session_id}/end")
async def end_session(session_id: UUID, auth: CurrentAuth, service: Service) -> PlaybackSessionResponse:
    playback = await service.end_session(auth, session_id)
    return PlaybackSessionResponse.model_validate(playback)


@router.get("/sessions/{session_id}/manifest", response_class=Response)
async def get_manifest(
    session_id: UUID, auth: CurrentAuth, service: Service, path: str | None = None
) -> Response:
    """HLS playlist for an open session with signed segment URLs."""
    content = await service.render_manifest(auth, session_id, path)
    return Response(content=content, media_type=HLS_MEDIA_TYPE, headers={"Cache-Control": "no-store"})
