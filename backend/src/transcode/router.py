import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status

from src.auth import CurrentAuth, Role
from src.media.schemas import TranscodeJobResponse
from src.transcode.dependencies import Orchestrator, verify_worker_secret
from src.transcode.schemas import SweepResponse, TranscodeCallback, TranscodeStatsResponse


logger = logging.getLogger(__name__)


router = APIRouter(prefix="/api/v1/transcode", tags=["transcode"])


@router.post("/callback", dependencies=[Depends(verify_worker_secret)])
async def transcode_callback(callback: TranscodeCallback, orchestrator: Orchestrator) -> TranscodeJobResponse:
    """Worker progress and outcome reports. Safe to deliver more than once."""
    log = await orchestrator.handle_callback(callback)
    return TranscodeJobResponse.model_validate(log)


@router.post("/media/{media_id}/retry", status_code=status.HTTP_202_ACCEPTED)
async def retry_transcode(media_id: UUID, auth: CurrentAuth, orchestrator: Orchestrator) -> TranscodeJobResponse:
    """Re-enqueue a failed media as a new attempt."""
    log = await orchestrator.retry(media_id, auth)
    return TranscodeJobResponse.model_validate(log)


@router.post("/watchdog/sweep")
async def sweep_stuck_jobs(auth: CurrentAuth, orchestrator: Orchestrator) -> SweepResponse:
    """Time out and requeue jobs stuck past the SLA."""
    auth.require_role(Role.ADMIN)
    return await orchestrator.sweep_stuck_jobs()


@router.get("/stats")
async def transcode_stats(auth: CurrentAuth, orchestrator: Orchestrator) -> TranscodeStatsResponse:
    """Job counts per status."""
    auth.require_staff()
    return await orchestrator.stats()
