import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, Request, status

from src.auth import CurrentAuth
from src.media.models import MediaStatus
from src.media.schemas import (
    CompleteUploadRequest,
    MediaListResponse,
    MediaResponse,
    TranscodeJobResponse,
    UploadGrantRequest,
    UploadGrantResponse,
)
from src.middleware.security import upload_rate_limit
from src.transcode.dependencies import Registry


logger = logging.getLogger(__name__)


router = APIRouter(prefix="/api/v1/media", tags=["media"])


@router.post("/presign", status_code=status.HTTP_201_CREATED)
@upload_rate_limit
async def presign_upload(
    request: Request,  # noqa: ARG001
    body: UploadGrantRequest,
    auth: CurrentAuth,
    registry: Registry,
) -> UploadGrantResponse:
    """Issue a pre-signed PUT URL; the client uploads the bytes directly."""
    return await registry.grant_upload(
        file_name=body.file_name,
        mime_type=body.mime_type,
        file_size=body.file_size,
        uploader_id=auth.user_id,
    )


@router.post("/complete")
async def complete_upload(body: CompleteUploadRequest, auth: CurrentAuth, registry: Registry) -> MediaResponse:
    """Finish an upload: videos start transcoding, everything else is READY."""
    media = await registry.complete_upload(body.media_id, auth.user_id)
    return MediaResponse.model_validate(media)


@router.get("")
async def list_media(
    auth: CurrentAuth,
    registry: Registry,
    page: Annotated[int, Query(ge=1, description="Page number")] = 1,
    limit: Annotated[int, Query(ge=1, le=100, description="Items per page")] = 20,
    media_status: Annotated[MediaStatus | None, Query(alias="status")] = None,
    mime_type: Annotated[str | None, Query(alias="mimeType", description="Mime type prefix, e.g. video/")] = None,
) -> MediaListResponse:
    return await registry.list_media(auth, page=page, limit=limit, status=media_status, mime_prefix=mime_type)


@router.get("/{media_id}")
async def get_media(media_id: UUID, auth: CurrentAuth, registry: Registry) -> MediaResponse:
    return await registry.get_media(media_id, auth)


@router.get("/{media_id}/jobs")
async def list_media_jobs(media_id: UUID, auth: CurrentAuth, registry: Registry) -> list[TranscodeJobResponse]:
    """Transcode attempt history, oldest first."""
    jobs = await registry.list_jobs(media_id, auth)
    return [TranscodeJobResponse.model_validate(job) for job in jobs]


@router.delete("/{media_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_media(media_id: UUID, auth: CurrentAuth, registry: Registry) -> None:
    """Delete media and every stored object derived from it."""
    await registry.delete(media_id, auth)
