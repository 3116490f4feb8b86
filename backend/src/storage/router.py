"""Serves the signed URLs issued by LocalStorage.

Only mounted behaviour matters in local development; with R2 the client
talks to the bucket directly and these routes answer 404.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response, status

from src.exceptions import AuthorizationError, ResourceNotFoundError

from .base import AbstractStorage
from .exceptions import StorageFileNotFoundError
from .factory import get_storage_provider
from .local import LocalStorage


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/files", tags=["files"])


def _local_storage(storage: AbstractStorage, key: str) -> LocalStorage:
    if not isinstance(storage, LocalStorage):
        raise ResourceNotFoundError("File", key)
    return storage


def _check_signature(storage: LocalStorage, key: str, method: str, expected_method: str, expires: int, signature: str) -> None:
    if method.upper() != expected_method or not storage.verify_signature(key, expected_method, expires, signature):
        logger.warning(f"Rejected {expected_method} for {key}: bad or expired signature")
        msg = "Signed URL is invalid or has expired"
        raise AuthorizationError(msg)


@router.put("/{key:path}", status_code=status.HTTP_204_NO_CONTENT)
async def put_file(
    key: str,
    request: Request,
    storage: Annotated[AbstractStorage, Depends(get_storage_provider)],
    method: Annotated[str, Query()],
    expires: Annotated[int, Query()],
    signature: Annotated[str, Query()],
) -> Response:
    """Accept a direct upload against a signed PUT URL."""
    local = _local_storage(storage, key)
    _check_signature(local, key, method, "PUT", expires, signature)
    await local.upload(await request.body(), key)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{key:path}")
async def get_file(
    key: str,
    storage: Annotated[AbstractStorage, Depends(get_storage_provider)],
    method: Annotated[str, Query()],
    expires: Annotated[int, Query()],
    signature: Annotated[str, Query()],
) -> Response:
    """Serve a file behind a signed GET URL."""
    local = _local_storage(storage, key)
    _check_signature(local, key, method, "GET", expires, signature)
    try:
        content = await local.download(key)
    except StorageFileNotFoundError as e:
        raise ResourceNotFoundError("File", key) from e
    media_type = "application/vnd.apple.mpegurl" if key.endswith(".m3u8") else "application/octet-stream"
    return Response(content=content, media_type=media_type)
