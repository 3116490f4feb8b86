"""Local filesystem storage implementation.

Local URLs keep the pre-signed contract of the cloud provider: each URL
carries the HTTP method, an expiry timestamp and an HMAC over both and the
key. `src.storage.router` serves them.
"""

import hashlib
import hmac
import shutil
import time
from pathlib import Path
from urllib.parse import quote, urlencode

import aiofiles
from fastapi.concurrency import run_in_threadpool

from .base import AbstractStorage
from .exceptions import FileDeleteError, FileUploadError, StorageFileNotFoundError


def _sign(secret: str, key: str, method: str, expires: int) -> str:
    message = f"{method.upper()}\n{key}\n{expires}".encode()
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class LocalStorage(AbstractStorage):
    """Local filesystem storage provider."""

    def __init__(self, base_path: str, base_url: str, signing_secret: str) -> None:
        """Initialize local storage.

        Args:
            base_path: Base directory path for storing files
            base_url: Public origin the signed URLs point at
            signing_secret: Secret used to sign URLs
        """
        self.base_path = Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")
        self._secret = signing_secret

    def _get_full_path(self, key: str) -> Path:
        path = (self.base_path / key).resolve()
        if not path.is_relative_to(self.base_path):
            msg = f"Storage key escapes the storage root: {key}"
            raise StorageFileNotFoundError(msg)
        return path

    def _signed_url(self, key: str, method: str, expires_in: int) -> str:
        expires = int(time.time()) + expires_in
        query = urlencode({"method": method, "expires": expires, "signature": _sign(self._secret, key, method, expires)})
        return f"{self.base_url}/api/v1/files/{quote(key)}?{query}"

    def verify_signature(self, key: str, method: str, expires: int, signature: str) -> bool:
        """Return True if the signature matches and has not expired."""
        if expires < int(time.time()):
            return False
        expected = _sign(self._secret, key, method, expires)
        return hmac.compare_digest(expected, signature)

    async def generate_upload_url(self, key: str, content_type: str, expires_in: int) -> str:  # noqa: ARG002
        return self._signed_url(key, "PUT", expires_in)

    async def get_download_url(self, key: str, expires_in: int = 3600) -> str:
        return self._signed_url(key, "GET", expires_in)

    async def upload(self, file_content: bytes, key: str) -> None:
        """Upload file content to local storage.

        Raises
        ------
            FileUploadError: If the upload fails.
        """
        try:
            path = self._get_full_path(key)
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(file_content)
        except OSError as e:
            msg = f"Failed to upload file locally: {key}"
            raise FileUploadError(msg) from e

    async def download(self, key: str) -> bytes:
        """Return file bytes for local storage."""
        path = self._get_full_path(key)
        if not path.exists():
            msg = f"File not found: {key}"
            raise StorageFileNotFoundError(msg)
        async with aiofiles.open(path, "rb") as file_obj:
            return await file_obj.read()

    async def delete(self, key: str) -> None:
        """Delete a file from local storage.

        Raises
        ------
            FileDeleteError: If the deletion fails.
        """
        try:
            path = self._get_full_path(key)
            if path.exists():
                path.unlink()
        except OSError as e:
            msg = f"Failed to delete file locally: {key}"
            raise FileDeleteError(msg) from e

    async def delete_prefix(self, prefix: str) -> int:
        root = self._get_full_path(prefix)
        if not root.exists():
            return 0
        try:
            if root.is_file():
                root.unlink()
                return 1
            count = sum(1 for p in root.rglob("*") if p.is_file())
            await run_in_threadpool(shutil.rmtree, root)
        except OSError as e:
            msg = f"Failed to delete local prefix: {prefix}"
            raise FileDeleteError(msg) from e
        return count
