"""Cloudflare R2 storage implementation using aioboto3."""

from typing import Any

import aioboto3
from botocore.client import Config
from botocore.exceptions import ClientError

from .base import AbstractStorage
from .exceptions import (
    FileDeleteError,
    FileDownloadError,
    FileUploadError,
    StorageFileNotFoundError,
)


# S3 DeleteObjects accepts at most this many keys per call
_DELETE_BATCH = 1000


class R2Storage(AbstractStorage):
    """Cloudflare R2 storage provider using aioboto3."""

    def __init__(
        self,
        account_id: str,
        access_key_id: str,
        secret_access_key: str,
        bucket_name: str,
        region: str = "auto",
    ) -> None:
        """Initialize R2 storage with credentials.

        Args:
            account_id: Cloudflare account ID
            access_key_id: R2 access key ID
            secret_access_key: R2 secret access key
            bucket_name: R2 bucket name
            region: R2 region (default: auto)
        """
        self.bucket_name = bucket_name
        self.endpoint_url = f"https://{account_id}.r2.cloudflarestorage.com"
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self.region = region
        self._session = aioboto3.Session()

    async def _get_client(self) -> Any:
        """Get an S3 client instance."""
        return self._session.client(
            "s3",
            endpoint_url=self.endpoint_url,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            region_name=self.region,
            config=Config(signature_version="s3v4"),
        )

    async def generate_upload_url(self, key: str, content_type: str, expires_in: int) -> str:
        """Generate a presigned PUT URL the client uploads to directly.

        Raises
        ------
            FileUploadError: If URL generation fails.
        """
        try:
            async with await self._get_client() as client:
                return await client.generate_presigned_url(
                    ClientMethod="put_object",
                    Params={"Bucket": self.bucket_name, "Key": key, "ContentType": content_type},
                    ExpiresIn=expires_in,
                )
        except ClientError as e:
            msg = f"Failed to generate R2 upload URL for key: {key}"
            raise FileUploadError(msg) from e

    async def get_download_url(self, key: str, expires_in: int = 3600) -> str:
        """Generate a presigned URL for downloading from R2.

        Raises
        ------
            FileDownloadError: If URL generation fails.
        """
        try:
            async with await self._get_client() as client:
                return await client.generate_presigned_url(
                    ClientMethod="get_object",
                    Params={"Bucket": self.bucket_name, "Key": key},
                    ExpiresIn=expires_in,
                )
        except ClientError as e:
            msg = f"Failed to generate R2 download URL for key: {key}"
            raise FileDownloadError(msg) from e

    async def upload(self, file_content: bytes, key: str) -> None:
        """Upload file content to R2 storage.

        Raises
        ------
            FileUploadError: If the upload fails.
        """
        try:
            async with await self._get_client() as client:
                await client.put_object(Bucket=self.bucket_name, Key=key, Body=file_content)
        except ClientError as e:
            msg = f"Failed to upload to R2: {key}"
            raise FileUploadError(msg) from e

    async def download(self, key: str) -> bytes:
        """Read an object, such as an HLS playlist, from R2.

        Raises
        ------
            StorageFileNotFoundError: If the object does not exist.
            FileDownloadError: If the object cannot be read.
        """
        try:
            async with await self._get_client() as client:
                response = await client.get_object(Bucket=self.bucket_name, Key=key)
                async with response["Body"] as stream:
                    return await stream.read()
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in {"NoSuchKey", "404"}:
                msg = f"File not found: {key}"
                raise StorageFileNotFoundError(msg) from e
            msg = f"Failed to download from R2: {key}"
            raise FileDownloadError(msg) from e

    async def delete(self, key: str) -> None:
        """Delete a file from R2 storage.

        Raises
        ------
            FileDeleteError: If the deletion fails.
        """
        try:
            async with await self._get_client() as client:
                await client.delete_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            msg = f"Failed to delete from R2: {key}"
            raise FileDeleteError(msg) from e

    async def delete_prefix(self, prefix: str) -> int:
        """Delete the original upload and every derived object under `prefix`."""
        deleted = 0
        try:
            async with await self._get_client() as client:
                paginator = client.get_paginator("list_objects_v2")
                keys: list[dict[str, str]] = []
                async for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix):
                    keys.extend({"Key": obj["Key"]} for obj in page.get("Contents", []))

                for start in range(0, len(keys), _DELETE_BATCH):
                    batch = keys[start : start + _DELETE_BATCH]
                    await client.delete_objects(Bucket=self.bucket_name, Delete={"Objects": batch, "Quiet": True})
                    deleted += len(batch)
        except ClientError as e:
            msg = f"Failed to delete R2 prefix: {prefix}"
            raise FileDeleteError(msg) from e
        return deleted
