"""Abstract storage interface for different storage providers."""

from abc import ABC, abstractmethod


class AbstractStorage(ABC):
    """Abstract base class for storage providers.

    The object store itself is an external collaborator. Clients move bytes
    directly against pre-signed URLs; the API only issues URLs and purges
    objects.
    """

    @abstractmethod
    async def generate_upload_url(self, key: str, content_type: str, expires_in: int) -> str:
        """Return a pre-signed URL for a single HTTP PUT of `key`.

        Raises
        ------
            FileUploadError: If the URL cannot be issued.
        """
        raise NotImplementedError

    @abstractmethod
    async def get_download_url(self, key: str, expires_in: int = 3600) -> str:
        """Return a pre-signed URL for an HTTP GET of `key`.

        Raises
        ------
            FileDownloadError: If the URL cannot be issued.
        """
        raise NotImplementedError

    @abstractmethod
    async def upload(self, file_content: bytes, key: str) -> None:
        """Upload file content to storage.

        Raises
        ------
            FileUploadError: If the upload fails.
        """
        raise NotImplementedError

    @abstractmethod
    async def download(self, key: str) -> bytes:
        """Return the bytes stored under `key`.

        Raises
        ------
            StorageFileNotFoundError: If nothing is stored under `key`.
            FileDownloadError: If the object cannot be read.
        """
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete a single object.

        Raises
        ------
            FileDeleteError: If the deletion fails.
        """
        raise NotImplementedError

    @abstractmethod
    async def delete_prefix(self, prefix: str) -> int:
        """Delete every object under `prefix` and return how many were removed.

        Raises
        ------
            FileDeleteError: If the deletion fails.
        """
        raise NotImplementedError
