"""Custom exceptions for the storage module."""

from src.exceptions import InternalError


class StorageError(InternalError):
    """Base exception for storage operations."""


class FileUploadError(StorageError):
    """Raised when a file upload or upload grant fails."""


class FileDownloadError(StorageError):
    """Raised when a download URL cannot be produced."""


class FileDeleteError(StorageError):
    """Raised when a file delete fails."""


class StorageFileNotFoundError(StorageError):
    """Raised when a file is not found in storage."""
