"""Blob store gateway: pre-signed URLs and object purges over R2 or local disk."""

from .base import AbstractStorage
from .exceptions import StorageError
from .factory import get_storage_provider
from .local import LocalStorage
from .r2 import R2Storage


__all__ = [
    "AbstractStorage",
    "LocalStorage",
    "R2Storage",
    "StorageError",
    "get_storage_provider",
]
