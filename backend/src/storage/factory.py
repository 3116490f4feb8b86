"""Pick the blob store for this deployment."""

import logging
from functools import lru_cache

from src.config import get_settings

from .base import AbstractStorage
from .local import LocalStorage
from .r2 import R2Storage


logger = logging.getLogger(__name__)


@lru_cache
def get_storage_provider() -> AbstractStorage:
    """R2 when configured with credentials, otherwise signed URLs over local disk.

    Cached so every request shares one client.
    """
    settings = get_settings()

    if settings.STORAGE_PROVIDER == "r2":
        credentials = (settings.R2_ACCOUNT_ID, settings.R2_ACCESS_KEY_ID, settings.R2_SECRET_ACCESS_KEY)
        if all(credentials):
            return R2Storage(
                account_id=settings.R2_ACCOUNT_ID,
                access_key_id=settings.R2_ACCESS_KEY_ID,
                secret_access_key=settings.R2_SECRET_ACCESS_KEY,
                bucket_name=settings.R2_BUCKET_NAME,
                region=settings.R2_REGION,
            )
        logger.warning("STORAGE_PROVIDER=r2 but R2 credentials are incomplete; using local storage")

    return LocalStorage(
        base_path=settings.LOCAL_STORAGE_PATH,
        base_url=settings.PUBLIC_BASE_URL,
        signing_secret=settings.SECRET_KEY,
    )
