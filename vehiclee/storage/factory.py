from functools import lru_cache

from ..config import settings
from .provider import StorageProvider


@lru_cache(maxsize=1)
def _build_storage() -> StorageProvider:
    if settings.storage_provider == "blob":
        from .blob_provider import BlobStorageProvider
        return BlobStorageProvider()
    from .local_provider import LocalStorageProvider
    return LocalStorageProvider()


def get_storage() -> StorageProvider:
    """Request dependency returning the configured storage provider."""
    return _build_storage()
