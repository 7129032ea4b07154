from functools import lru_cache

from ..config import settings
from .provider import StorageProvider


@lru_cache(maxsize=1)
def get_storage() -> StorageProvider:
    if settings.storage_provider == "blob":
        from .blob_provider import BlobStorageProvider

        return BlobStorageProvider()
    from .local_provider import LocalStorageProvider

    return LocalStorageProvider(settings.local_storage_dir)
