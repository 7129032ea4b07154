"""
Local filesystem storage provider for development.
Saves files to a local directory instead of Azure Blob Storage.
"""
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import structlog

from ..config import settings
from .provider import StorageProvider


logger = structlog.get_logger(__name__)


class LocalStorageProvider(StorageProvider):
    """Local filesystem storage provider for development."""

    def __init__(self, base_dir: str = "var/storage"):
        self.base_dir = Path(base_dir)
        (self.base_dir / "uploads").mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        """Get the local filesystem path for a given key."""
        clean_key = key.replace("\\", "/").lstrip("/")
        path = (self.base_dir / "uploads" / clean_key).resolve()
        root = (self.base_dir / "uploads").resolve()
        if root not in path.parents:
            raise ValueError(f"Invalid storage key: {key!r}")
        return path

    def url_for(self, key: str) -> str:
        return f"{settings.public_base_url}/api/files/local/{quote(key.lstrip('/'))}"

    def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)
        logger.info("local_file_stored", key=key, size_bytes=len(data))
        return self.url_for(key)

    def exists(self, key: str) -> bool:
        return self.path_for(key).exists()

    def delete(self, key: str) -> None:
        path = self.path_for(key)
        if path.exists():
            path.unlink()
