from typing import Optional


class StorageProvider:
    """Blob store: accepts a payload under a key and hands back a stable URL."""

    def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        raise NotImplementedError

    def url_for(self, key: str) -> str:
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError
