"""
Local filesystem storage provider for development.
Saves files to a local directory instead of Azure Blob Storage.
"""
from typing import Optional
from pathlib import Path
from urllib.parse import quote

from ..config import settings
from .provider import StorageProvider


class LocalStorageProvider(StorageProvider):
    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.local_storage_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _get_path(self, key: str) -> Path:
        clean_key = key.replace("\\", "/").replace("..", "").lstrip("/")
        return self.base_dir / clean_key

    def _url(self, key: str) -> str:
        return f"{settings.public_base_url}/files/local/{quote(key.lstrip('/'))}"

    def put(self, key: str, data: bytes, content_type: str) -> str:
        path = self._get_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return self._url(key)

    def delete(self, key: str) -> None:
        self._get_path(key).unlink(missing_ok=True)
