"""
Local filesystem storage provider for development.
Saves attachments under a local directory instead of Azure Blob Storage.
"""
from typing import Optional, BinaryIO
from pathlib import Path

from ..config import settings
from .provider import StorageProvider


class LocalStorageProvider(StorageProvider):
    name = "local"

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.local_storage_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.container = str(self.base_dir)

    def get_path(self, key: str) -> Path:
        """Filesystem path for a key; parent references are stripped."""
        clean_key = key.lstrip("/").replace("\\", "/")
        parts = [p for p in clean_key.split("/") if p not in ("", ".", "..")]
        return self.base_dir.joinpath(*parts)

    def copy_in(self, src: BinaryIO | bytes, key: str, content_type: Optional[str] = None) -> None:
        path = self.get_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            if hasattr(src, "read"):
                f.write(src.read())
            else:
                f.write(src)
