from typing import BinaryIO, Optional


class StorageProvider:
    name: str = "abstract"
    container: str = ""

    def get_download_url(self, key: str, expires_s: int) -> Optional[str]:
        raise NotImplementedError

    def copy_in(self, src: BinaryIO | bytes, key: str, content_type: Optional[str] = None) -> None:
        raise NotImplementedError
