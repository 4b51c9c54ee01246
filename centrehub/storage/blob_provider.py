from datetime import datetime, timedelta, timezone
from typing import Optional, BinaryIO

from azure.storage.blob import (
    BlobServiceClient,
    BlobSasPermissions,
    ContentSettings,
    generate_blob_sas,
)

from ..config import settings
from .provider import StorageProvider


class BlobStorageProvider(StorageProvider):
    name = "blob"

    def __init__(self) -> None:
        if not settings.azure_blob_connection or not settings.azure_blob_container:
            raise RuntimeError("AZURE_BLOB_CONNECTION and AZURE_BLOB_CONTAINER must be set")
        self._service = BlobServiceClient.from_connection_string(settings.azure_blob_connection)
        self.container = settings.azure_blob_container

    def _client(self, key: str):
        return self._service.get_blob_client(self.container, key.lstrip("/"))

    def get_download_url(self, key: str, expires_s: int) -> Optional[str]:
        expiry = datetime.now(timezone.utc) + timedelta(seconds=expires_s)
        sas = generate_blob_sas(
            account_name=self._service.account_name,
            container_name=self.container,
            blob_name=key.lstrip("/"),
            account_key=self._service.credential.account_key,
            permission=BlobSasPermissions(read=True),
            expiry=expiry,
        )
        return f"{self._client(key).url}?{sas}"

    def copy_in(self, src: BinaryIO | bytes, key: str, content_type: Optional[str] = None) -> None:
        content_settings = ContentSettings(content_type=content_type) if content_type else None
        self._client(key).upload_blob(src, overwrite=True, content_settings=content_settings)
