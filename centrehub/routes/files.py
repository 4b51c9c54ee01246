import os
import time
import uuid
from mimetypes import guess_type
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Form, File, UploadFile
from fastapi.responses import FileResponse, RedirectResponse
from sqlalchemy.orm import Session
from slugify import slugify
import structlog

from ..config import settings
from ..db import get_db
from ..auth.security import ensure_centre_access, get_current_user, resolve_centre
from ..models.models import FileObject, User
from ..schemas.files import UploadFolder, UploadResponse
from ..storage.blob_provider import BlobStorageProvider
from ..storage.local_provider import LocalStorageProvider
from ..storage.provider import StorageProvider


router = APIRouter(prefix="/files", tags=["files"])
logger = structlog.get_logger(__name__)


def get_storage() -> StorageProvider:
    """
    Azure Blob Storage when configured, local filesystem otherwise (development).
    """
    if settings.azure_blob_connection and settings.azure_blob_container:
        return BlobStorageProvider()
    return LocalStorageProvider()


def attachment_key(folder: str, centre: str, original_name: str, epoch_ms: Optional[int] = None) -> str:
    stem, ext = os.path.splitext(original_name)
    stamp = epoch_ms if epoch_ms is not None else int(time.time() * 1000)
    return f"{folder}/{slugify(centre) or 'unassigned'}/{stamp}_{slugify(stem) or 'file'}{ext.lower()}"


@router.post("/upload", response_model=UploadResponse, status_code=201)
async def upload(
    file: UploadFile = File(...),
    folder: UploadFolder = Form(UploadFolder.expenses),
    centre: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: StorageProvider = Depends(get_storage),
):
    scope = resolve_centre(user, centre) or settings.default_admin_centre
    original_name = file.filename or "upload"
    # One byte past the limit is enough to reject
    content = await file.read(settings.max_upload_bytes + 1)
    if len(content) > settings.max_upload_bytes:
        logger.info("upload_rejected", name=original_name, limit=settings.max_upload_bytes, by=user.email)
        raise HTTPException(
            status_code=413,
            detail=f"File exceeds {settings.max_upload_bytes // (1024 * 1024)}MB limit",
        )
    content_type = file.content_type or guess_type(original_name)[0] or "application/octet-stream"
    key = attachment_key(folder.value, scope, original_name)
    storage.copy_in(content, key, content_type=content_type)

    fo = FileObject(
        provider=storage.name,
        container=storage.container,
        key=key,
        original_name=original_name,
        size_bytes=len(content),
        content_type=content_type,
        centre=scope,
        created_by=user.id,
    )
    db.add(fo)
    db.commit()
    db.refresh(fo)
    logger.info("upload_stored", file_id=str(fo.id), key=key, size=len(content), provider=storage.name)
    return UploadResponse(
        name=original_name,
        url=f"{settings.public_base_url}/files/{fo.id}/download",
        size=len(content),
        type=content_type,
        key=key,
    )


@router.get("/local/{file_path:path}")
def serve_local_file(file_path: str, user: User = Depends(get_current_user)):
    """Serve files from local storage for development."""
    # Keys are laid out as <folder>/<centre slug>/<name>
    parts = file_path.strip("/").split("/")
    if not user.is_admin and (len(parts) < 3 or parts[1] != slugify(user.centre or "")):
        raise HTTPException(status_code=404, detail="File not found")
    local_storage = LocalStorageProvider()
    path = local_storage.get_path(file_path)
    if not str(path.resolve()).startswith(str(local_storage.base_dir.resolve())):
        raise HTTPException(status_code=403, detail="Access denied")
    if not path.is_file():
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(
        path=str(path),
        media_type=guess_type(str(path))[0] or "application/octet-stream",
        filename=path.name,
    )


@router.get("/{file_id}/download")
def download(file_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    fo: Optional[FileObject] = db.query(FileObject).filter(FileObject.id == file_id).first()
    if not fo:
        raise HTTPException(status_code=404, detail="File not found")
    ensure_centre_access(user, fo.centre)
    if fo.provider == "local":
        path = LocalStorageProvider().get_path(fo.key)
        if not path.is_file():
            raise HTTPException(status_code=404, detail="File not found")
        return FileResponse(
            path=str(path),
            media_type=fo.content_type or "application/octet-stream",
            filename=fo.original_name,
        )
    if not (settings.azure_blob_connection and settings.azure_blob_container):
        logger.warning("blob_file_unavailable", file_id=str(file_id), key=fo.key)
        raise HTTPException(status_code=404, detail="File not available in blob storage")
    url = BlobStorageProvider().get_download_url(fo.key, expires_s=settings.download_url_ttl_seconds)
    return RedirectResponse(url)
