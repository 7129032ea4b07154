import base64
import binascii
import os
import uuid
from datetime import datetime, timezone
from mimetypes import guess_type
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse
from starlette.concurrency import run_in_threadpool
from slugify import slugify

from ..config import settings
from ..errors import InvalidInput
from ..auth.principal import Principal
from ..auth.security import get_current_principal
from ..schemas.files import Base64Upload, UploadResponse
from ..storage.factory import get_storage
from ..storage.local_provider import LocalStorageProvider
from ..storage.provider import StorageProvider


router = APIRouter(prefix="/files", tags=["files"])
logger = structlog.get_logger(__name__)


def canonical_key(category: Optional[str], original_name: str) -> str:
    today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    safe_name = slugify(os.path.splitext(original_name)[0]) or "file"
    ext = os.path.splitext(original_name)[1].lower()
    folder = slugify(category or "files")
    # Random prefix keeps uploads with the same name from overwriting each other
    return f"{folder}/{today}/{uuid.uuid4().hex[:12]}_{safe_name}{ext}"


def decode_base64(data: str) -> bytes:
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidInput("data is not valid base64", field="data")


async def _store(
    storage: StorageProvider,
    principal: Principal,
    content: bytes,
    original_name: str,
    content_type: Optional[str],
    category: Optional[str],
) -> UploadResponse:
    if not content:
        raise InvalidInput("Empty upload", field="file")
    if len(content) > settings.max_upload_bytes:
        raise InvalidInput("File too large", max_bytes=settings.max_upload_bytes, size_bytes=len(content))

    content_type = content_type or guess_type(original_name)[0] or "application/octet-stream"
    key = canonical_key(category, original_name)
    # Provider SDKs block; keep them off the event loop
    url = await run_in_threadpool(storage.put, key, content, content_type)
    logger.info("file_uploaded", key=key, size_bytes=len(content), uploaded_by=str(principal.id))
    return UploadResponse(key=key, url=url, size_bytes=len(content), content_type=content_type)


@router.post("/upload", response_model=UploadResponse, status_code=201)
async def upload(
    file: UploadFile = File(...),
    original_name: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    principal: Principal = Depends(get_current_principal),
    storage: StorageProvider = Depends(get_storage),
):
    """Store a file sent as multipart form data."""
    content = await file.read()
    name = original_name or file.filename or "upload"
    return await _store(storage, principal, content, name, file.content_type, category)


@router.post("/upload-base64", response_model=UploadResponse, status_code=201)
async def upload_base64(
    payload: Base64Upload,
    principal: Principal = Depends(get_current_principal),
    storage: StorageProvider = Depends(get_storage),
):
    """Store a file sent as base64 (plain or a data: URL) in a JSON body."""
    content = decode_base64(payload.data)
    return await _store(storage, principal, content, payload.original_name, payload.content_type, payload.category)


@router.get("/local/{file_path:path}")
def serve_local_file(file_path: str):
    """Serve files from local storage for development."""
    local_storage = LocalStorageProvider(settings.local_storage_dir)
    try:
        path = local_storage.path_for(file_path)
    except ValueError:
        raise HTTPException(status_code=403, detail="Access denied")
    if not path.exists():
        raise HTTPException(status_code=404, detail="File not found")
    media_type = guess_type(str(path))[0] or "application/octet-stream"
    return FileResponse(path=str(path), media_type=media_type, filename=path.name)
