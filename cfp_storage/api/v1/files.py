"""
File serving endpoints.

GET  /files/{path}  stream a stored file with its stored content type
HEAD /files/{path}  same checks, headers only

This is the target of ``StorageBackend.get_internal_url``. Public files are
served to anyone; anything else needs an authenticated caller (fail
closed). Finer-grained access rules belong to the upstream auth layer.
"""
from datetime import timezone
from email.utils import format_datetime
from pathlib import PurePosixPath

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from cfp_storage.api.errors import error_detail, storage_http_exception
from cfp_storage.dependencies.identity import get_user_id
from cfp_storage.dependencies.storage import get_storage
from cfp_storage.logging_config import setup_logging
from cfp_storage.storage.base import StorageBackend
from cfp_storage.storage.exceptions import StorageError, StorageErrorCode
from cfp_storage.storage.models import DEFAULT_CONTENT_TYPE, FileMetadata
from cfp_storage.storage.paths import get_mime_from_extension, normalize_storage_path

router = APIRouter(prefix="/files", tags=["files"])

logger = setup_logging()

PUBLIC_CACHE = "public, max-age=31536000, immutable"
SENSITIVE_CACHE = "private, no-store, must-revalidate"
PRIVATE_CACHE = "private, no-cache, must-revalidate"


def _content_type(metadata: FileMetadata, path: str) -> str:
    # Files without a sidecar only have the generic type; guess from the name
    if metadata.content_type != DEFAULT_CONTENT_TYPE:
        return metadata.content_type
    return get_mime_from_extension(PurePosixPath(path).suffix)


def _cache_control(metadata: FileMetadata, path: str) -> str:
    if metadata.is_public:
        return PUBLIC_CACHE
    normalized = normalize_storage_path(path)
    # Submission materials must not linger in shared browser caches
    if normalized.startswith("submissions/") or "/materials/" in normalized:
        return SENSITIVE_CACHE
    return PRIVATE_CACHE


async def _authorized_metadata(
    path: str, user_id: str | None, storage: StorageBackend
) -> FileMetadata:
    """Load metadata and enforce the public/authenticated visibility rule."""
    try:
        metadata = await storage.get_metadata(path)
    except StorageError as e:
        raise storage_http_exception(e, "Failed to serve file")

    if not metadata.is_public and user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_detail(StorageErrorCode.PERMISSION_DENIED, "Authentication required"),
        )

    return metadata


@router.get("/{file_path:path}")
async def serve_file(
    file_path: str,
    download: bool = Query(False, description="Send as an attachment"),
    user_id: str | None = Depends(get_user_id),
    storage: StorageBackend = Depends(get_storage),
):
    """
    Serve a stored file.

    Raises:
        HTTPException 401: Private file requested without authentication
        HTTPException 403: Path resolves outside the storage root
        HTTPException 404: File not found
        HTTPException 500: Storage failure
    """
    metadata = await _authorized_metadata(file_path, user_id, storage)

    try:
        content = await storage.download(file_path)
    except StorageError as e:
        raise storage_http_exception(e, "Failed to serve file")

    headers = {"Cache-Control": _cache_control(metadata, file_path)}
    if download:
        filename = PurePosixPath(normalize_storage_path(file_path)).name or "file"
        headers["Content-Disposition"] = f'attachment; filename="{filename}"'

    return Response(
        content=content,
        media_type=_content_type(metadata, file_path),
        headers=headers,
    )


@router.head("/{file_path:path}")
async def head_file(
    file_path: str,
    user_id: str | None = Depends(get_user_id),
    storage: StorageBackend = Depends(get_storage),
):
    """Return the headers GET would send, without the body."""
    try:
        metadata = await _authorized_metadata(file_path, user_id, storage)
    except HTTPException as e:
        return Response(status_code=e.status_code)

    return Response(
        status_code=status.HTTP_200_OK,
        headers={
            "Content-Type": _content_type(metadata, file_path),
            "Content-Length": str(metadata.size),
            "Last-Modified": format_datetime(metadata.last_modified.astimezone(timezone.utc), usegmt=True),
            "Cache-Control": _cache_control(metadata, file_path),
        },
    )
