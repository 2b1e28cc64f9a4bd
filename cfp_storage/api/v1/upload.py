"""
Upload API endpoints.

POST   /upload        store a file for one of the known upload types
DELETE /upload?path=  remove a stored file

Callers are authenticated upstream; these endpoints only pick the storage
path and constraints for the upload type and hand the bytes to the active
storage backend.
"""
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status

from cfp_storage.api.errors import error_detail, storage_http_exception
from cfp_storage.dependencies.identity import get_user_id
from cfp_storage.dependencies.storage import get_storage
from cfp_storage.logging_config import setup_logging
from cfp_storage.schemas.common import ErrorResponse, SuccessResponse
from cfp_storage.schemas.upload import UploadResponse
from cfp_storage.services.upload_types import (
    UploadType,
    build_upload_options,
    resolve_storage_path,
)
from cfp_storage.storage.base import StorageBackend
from cfp_storage.storage.exceptions import StorageError, StorageErrorCode
from cfp_storage.storage.models import DEFAULT_CONTENT_TYPE, FileMetadata

router = APIRouter(prefix="/upload", tags=["upload"])

logger = setup_logging()


def _bad_request(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=error_detail(StorageErrorCode.INVALID_FILE, message),
    )


def _uploaded_by(metadata: FileMetadata) -> str | None:
    # S3 returns user metadata keys lowercased
    for key, value in metadata.metadata.items():
        if key.lower() == "uploadedby":
            return value
    return None


@router.post(
    "",
    response_model=UploadResponse,
    status_code=status.HTTP_200_OK,
    responses={
        400: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def upload_file(
    file: UploadFile | None = File(None),
    upload_type: str | None = Form(None, alias="type"),
    target_id: str | None = Form(None, alias="targetId"),
    user_id: str | None = Depends(get_user_id),
    storage: StorageBackend = Depends(get_storage),
):
    """
    Upload a file.

    **Request (multipart/form-data):**
    - file: The file content
    - type: avatar | submission-material | organization-logo | event-banner | temp
    - targetId: Submission, organization or event id (required for those types)

    **Example:**
    ```bash
    curl -X POST http://localhost:8000/api/v1/upload \\
      -H "X-User-Id: user-123" \\
      -F "file=@slides.pdf;type=application/pdf" \\
      -F "type=submission-material" \\
      -F "targetId=sub-42"
    ```

    Returns:
        UploadResponse with path, url, size and contentType

    Raises:
        HTTPException 400: Missing file, unknown type, missing targetId,
            or content type not allowed
        HTTPException 413: File larger than the type allows
        HTTPException 500: Storage failure
    """
    # 1. Validate form fields
    if file is None:
        raise _bad_request("No file provided")

    try:
        kind = UploadType(upload_type)
    except ValueError:
        raise _bad_request("Invalid upload type")

    content_type = file.content_type or DEFAULT_CONTENT_TYPE
    filename = file.filename or "file"

    # 2. Store through the active backend (size/type validated there)
    try:
        storage_path = resolve_storage_path(
            kind,
            content_type=content_type,
            filename=filename,
            target_id=target_id,
            user_id=user_id,
        )
        options = build_upload_options(kind, content_type, filename, user_id=user_id)
        data = await file.read()
        result = await storage.upload(storage_path, data, options)
    except StorageError as e:
        raise storage_http_exception(e, "Failed to upload file")
    finally:
        await file.close()

    logger.info(
        f"File uploaded: path={result.path}, type={kind.value}, "
        f"size={result.size}, user_id={user_id}"
    )

    return UploadResponse(success=True, file=result)


@router.delete(
    "",
    response_model=SuccessResponse,
    status_code=status.HTTP_200_OK,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)
async def delete_file(
    path: str | None = Query(None, description="Storage path of the file to delete"),
    user_id: str | None = Depends(get_user_id),
    storage: StorageBackend = Depends(get_storage),
):
    """
    Delete a stored file and its metadata.

    Only the uploader recorded in the file's metadata may delete it. Files
    without a recorded uploader (placed outside the API) can be deleted by
    any authenticated caller.

    Raises:
        HTTPException 400: path missing
        HTTPException 401: No authenticated caller
        HTTPException 403: File was uploaded by someone else
        HTTPException 404: nothing stored at path
        HTTPException 500: Storage failure
    """
    if not path:
        raise _bad_request("File path is required")

    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_detail(StorageErrorCode.PERMISSION_DENIED, "Authentication required"),
        )

    try:
        metadata = await storage.get_metadata(path)
        uploaded_by = _uploaded_by(metadata)
        if uploaded_by and uploaded_by != user_id:
            logger.warning(
                f"Delete refused: path={path}, user_id={user_id}, uploaded_by={uploaded_by}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=error_detail(
                    StorageErrorCode.PERMISSION_DENIED, "Not allowed to delete this file"
                ),
            )

        await storage.delete(path)
    except StorageError as e:
        raise storage_http_exception(e, "Failed to delete file")

    logger.info(f"File deleted: path={path}, user_id={user_id}")

    return SuccessResponse(success=True)
