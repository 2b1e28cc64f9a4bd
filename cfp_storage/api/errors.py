"""
Translation of storage errors into HTTP errors.

Validation, not-found and permission errors are the caller's fault and are
returned with their code and message. Anything else is an internal
failure: it is logged in full and the client only gets a static message.
"""
from fastapi import HTTPException, status

from cfp_storage.logging_config import setup_logging
from cfp_storage.storage.exceptions import StorageError, StorageErrorCode

logger = setup_logging()

_STATUS_BY_CODE = {
    StorageErrorCode.INVALID_FILE: status.HTTP_400_BAD_REQUEST,
    StorageErrorCode.TYPE_NOT_ALLOWED: status.HTTP_400_BAD_REQUEST,
    StorageErrorCode.SIZE_EXCEEDED: 413,
    StorageErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    StorageErrorCode.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
}


def error_detail(code: StorageErrorCode, message: str) -> dict:
    return {"success": False, "error": code.value, "message": message}


def storage_http_exception(error: StorageError, failure_message: str) -> HTTPException:
    """
    Build the HTTPException for a storage error.

    Args:
        error: Error raised by the storage layer
        failure_message: Safe message used for internal (UNKNOWN) failures

    Returns:
        HTTPException with a {"success", "error", "message"} detail
    """
    status_code = _STATUS_BY_CODE.get(error.code)

    if status_code is None:
        logger.error(f"{failure_message}: {error!r}", exc_info=error)
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=error_detail(StorageErrorCode.UNKNOWN, failure_message),
        )

    logger.warning(f"{failure_message}: {error.code.value}: {error.message}")
    return HTTPException(
        status_code=status_code,
        detail=error_detail(error.code, error.message),
    )
