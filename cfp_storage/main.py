from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from cfp_storage.api.errors import error_detail, storage_http_exception
from cfp_storage.api.v1.router import router as v1_router
from cfp_storage.dependencies.storage import init_storage
from cfp_storage.logging_config import setup_logging
from cfp_storage.storage.exceptions import StorageError, StorageErrorCode

logger = setup_logging()

# Codes for HTTPExceptions raised with a plain string detail (framework errors)
_CODE_BY_STATUS = {
    status.HTTP_400_BAD_REQUEST: StorageErrorCode.INVALID_FILE,
    status.HTTP_401_UNAUTHORIZED: StorageErrorCode.PERMISSION_DENIED,
    status.HTTP_403_FORBIDDEN: StorageErrorCode.PERMISSION_DENIED,
    status.HTTP_404_NOT_FOUND: StorageErrorCode.NOT_FOUND,
    413: StorageErrorCode.SIZE_EXCEEDED,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    # The storage backend is chosen once, from configuration, at startup
    await init_storage()
    yield


app = FastAPI(title="CFP Storage API", lifespan=lifespan)

app.include_router(v1_router, prefix="/api/v1")


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Return every HTTP error in the {"success", "error", "message"} shape."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content=exc.detail)

    code = _CODE_BY_STATUS.get(exc.status_code, StorageErrorCode.UNKNOWN)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_detail(code, str(exc.detail)),
    )


@app.exception_handler(StorageError)
async def storage_exception_handler(request: Request, exc: StorageError):
    """Storage errors that escaped a route get the same mapping routes apply."""
    http_exc = storage_http_exception(exc, "Storage operation failed")
    return JSONResponse(status_code=http_exc.status_code, content=http_exc.detail)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    # Full details stay in the log
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: "
        f"{exc.__class__.__name__}: {exc}",
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_detail(StorageErrorCode.UNKNOWN, "An unexpected error occurred"),
    )
