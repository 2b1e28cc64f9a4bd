from pydantic import BaseModel


class SuccessResponse(BaseModel):
    success: bool = True


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    """Machine-readable error code (a StorageErrorCode value)."""
    message: str
