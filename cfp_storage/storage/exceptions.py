"""
Storage-specific exceptions.

Every backend translates its native failures (OSError, botocore
ClientError, ...) into one of these before they leave the backend, so
callers only ever handle ``StorageError`` and branch on its ``code``.
"""
from enum import Enum


class StorageErrorCode(str, Enum):
    """Closed set of storage error codes."""

    NOT_FOUND = "NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INVALID_FILE = "INVALID_FILE"
    SIZE_EXCEEDED = "SIZE_EXCEEDED"
    TYPE_NOT_ALLOWED = "TYPE_NOT_ALLOWED"
    UNKNOWN = "UNKNOWN"


class StorageError(Exception):
    """Base exception for storage operations."""

    def __init__(
        self,
        message: str,
        code: StorageErrorCode = StorageErrorCode.UNKNOWN,
        original_error: BaseException | None = None,
    ):
        self.message = message
        self.code = StorageErrorCode(code)
        self.original_error = original_error
        super().__init__(message)
        if original_error is not None:
            self.__cause__ = original_error

    @property
    def retryable(self) -> bool:
        """Only genuine I/O failures are worth retrying."""
        return self.code is StorageErrorCode.UNKNOWN

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code.value!r}, message={self.message!r})"


class StoredFileNotFoundError(StorageError):
    """Raised when no object is stored at the requested path."""

    def __init__(self, path: str, original_error: BaseException | None = None):
        self.path = path
        super().__init__(
            f"File not found: {path}", StorageErrorCode.NOT_FOUND, original_error
        )


class StoragePermissionError(StorageError):
    """Raised when a path resolves outside the storage root."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"Access denied for storage path: {path}",
            StorageErrorCode.PERMISSION_DENIED,
        )


class InvalidFileError(StorageError):
    """Raised when the upload payload or its path is unusable."""

    def __init__(self, message: str, original_error: BaseException | None = None):
        super().__init__(message, StorageErrorCode.INVALID_FILE, original_error)


class FileSizeExceededError(StorageError):
    """Raised when uploaded file exceeds maximum size limit."""

    def __init__(self, file_size: int, max_size: int):
        self.file_size = file_size
        self.max_size = max_size
        super().__init__(
            f"File size ({file_size} bytes) exceeds maximum allowed size ({max_size} bytes)",
            StorageErrorCode.SIZE_EXCEEDED,
        )


class FileTypeNotAllowedError(StorageError):
    """Raised when the declared content type is not on the allow-list."""

    def __init__(self, content_type: str, allowed_types: list[str]):
        self.content_type = content_type
        self.allowed_types = allowed_types
        super().__init__(
            f'File type "{content_type}" is not allowed. '
            f"Allowed types: {', '.join(allowed_types)}",
            StorageErrorCode.TYPE_NOT_ALLOWED,
        )
