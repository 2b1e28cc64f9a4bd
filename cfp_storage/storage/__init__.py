"""
Storage abstraction layer for file operations.

Every upload path (avatars, submission materials, organization logos,
event banners, temp files) goes through a ``StorageBackend``. The local
filesystem backend is the default; the S3 backend is a drop-in
replacement selected by configuration.
"""

from cfp_storage.storage.base import StorageBackend
from cfp_storage.storage.exceptions import (
    FileSizeExceededError,
    FileTypeNotAllowedError,
    InvalidFileError,
    StorageError,
    StorageErrorCode,
    StoragePermissionError,
    StoredFileNotFoundError,
)
from cfp_storage.storage.local import LocalStorageBackend
from cfp_storage.storage.models import FileMetadata, UploadOptions, UploadResult
from cfp_storage.storage.paths import (
    MIME_EXTENSIONS,
    StoragePaths,
    get_extension_from_mime,
    validate_file,
)

__all__ = [
    "StorageBackend",
    "LocalStorageBackend",
    "FileMetadata",
    "UploadOptions",
    "UploadResult",
    "StoragePaths",
    "MIME_EXTENSIONS",
    "get_extension_from_mime",
    "validate_file",
    "StorageError",
    "StorageErrorCode",
    "StoredFileNotFoundError",
    "StoragePermissionError",
    "InvalidFileError",
    "FileSizeExceededError",
    "FileTypeNotAllowedError",
]
