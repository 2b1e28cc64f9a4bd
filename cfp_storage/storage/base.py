"""
Abstract base class for storage backends.

This module defines the contract every backend (local filesystem, S3
compatible object store, ...) must satisfy. Callers depend on
``StorageBackend`` only; which backend is active is decided once from
configuration (see ``cfp_storage.dependencies.storage``).
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from cfp_storage.logging_config import setup_logging
from cfp_storage.storage.exceptions import StorageError
from cfp_storage.storage.models import FileMetadata, UploadOptions, UploadResult

logger = setup_logging()


class StorageBackend(ABC):
    """
    Abstract base class for storage backends.

    Every method that fails raises ``StorageError`` (or a subclass) with a
    code from ``StorageErrorCode``; backend-native exceptions never escape.
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the name of this backend (e.g., 'local', 's3')."""
        pass

    async def initialize(self) -> None:
        """Prepare the backend at process start. No-op by default."""
        return None

    @abstractmethod
    async def upload(
        self,
        path: str,
        data: bytes,
        options: UploadOptions | None = None,
    ) -> UploadResult:
        """
        Store ``data`` at ``path``, replacing any existing object.

        Size and type are validated before any I/O, so a rejected upload
        never leaves a partial object behind.

        Args:
            path: Storage path (e.g., "avatars/user-123.jpg")
            data: File content
            options: Upload constraints and metadata

        Returns:
            UploadResult with the stored path, URL, size and content type

        Raises:
            FileSizeExceededError: If data exceeds options.max_size
            FileTypeNotAllowedError: If the content type is not allowed
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def download(self, path: str) -> bytes:
        """
        Read the object stored at ``path``.

        Raises:
            StoredFileNotFoundError: If nothing is stored at path
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def delete(self, path: str) -> None:
        """
        Remove the object and its metadata.

        Raises:
            StoredFileNotFoundError: If nothing is stored at path
            StorageError: If the delete fails
        """
        pass

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """
        Check if an object is stored at ``path``.

        Returns False for missing paths; raises StorageError only when the
        backend itself fails.
        """
        pass

    @abstractmethod
    async def get_metadata(self, path: str) -> FileMetadata:
        """
        Get the metadata record for ``path``.

        Objects stored without a metadata record get one synthesized from
        the raw object (generic binary content type, not public).

        Raises:
            StoredFileNotFoundError: If nothing is stored at path
        """
        pass

    @abstractmethod
    async def list(self, prefix: str) -> list[str]:
        """
        List storage paths below ``prefix``, recursively.

        Metadata records are never included. A prefix with no objects
        yields an empty list.
        """
        pass

    @abstractmethod
    async def copy(self, source: str, dest: str) -> None:
        """
        Duplicate an object and its metadata to ``dest``.

        Raises:
            StoredFileNotFoundError: If source does not exist
        """
        pass

    async def move(self, source: str, dest: str) -> None:
        """
        Move an object by copying it and then deleting the source.

        Not atomic. If the delete fails after a successful copy the object
        is left at both paths and the delete error is raised.
        """
        await self.copy(source, dest)
        try:
            await self.delete(source)
        except StorageError as e:
            logger.warning(
                f"Move {source} -> {dest} copied the object but could not delete "
                f"the source; it now exists at both paths: {e}"
            )
            raise

    @abstractmethod
    def get_public_url(self, path: str) -> str:
        """URL for direct, cache-friendly access. Never performs I/O."""
        pass

    @abstractmethod
    def get_internal_url(self, path: str) -> str:
        """URL of the access-controlled file-serving endpoint. Never performs I/O."""
        pass
