"""
Local filesystem storage implementation.

Objects live at ``<base_path>/<storage path>``. Each object has a JSON
metadata sidecar next to it (``<object>.meta.json``), so the layout maps
one-to-one onto object-store keys when migrating to S3.
"""
from __future__ import annotations

import stat
import uuid
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import quote

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from cfp_storage.config import settings
from cfp_storage.logging_config import setup_logging
from cfp_storage.storage.base import StorageBackend
from cfp_storage.storage.exceptions import (
    InvalidFileError,
    StorageError,
    StorageErrorCode,
    StoragePermissionError,
    StoredFileNotFoundError,
)
from cfp_storage.storage.models import (
    DEFAULT_CONTENT_TYPE,
    FileMetadata,
    UploadOptions,
    UploadResult,
)
from cfp_storage.storage.paths import normalize_storage_path, validate_file

logger = setup_logging()

META_SUFFIX = ".meta.json"
TEMP_SUFFIX = ".partial"

# OS errors meaning "there is no object at this path"
_MISSING_ERRORS = (FileNotFoundError, NotADirectoryError, IsADirectoryError)


class LocalStorageBackend(StorageBackend):
    """
    Local filesystem storage with async operations.

    Every incoming path is normalized and confined to ``base_path`` before
    it is used, whatever the operation. Writes go to a temporary file in
    the target directory and are published with ``os.replace``; the
    sidecar is published before the object so a reader that can see the
    object can also see its metadata. If the object fails to publish, the
    previous sidecar is put back.

    Sidecar and temp file names are never objects: ``exists`` and ``list``
    report nothing for them, and the other operations reject them.
    """

    def __init__(
        self,
        base_path: str | None = None,
        base_url: str | None = None,
        public_base_url: str | None = None,
    ):
        """
        Initialize local storage backend.

        Args:
            base_path: Root directory for stored objects (default from config)
            base_url: Prefix of the access-controlled file endpoint (default from config)
            public_base_url: Prefix for public URLs, e.g. a static file host
                (defaults to base_url)
        """
        self.base_path = Path(base_path or settings.STORAGE_BASE_PATH).resolve()
        self.base_url = (base_url or settings.STORAGE_BASE_URL).rstrip("/")
        self.public_base_url = (
            public_base_url or settings.STORAGE_PUBLIC_BASE_URL or self.base_url
        ).rstrip("/")

    @property
    def backend_name(self) -> str:
        return "local"

    async def initialize(self) -> None:
        """Create the storage root if it does not exist yet."""
        try:
            await aiofiles.os.makedirs(self.base_path, exist_ok=True)
        except OSError as e:
            raise StorageError(
                f"Failed to initialize storage root: {e}", StorageErrorCode.UNKNOWN, e
            ) from e

    # Contract operations

    async def upload(
        self,
        path: str,
        data: bytes,
        options: UploadOptions | None = None,
    ) -> UploadResult:
        content_type = (options.content_type if options else None) or DEFAULT_CONTENT_TYPE

        # Validate before touching the disk
        validate_file(data, content_type, options)

        storage_path, file_path = self._resolve(path)
        metadata = FileMetadata(
            path=storage_path,
            size=len(data),
            content_type=content_type,
            last_modified=datetime.now(timezone.utc),
            is_public=options.is_public if options else False,
            metadata=dict(options.metadata) if options else {},
        )

        temp_paths: list[Path] = []
        try:
            await self._ensure_directory_exists(file_path)

            data_temp = await self._write_temp(file_path, bytes(data))
            temp_paths.append(data_temp)
            meta_temp = await self._write_temp(
                self._meta_path(file_path), metadata.to_sidecar().encode("utf-8")
            )
            temp_paths.append(meta_temp)

            await self._publish(file_path, data_temp, meta_temp)

        except OSError as e:
            await self._discard(temp_paths)
            raise StorageError(
                f"Failed to upload file: {e}", StorageErrorCode.UNKNOWN, e
            ) from e

        return UploadResult.from_metadata(metadata, self.get_public_url(storage_path))

    async def download(self, path: str) -> bytes:
        storage_path, file_path = self._resolve(path)

        try:
            async with aiofiles.open(file_path, "rb") as f:
                return await f.read()
        except OSError as e:
            raise self._translate_os_error(e, "download", storage_path) from e

    async def delete(self, path: str) -> None:
        storage_path, file_path = self._resolve(path)

        try:
            await aiofiles.os.remove(file_path)
        except OSError as e:
            raise self._translate_os_error(e, "delete", storage_path) from e

        # The object is gone; a missing or stuck sidecar must not fail the call
        try:
            await aiofiles.os.remove(self._meta_path(file_path))
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Deleted {storage_path} but could not remove its metadata: {e}")

    async def exists(self, path: str) -> bool:
        # Sidecars and temp files are never objects
        if self._is_internal_file(normalize_storage_path(path)):
            return False

        _, file_path = self._resolve(path, allow_root=True)

        try:
            file_stat = await aiofiles.os.stat(file_path)
        except (FileNotFoundError, NotADirectoryError):
            return False
        except OSError as e:
            raise StorageError(
                f"Failed to check file: {e}", StorageErrorCode.UNKNOWN, e
            ) from e

        return stat.S_ISREG(file_stat.st_mode)

    async def get_metadata(self, path: str) -> FileMetadata:
        storage_path, file_path = self._resolve(path)

        try:
            file_stat = await aiofiles.os.stat(file_path)
        except OSError as e:
            raise self._translate_os_error(e, "get metadata for", storage_path) from e

        if not stat.S_ISREG(file_stat.st_mode):
            raise StoredFileNotFoundError(storage_path)

        sidecar = await self._read_sidecar(file_path, storage_path)
        if sidecar is not None:
            return sidecar

        # Object placed outside the API (or a legacy upload): synthesize from stat
        return FileMetadata(
            path=storage_path,
            size=file_stat.st_size,
            content_type=DEFAULT_CONTENT_TYPE,
            last_modified=datetime.fromtimestamp(file_stat.st_mtime, tz=timezone.utc),
            is_public=False,
        )

    async def list(self, prefix: str) -> list[str]:
        if self._is_internal_file(normalize_storage_path(prefix)):
            return []

        storage_prefix, prefix_path = self._resolve(prefix, allow_root=True)

        # The directory walk is blocking, so it runs in the executor
        try:
            results = await aiofiles.os.wrap(self._walk)(storage_prefix, prefix_path)
        except OSError as e:
            raise StorageError(
                f"Failed to list files: {e}", StorageErrorCode.UNKNOWN, e
            ) from e

        return sorted(results)

    async def copy(self, source: str, dest: str) -> None:
        source_path_str, source_path = self._resolve(source)
        dest_path_str, dest_path = self._resolve(dest)

        try:
            async with aiofiles.open(source_path, "rb") as f:
                content = await f.read()
        except OSError as e:
            raise self._translate_os_error(e, "copy", source_path_str) from e

        # Not every legacy object has a sidecar
        metadata = await self._read_sidecar(source_path, source_path_str)

        temp_paths: list[Path] = []
        try:
            await self._ensure_directory_exists(dest_path)

            data_temp = await self._write_temp(dest_path, content)
            temp_paths.append(data_temp)

            meta_temp = None
            if metadata is not None:
                dest_metadata = metadata.model_copy(update={"path": dest_path_str})
                meta_temp = await self._write_temp(
                    self._meta_path(dest_path), dest_metadata.to_sidecar().encode("utf-8")
                )
                temp_paths.append(meta_temp)

            await self._publish(dest_path, data_temp, meta_temp)

        except OSError as e:
            await self._discard(temp_paths)
            raise StorageError(
                f"Failed to copy file: {e}", StorageErrorCode.UNKNOWN, e
            ) from e

    def get_public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{quote(normalize_storage_path(path))}"

    def get_internal_url(self, path: str) -> str:
        return f"{self.base_url}/{quote(normalize_storage_path(path))}"

    # Helpers

    def _resolve(self, path: str, allow_root: bool = False) -> tuple[str, Path]:
        """
        Confine a storage path to the storage root.

        Args:
            path: Caller-supplied storage path
            allow_root: Accept an empty path meaning the root itself (listing)

        Returns:
            Tuple of (normalized storage path, full filesystem path)

        Raises:
            InvalidFileError: If the path is empty or names an internal file
            StoragePermissionError: If the path resolves outside the root
                (e.g. through a symlink)
        """
        storage_path = normalize_storage_path(path)

        if not storage_path and not allow_root:
            raise InvalidFileError("Storage path must not be empty")
        if self._is_internal_file(storage_path):
            raise InvalidFileError(f"Storage path uses a reserved suffix: {storage_path}")

        file_path = self.base_path / storage_path if storage_path else self.base_path

        try:
            resolved = file_path.resolve()
        except (OSError, RuntimeError) as e:
            raise StorageError(
                f"Failed to resolve storage path: {e}", StorageErrorCode.UNKNOWN, e
            ) from e

        if not resolved.is_relative_to(self.base_path):
            raise StoragePermissionError(storage_path)

        return storage_path, file_path

    @staticmethod
    def _meta_path(file_path: Path) -> Path:
        return file_path.with_name(file_path.name + META_SUFFIX)

    @staticmethod
    def _is_internal_file(name: str) -> bool:
        return name.endswith(META_SUFFIX) or name.endswith(TEMP_SUFFIX)

    @staticmethod
    def _translate_os_error(error: OSError, action: str, storage_path: str) -> StorageError:
        if isinstance(error, _MISSING_ERRORS):
            return StoredFileNotFoundError(storage_path, error)
        return StorageError(
            f"Failed to {action} file: {error}", StorageErrorCode.UNKNOWN, error
        )

    async def _ensure_directory_exists(self, file_path: Path) -> None:
        await aiofiles.os.makedirs(file_path.parent, exist_ok=True)

    async def _write_temp(self, target: Path, content: bytes) -> Path:
        """Write content next to target under a unique temporary name."""
        temp_path = target.with_name(f".{target.name}.{uuid.uuid4().hex}{TEMP_SUFFIX}")
        async with aiofiles.open(temp_path, "wb") as f:
            await f.write(content)
        return temp_path

    def _walk(self, storage_prefix: str, prefix_path: Path) -> list[str]:
        if prefix_path.is_file():
            return [storage_prefix]

        if not prefix_path.is_dir():
            return []

        return [
            entry.relative_to(self.base_path).as_posix()
            for entry in prefix_path.rglob("*")
            if entry.is_file() and not self._is_internal_file(entry.name)
        ]

    async def _publish(self, file_path: Path, data_temp: Path, meta_temp: Path | None) -> None:
        """
        Move finished temp files into place, sidecar first.

        With no meta_temp, any sidecar left by a previous object is removed.
        If the object itself cannot be replaced, the previous sidecar (or its
        absence) is put back so the old object keeps its own metadata.
        """
        meta_path = self._meta_path(file_path)

        try:
            async with aiofiles.open(meta_path, "rb") as f:
                previous = await f.read()
        except FileNotFoundError:
            previous = None

        if meta_temp is not None:
            await aiofiles.os.replace(meta_temp, meta_path)
        elif previous is not None:
            try:
                await aiofiles.os.remove(meta_path)
            except FileNotFoundError:
                pass

        try:
            await aiofiles.os.replace(data_temp, file_path)
        except OSError:
            await self._restore_sidecar(meta_path, previous)
            raise

    async def _restore_sidecar(self, meta_path: Path, previous: bytes | None) -> None:
        try:
            if previous is None:
                await aiofiles.os.remove(meta_path)
            else:
                restore_temp = await self._write_temp(meta_path, previous)
                try:
                    await aiofiles.os.replace(restore_temp, meta_path)
                except OSError:
                    await self._discard([restore_temp])
                    raise
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not restore metadata {meta_path.name}: {e}")

    async def _discard(self, temp_paths: list[Path]) -> None:
        for temp_path in temp_paths:
            try:
                await aiofiles.os.remove(temp_path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Could not remove temporary file {temp_path.name}: {e}")

    async def _read_sidecar(self, file_path: Path, storage_path: str) -> FileMetadata | None:
        """Return the sidecar record, or None if it is missing or unreadable."""
        try:
            async with aiofiles.open(self._meta_path(file_path), "rb") as f:
                raw = await f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Could not read metadata for {storage_path}: {e}")
            return None

        try:
            return FileMetadata.from_sidecar(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid metadata for {storage_path}: {e}")
            return None
