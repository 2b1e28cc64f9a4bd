"""
Upload API client.

Client half of the storage abstraction: sends a file to the upload
endpoint with progress reporting and deletes stored files, without
knowing which storage backend the server uses.
"""

from __future__ import annotations

import asyncio
import io
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from cfp_storage.logging_config import setup_logging
from cfp_storage.storage.exceptions import StorageErrorCode
from cfp_storage.storage.models import UploadResult

logger = setup_logging()


@dataclass(frozen=True)
class UploadProgress:
    """Progress of one upload. Never decreases while the upload runs."""

    loaded: int
    total: int
    percentage: int

    @classmethod
    def of(cls, loaded: int, total: int) -> UploadProgress:
        percentage = 100 if total == 0 else round(loaded * 100 / total)
        return cls(loaded=loaded, total=total, percentage=percentage)


ProgressCallback = Callable[[UploadProgress], None]


class UploadClientError(Exception):
    """Base class for upload client failures."""


class UploadNetworkError(UploadClientError):
    """No response was received (connection refused, timeout, reset...)."""

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.original_error = original_error


class UploadRejectedError(UploadClientError):
    """The server answered and refused the upload."""

    def __init__(self, status_code: int, code: StorageErrorCode, message: str):
        super().__init__(f"Upload rejected ({status_code} {code.value}): {message}")
        self.status_code = status_code
        self.code = code
        self.message = message


class UploadAbortedError(UploadClientError):
    """The caller aborted the upload."""


class _ProgressReader(io.BytesIO):
    """In-memory file that reports how far httpx has read it."""

    def __init__(
        self,
        data: bytes,
        on_progress: ProgressCallback | None,
        abort: asyncio.Event | None,
    ):
        super().__init__(data)
        self.total = len(data)
        self.reported = -1
        self.aborted = False
        self._on_progress = on_progress
        self._abort = abort

    def read(self, size: int | None = -1) -> bytes:
        if self._abort is not None and self._abort.is_set():
            self.aborted = True
            raise UploadAbortedError("Upload aborted")

        chunk = super().read(size)
        if chunk:
            self.report(self.tell())
        return chunk

    def report(self, loaded: int) -> None:
        # httpx may rewind the file before streaming; only move forward
        if loaded <= self.reported:
            return
        self.reported = loaded
        if self._on_progress is not None:
            self._on_progress(UploadProgress.of(loaded, self.total))


class UploadClient:
    """
    HTTP client for the upload API.

    Usage:
        async with UploadClient("https://cfp.example.org") as client:
            result = await client.upload(data, "slides.pdf", "application/pdf",
                                         "submission-material", target_id="sub-42")
    """

    def __init__(
        self,
        base_url: str,
        upload_endpoint: str = "/api/v1/upload",
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._upload_endpoint = upload_endpoint
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    async def close(self) -> None:
        """Close HTTP client."""
        await self._http.aclose()

    async def __aenter__(self) -> UploadClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def upload(
        self,
        data: bytes,
        filename: str,
        content_type: str,
        upload_type: str,
        target_id: str | None = None,
        on_progress: ProgressCallback | None = None,
        abort: asyncio.Event | None = None,
    ) -> UploadResult:
        """
        Upload a file as multipart form data.

        POST {upload_endpoint}

        Args:
            data: File content
            filename: Original file name
            content_type: MIME type of the file
            upload_type: avatar, submission-material, organization-logo,
                event-banner or temp
            target_id: Submission/organization/event id where the type needs one
            on_progress: Called with UploadProgress as the body is sent, and
                once more with (total, total, 100) on success
            abort: Set it to abort the upload

        Returns:
            UploadResult with path, url, size and content type

        Raises:
            UploadAbortedError: If abort was set
            UploadNetworkError: If no response was received
            UploadRejectedError: If the server refused the upload
        """
        reader = _ProgressReader(data, on_progress, abort)
        if abort is not None and abort.is_set():
            raise UploadAbortedError("Upload aborted")

        form = {"type": upload_type}
        if target_id:
            form["targetId"] = target_id

        reader.report(0)
        try:
            response = await self._http.post(
                self._upload_endpoint,
                data=form,
                files={"file": (filename, reader, content_type)},
            )
        except UploadAbortedError:
            raise
        except httpx.TransportError as e:
            if reader.aborted:
                raise UploadAbortedError("Upload aborted") from e
            logger.warning(f"Network error during upload of {filename}: {e}")
            raise UploadNetworkError("Network error during upload", e) from e

        # The server may answer a body that was cut short by the abort
        if reader.aborted:
            raise UploadAbortedError("Upload aborted")

        result = self._parse_upload_response(response)

        # No-op when the body was streamed through read() to the end
        reader.report(reader.total)

        return result

    async def delete(self, path: str) -> bool:
        """
        Delete a stored file.

        DELETE {upload_endpoint}?path={path}

        Returns:
            True if the server deleted the file, False otherwise
        """
        try:
            response = await self._http.delete(self._upload_endpoint, params={"path": path})
        except httpx.TransportError as e:
            logger.warning(f"Network error deleting {path}: {e}")
            return False

        if response.is_success:
            return True

        code, message = self._error_fields(response)
        logger.warning(f"Delete of {path} failed: {response.status_code} {code.value}: {message}")
        return False

    def _parse_upload_response(self, response: httpx.Response) -> UploadResult:
        if not response.is_success:
            code, message = self._error_fields(response)
            raise UploadRejectedError(response.status_code, code, message)

        try:
            body = response.json()
        except ValueError:
            raise UploadRejectedError(
                response.status_code, StorageErrorCode.UNKNOWN, "Invalid response"
            )

        if not isinstance(body, dict) or not body.get("success"):
            code, message = self._error_fields(response)
            raise UploadRejectedError(response.status_code, code, message)

        return UploadResult.model_validate(body["file"])

    @staticmethod
    def _error_fields(response: httpx.Response) -> tuple[StorageErrorCode, str]:
        """Extract (code, message) from an error body; unknown shapes map to UNKNOWN."""
        fallback = f"Upload failed with status {response.status_code}"
        try:
            body = response.json()
        except ValueError:
            return StorageErrorCode.UNKNOWN, fallback

        if not isinstance(body, dict):
            return StorageErrorCode.UNKNOWN, fallback

        try:
            code = StorageErrorCode(body.get("error"))
        except ValueError:
            code = StorageErrorCode.UNKNOWN

        message = body.get("message") or body.get("error") or fallback
        return code, str(message)


def format_file_size(num_bytes: int) -> str:
    """
    Format a byte count for display.

    Examples:
        >>> format_file_size(0)
        '0 B'
        >>> format_file_size(1536)
        '1.5 KB'
        >>> format_file_size(5 * 1024 * 1024)
        '5 MB'
    """
    if num_bytes <= 0:
        return "0 B"

    units = ["B", "KB", "MB", "GB"]
    value = float(num_bytes)
    unit = 0
    while value >= 1024 and unit < len(units) - 1:
        value /= 1024
        unit += 1

    text = f"{value:.1f}".rstrip("0").rstrip(".")
    return f"{text} {units[unit]}"


def is_allowed_file_type(content_type: str, allowed_types: list[str]) -> bool:
    """Check a file's MIME type against an allow-list before uploading."""
    return content_type in allowed_types


def is_within_size_limit(size: int, max_size_bytes: int) -> bool:
    """Check a file's size against a limit before uploading."""
    return size <= max_size_bytes
