"""
Storage path and upload validation utilities.

Pure functions only: nothing in this module touches the filesystem or the
network, so every backend applies exactly the same rules.
"""
import posixpath
import re

from cfp_storage.storage.exceptions import (
    FileSizeExceededError,
    FileTypeNotAllowedError,
    InvalidFileError,
)
from cfp_storage.storage.models import DEFAULT_CONTENT_TYPE, UploadOptions

# Accepted upload types and the extension used when a path needs one
MIME_EXTENSIONS: dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "application/pdf": ".pdf",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": ".pptx",
    "application/vnd.ms-powerpoint": ".ppt",
    "application/vnd.oasis.opendocument.presentation": ".odp",
    "application/vnd.apple.keynote": ".key",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "video/mp4": ".mp4",
    "video/webm": ".webm",
}

_EXTENSION_MIMES: dict[str, str] = {ext: mime for mime, ext in MIME_EXTENSIONS.items()}
_EXTENSION_MIMES[".jpeg"] = "image/jpeg"

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")
_DOT_RUNS = re.compile(r"\.+")
MAX_FILENAME_LENGTH = 100


class StoragePaths:
    """
    Canonical storage path builders, one per resource kind.

    The same identifiers always produce the same path, so re-uploading a
    logical resource overwrites the previous object instead of piling up
    new ones.
    """

    @staticmethod
    def avatar(user_id: str) -> str:
        return f"avatars/{user_id}"

    @staticmethod
    def submission_material(submission_id: str, filename: str) -> str:
        return f"submissions/{submission_id}/materials/{filename}"

    @staticmethod
    def organization_logo(org_id: str) -> str:
        return f"organizations/{org_id}/logo"

    @staticmethod
    def event_banner(event_id: str) -> str:
        return f"events/{event_id}/banner"

    @staticmethod
    def temp(filename: str) -> str:
        return f"temp/{filename}"


def get_extension_from_mime(mime_type: str) -> str:
    """
    Get the file extension (with leading dot) for an accepted MIME type.

    Examples:
        >>> get_extension_from_mime("image/png")
        '.png'
        >>> get_extension_from_mime("text/html")
        ''
    """
    return MIME_EXTENSIONS.get(mime_type, "")


def get_mime_from_extension(extension: str) -> str:
    """Inverse of ``get_extension_from_mime``; unknown extensions map to the generic binary type."""
    ext = extension.lower()
    if ext and not ext.startswith("."):
        ext = f".{ext}"
    return _EXTENSION_MIMES.get(ext, DEFAULT_CONTENT_TYPE)


def sanitize_filename(filename: str) -> str:
    """
    Reduce a client-supplied file name to a safe single path segment.

    Anything outside ``[A-Za-z0-9._-]`` becomes ``_`` (this removes path
    separators), runs of dots collapse to one dot, and the result is capped
    at 100 characters.

    Examples:
        >>> sanitize_filename("../../my talk (final).pdf")
        '._._my_talk__final_.pdf'
    """
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", filename)
    cleaned = _DOT_RUNS.sub(".", cleaned)
    return cleaned[:MAX_FILENAME_LENGTH] or "file"


def normalize_storage_path(path: str) -> str:
    """
    Normalize a caller-supplied storage path into a root-relative POSIX path.

    Backslashes count as separators, ``.`` and inner ``..`` segments are
    collapsed, and any leading ``/`` or ``..`` segments left over are
    stripped, so the result can never climb above the storage root.
    An empty string means the root itself.

    Examples:
        >>> normalize_storage_path("../../etc/passwd")
        'etc/passwd'
        >>> normalize_storage_path("..\\\\..\\\\config")
        'config'
        >>> normalize_storage_path("avatars/./u1")
        'avatars/u1'

    Raises:
        InvalidFileError: If the path is not a string or contains NUL bytes
    """
    if not isinstance(path, str):
        raise InvalidFileError(f"Storage path must be a string, got {type(path).__name__}")
    if "\x00" in path:
        raise InvalidFileError("Storage path must not contain NUL bytes")

    normalized = posixpath.normpath(path.replace("\\", "/")).lstrip("/")

    while normalized == ".." or normalized.startswith("../"):
        normalized = normalized[3:]

    if normalized == ".":
        return ""
    return normalized


def validate_file(
    data: bytes,
    content_type: str,
    options: UploadOptions | None = None,
) -> None:
    """
    Check an upload payload against its options before any I/O happens.

    Args:
        data: Raw file content
        content_type: Declared MIME type
        options: Upload constraints (no constraints when None)

    Raises:
        InvalidFileError: If data is not bytes-like
        FileSizeExceededError: If data is larger than options.max_size
        FileTypeNotAllowedError: If content_type is not in options.allowed_types
    """
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise InvalidFileError(
            f"File content must be bytes, got {type(data).__name__}"
        )

    if options is None:
        return

    size = len(data)
    if options.max_size is not None and size > options.max_size:
        raise FileSizeExceededError(size, options.max_size)

    if options.allowed_types is not None and content_type not in options.allowed_types:
        raise FileTypeNotAllowedError(content_type, options.allowed_types)
