"""
Upload type policies.

Each kind of upload the HTTP endpoint accepts has its own size ceiling,
MIME allow-list, visibility and storage path layout. The storage backend
itself knows nothing about these kinds; it only sees the resulting path
and ``UploadOptions``.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from cfp_storage.config import Settings, settings
from cfp_storage.storage.exceptions import InvalidFileError
from cfp_storage.storage.models import UploadOptions
from cfp_storage.storage.paths import (
    StoragePaths,
    get_extension_from_mime,
    get_mime_from_extension,
    sanitize_filename,
)

MB = 1024 * 1024

IMAGE_TYPES = ["image/jpeg", "image/png", "image/gif", "image/webp"]
BANNER_TYPES = ["image/jpeg", "image/png", "image/webp"]
MATERIAL_TYPES = [
    "application/pdf",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "application/vnd.ms-powerpoint",
    "application/vnd.oasis.opendocument.presentation",
    "video/mp4",
    "video/webm",
    "image/jpeg",
    "image/png",
]


class UploadType(str, Enum):
    """Resource kinds accepted by the upload endpoint."""

    AVATAR = "avatar"
    SUBMISSION_MATERIAL = "submission-material"
    ORGANIZATION_LOGO = "organization-logo"
    EVENT_BANNER = "event-banner"
    TEMP = "temp"


@dataclass(frozen=True)
class UploadTypeConfig:
    """Constraints applied to one upload type."""

    max_size: int
    allowed_types: list[str]
    is_public: bool
    requires_target: bool


def get_upload_type_config(upload_type: UploadType, config: Settings = settings) -> UploadTypeConfig:
    """Return the policy for an upload type, using configured limits where they apply."""
    if upload_type is UploadType.AVATAR:
        return UploadTypeConfig(5 * MB, IMAGE_TYPES, is_public=True, requires_target=False)

    if upload_type is UploadType.SUBMISSION_MATERIAL:
        return UploadTypeConfig(
            config.max_upload_size_bytes, MATERIAL_TYPES, is_public=False, requires_target=True
        )

    if upload_type is UploadType.ORGANIZATION_LOGO:
        return UploadTypeConfig(2 * MB, BANNER_TYPES, is_public=True, requires_target=True)

    if upload_type is UploadType.EVENT_BANNER:
        return UploadTypeConfig(5 * MB, BANNER_TYPES, is_public=True, requires_target=True)

    # Temp uploads accept whatever extensions are configured
    allowed = list(dict.fromkeys(get_mime_from_extension(ext) for ext in config.ALLOWED_FILE_EXTENSIONS))
    return UploadTypeConfig(
        config.max_upload_size_bytes, allowed, is_public=False, requires_target=False
    )


def resolve_storage_path(
    upload_type: UploadType,
    content_type: str,
    filename: str,
    target_id: str | None = None,
    user_id: str | None = None,
) -> str:
    """
    Build the storage path for an upload.

    Single-instance resources (avatar, logo, banner) get a deterministic
    path plus the extension of their content type, so a new upload
    replaces the old one. Materials and temp files are prefixed with a
    random id so several files with the same name can coexist.

    Raises:
        InvalidFileError: If the identifier the type needs is missing
    """
    extension = get_extension_from_mime(content_type)
    safe_name = sanitize_filename(filename)

    if upload_type is UploadType.AVATAR:
        owner_id = user_id or target_id
        if not owner_id:
            raise InvalidFileError("User ID is required")
        return f"{StoragePaths.avatar(sanitize_filename(owner_id))}{extension}"

    if upload_type is UploadType.TEMP:
        return StoragePaths.temp(f"{uuid.uuid4().hex}-{safe_name}")

    if not target_id:
        label = {
            UploadType.SUBMISSION_MATERIAL: "Submission",
            UploadType.ORGANIZATION_LOGO: "Organization",
            UploadType.EVENT_BANNER: "Event",
        }[upload_type]
        raise InvalidFileError(f"{label} ID is required")

    target = sanitize_filename(target_id)

    if upload_type is UploadType.SUBMISSION_MATERIAL:
        return StoragePaths.submission_material(target, f"{uuid.uuid4().hex}-{safe_name}")
    if upload_type is UploadType.ORGANIZATION_LOGO:
        return f"{StoragePaths.organization_logo(target)}{extension}"
    return f"{StoragePaths.event_banner(target)}{extension}"


def build_upload_options(
    upload_type: UploadType,
    content_type: str,
    filename: str,
    user_id: str | None = None,
    config: Settings = settings,
) -> UploadOptions:
    """Combine the type policy with descriptive metadata for one upload."""
    policy = get_upload_type_config(upload_type, config)

    metadata = {
        "originalName": filename,
        "uploadType": upload_type.value,
        "uploadedAt": datetime.now(timezone.utc).isoformat(),
    }
    if user_id:
        metadata["uploadedBy"] = user_id

    return UploadOptions(
        content_type=content_type,
        max_size=policy.max_size,
        allowed_types=policy.allowed_types,
        is_public=policy.is_public,
        metadata=metadata,
    )
