"""
Storage data models.

``FileMetadata`` doubles as the on-disk sidecar schema of the filesystem
backend, so its JSON shape (camelCase keys) must stay readable across
releases. Bump ``METADATA_VERSION`` and keep parsing older records when
the shape changes.
"""
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_CONTENT_TYPE = "application/octet-stream"

METADATA_VERSION = 1

_camel_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UploadOptions(BaseModel):
    """Constraints and descriptive data for a single upload call."""

    model_config = _camel_config

    content_type: str | None = None
    """Declared MIME type (defaults to application/octet-stream)."""

    max_size: int | None = Field(None, gt=0)
    """Byte ceiling; no limit when unset."""

    allowed_types: list[str] | None = None
    """MIME allow-list; any type accepted when unset."""

    is_public: bool = False
    """Whether the object may be served without authentication."""

    metadata: dict[str, str] = Field(default_factory=dict)
    """Opaque caller data stored alongside the object."""


class FileMetadata(BaseModel):
    """Durable record describing a stored object."""

    model_config = _camel_config

    version: int = METADATA_VERSION
    path: str
    size: int = Field(ge=0)
    content_type: str = DEFAULT_CONTENT_TYPE
    last_modified: datetime
    is_public: bool = False
    metadata: dict[str, str] = Field(default_factory=dict)

    @field_validator("last_modified")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        # Naive timestamps are written by older tools and are UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("metadata", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return {} if value is None else value

    def to_sidecar(self) -> str:
        """Serialize to the sidecar JSON document."""
        return self.model_dump_json(by_alias=True, indent=2)

    @classmethod
    def from_sidecar(cls, raw: str | bytes) -> "FileMetadata":
        """Parse a sidecar JSON document (any supported version)."""
        return cls.model_validate_json(raw)


class UploadResult(BaseModel):
    """Value returned by a successful upload."""

    model_config = _camel_config

    path: str
    url: str
    size: int
    content_type: str

    @classmethod
    def from_metadata(cls, metadata: FileMetadata, url: str) -> "UploadResult":
        return cls(
            path=metadata.path,
            url=url,
            size=metadata.size,
            content_type=metadata.content_type,
        )
