"""
S3-compatible object storage backend.

Works with AWS S3 and S3-compatible services (MinIO, DigitalOcean Spaces,
...) via ``endpoint_url``. Object metadata is kept as native S3 user
metadata, so there are no sidecar objects in the bucket.
"""
from __future__ import annotations

from datetime import datetime, timezone
from urllib.parse import quote, unquote

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError, ParamValidationError

from cfp_storage.config import settings
from cfp_storage.storage.base import StorageBackend
from cfp_storage.storage.exceptions import (
    InvalidFileError,
    StorageError,
    StorageErrorCode,
    StoredFileNotFoundError,
)
from cfp_storage.storage.models import (
    DEFAULT_CONTENT_TYPE,
    FileMetadata,
    UploadOptions,
    UploadResult,
)
from cfp_storage.storage.paths import normalize_storage_path, validate_file

# S3 lowercases user metadata keys, so the visibility flag uses a lowercase name
PUBLIC_FLAG_KEY = "cfp-is-public"

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class S3StorageBackend(StorageBackend):
    """
    S3/MinIO storage backend.

    Storage paths are used as object keys after the same normalization the
    filesystem backend applies, so a path means the same object on either
    backend.
    """

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        aws_access_key_id: str | None = None,
        aws_secret_access_key: str | None = None,
        public_url: str | None = None,
        base_url: str | None = None,
        session: aioboto3.Session | None = None,
    ):
        """
        Initialize S3 storage.

        Args:
            bucket: Bucket name
            region: AWS region
            endpoint_url: Custom endpoint for S3-compatible services (None for AWS)
            aws_access_key_id: Access key (optional, uses env/IAM if not set)
            aws_secret_access_key: Secret key (optional, uses env/IAM if not set)
            public_url: Public prefix for object URLs (e.g. a CDN host)
            base_url: Prefix of the access-controlled file endpoint (default from config)
            session: aioboto3 session to use (a new one by default)
        """
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self.aws_access_key_id = aws_access_key_id
        self.aws_secret_access_key = aws_secret_access_key
        self.public_url = public_url.rstrip("/") if public_url else None
        self.base_url = (base_url or settings.STORAGE_BASE_URL).rstrip("/")
        self._session = session or aioboto3.Session()

    @property
    def backend_name(self) -> str:
        return "s3"

    def _get_client_kwargs(self) -> dict:
        """Build kwargs for S3 client."""
        kwargs = {
            "region_name": self.region,
        }
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url
        if self.aws_access_key_id and self.aws_secret_access_key:
            kwargs["aws_access_key_id"] = self.aws_access_key_id
            kwargs["aws_secret_access_key"] = self.aws_secret_access_key
        return kwargs

    def _client(self):
        return self._session.client("s3", **self._get_client_kwargs())

    # Contract operations

    async def upload(
        self,
        path: str,
        data: bytes,
        options: UploadOptions | None = None,
    ) -> UploadResult:
        content_type = (options.content_type if options else None) or DEFAULT_CONTENT_TYPE
        validate_file(data, content_type, options)

        key = self._key(path)
        # User metadata travels as HTTP headers, which only carry ASCII
        caller_metadata = options.metadata if options else {}
        user_metadata = {name: quote(value, safe="") for name, value in caller_metadata.items()}
        user_metadata[PUBLIC_FLAG_KEY] = "true" if options and options.is_public else "false"

        try:
            async with self._client() as s3:
                await s3.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=bytes(data),
                    ContentType=content_type,
                    Metadata=user_metadata,
                )
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, "upload", key) from e

        return UploadResult(
            path=key,
            url=self.get_public_url(key),
            size=len(data),
            content_type=content_type,
        )

    async def download(self, path: str) -> bytes:
        key = self._key(path)

        try:
            async with self._client() as s3:
                response = await s3.get_object(Bucket=self.bucket, Key=key)
                return await response["Body"].read()
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, "download", key) from e

    async def delete(self, path: str) -> None:
        key = self._key(path)

        try:
            async with self._client() as s3:
                # delete_object succeeds for missing keys; check first
                await s3.head_object(Bucket=self.bucket, Key=key)
                await s3.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, "delete", key) from e

    async def exists(self, path: str) -> bool:
        key = normalize_storage_path(path)
        if not key:
            return False

        try:
            async with self._client() as s3:
                await s3.head_object(Bucket=self.bucket, Key=key)
                return True
        except ClientError as e:
            if self._error_code(e) in _NOT_FOUND_CODES:
                return False
            raise self._translate_error(e, "check", key) from e
        except BotoCoreError as e:
            raise self._translate_error(e, "check", key) from e

    async def get_metadata(self, path: str) -> FileMetadata:
        key = self._key(path)

        try:
            async with self._client() as s3:
                response = await s3.head_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, "get metadata for", key) from e

        user_metadata = dict(response.get("Metadata") or {})
        is_public = user_metadata.pop(PUBLIC_FLAG_KEY, "false") == "true"

        return FileMetadata(
            path=key,
            size=response.get("ContentLength", 0),
            content_type=response.get("ContentType") or DEFAULT_CONTENT_TYPE,
            last_modified=response.get("LastModified") or datetime.now(timezone.utc),
            is_public=is_public,
            metadata={name: unquote(value) for name, value in user_metadata.items()},
        )

    async def list(self, prefix: str) -> list[str]:
        normalized = normalize_storage_path(prefix)
        directory = f"{normalized}/" if normalized else ""
        keys = []

        try:
            async with self._client() as s3:
                paginator = s3.get_paginator("list_objects_v2")
                async for page in paginator.paginate(Bucket=self.bucket, Prefix=normalized):
                    for obj in page.get("Contents", []):
                        key = obj["Key"]
                        # Same scoping as directories on disk: "a" matches "a/1", not "ab"
                        if key == normalized or key.startswith(directory):
                            keys.append(key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, "list", normalized) from e

        return sorted(keys)

    async def copy(self, source: str, dest: str) -> None:
        source_key = self._key(source)
        dest_key = self._key(dest)

        try:
            async with self._client() as s3:
                await s3.head_object(Bucket=self.bucket, Key=source_key)
                await s3.copy_object(
                    Bucket=self.bucket,
                    Key=dest_key,
                    CopySource={"Bucket": self.bucket, "Key": source_key},
                    MetadataDirective="COPY",
                )
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, "copy", source_key) from e

    def get_public_url(self, path: str) -> str:
        key = quote(normalize_storage_path(path))
        if self.public_url:
            return f"{self.public_url}/{key}"
        if self.endpoint_url:
            # Path-style addressing for S3-compatible services
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def get_internal_url(self, path: str) -> str:
        return f"{self.base_url}/{quote(normalize_storage_path(path))}"

    # Presigned URLs (S3 only)

    async def generate_presigned_url(self, path: str, expires_in: int = 3600) -> str:
        """
        Generate a temporary download URL for a private object.

        Args:
            path: Storage path
            expires_in: URL lifetime in seconds

        Returns:
            Presigned URL string
        """
        return await self._presign("get_object", {"Key": self._key(path)}, expires_in)

    async def generate_upload_url(
        self, path: str, content_type: str, expires_in: int = 3600
    ) -> str:
        """Generate a temporary URL a client can PUT the object to directly."""
        params = {"Key": self._key(path), "ContentType": content_type}
        return await self._presign("put_object", params, expires_in)

    async def _presign(self, method: str, params: dict, expires_in: int) -> str:
        try:
            async with self._client() as s3:
                return await s3.generate_presigned_url(
                    ClientMethod=method,
                    Params={"Bucket": self.bucket, **params},
                    ExpiresIn=expires_in,
                )
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, "sign URL for", params["Key"]) from e

    # Helpers

    @staticmethod
    def _key(path: str) -> str:
        key = normalize_storage_path(path)
        if not key:
            raise InvalidFileError("Storage path must not be empty")
        return key

    @staticmethod
    def _error_code(error: ClientError) -> str | None:
        return error.response.get("Error", {}).get("Code")

    def _translate_error(self, error: Exception, action: str, key: str) -> StorageError:
        if isinstance(error, ClientError) and self._error_code(error) in _NOT_FOUND_CODES:
            return StoredFileNotFoundError(key, error)
        # Rejected by botocore before sending; retrying cannot help
        if isinstance(error, ParamValidationError):
            return InvalidFileError(f"Invalid request to {action} file: {error}", error)
        return StorageError(
            f"Failed to {action} file: {error}", StorageErrorCode.UNKNOWN, error
        )
