"""
Storage backend selection and lifecycle.

The active backend is built once from configuration when the app starts
(``init_storage``) and handed to endpoints through the ``get_storage``
dependency. Code outside request handlers should receive the backend as
an argument rather than calling ``get_storage`` itself.
"""
from cfp_storage.config import Settings, settings
from cfp_storage.logging_config import setup_logging
from cfp_storage.storage.base import StorageBackend
from cfp_storage.storage.local import LocalStorageBackend

logger = setup_logging()

_storage: StorageBackend | None = None


def create_storage(config: Settings) -> StorageBackend:
    """
    Build the storage backend named by ``config.STORAGE_BACKEND``.

    Switching between local and cloud storage is a matter of changing the
    STORAGE_BACKEND environment variable.

    Returns:
        StorageBackend instance (local or S3)

    Raises:
        ValueError: If STORAGE_BACKEND is not supported or S3 settings are incomplete
    """
    if config.STORAGE_BACKEND == "local":
        return LocalStorageBackend(
            base_path=config.STORAGE_BASE_PATH,
            base_url=config.STORAGE_BASE_URL,
            public_base_url=config.STORAGE_PUBLIC_BASE_URL,
        )

    if config.STORAGE_BACKEND == "s3":
        if not config.S3_BUCKET:
            raise ValueError("S3_BUCKET is required when STORAGE_BACKEND=s3")

        # Imported lazily so local deployments never load the AWS SDK
        from cfp_storage.storage.s3 import S3StorageBackend

        return S3StorageBackend(
            bucket=config.S3_BUCKET,
            region=config.S3_REGION,
            endpoint_url=config.S3_ENDPOINT_URL,
            aws_access_key_id=config.S3_ACCESS_KEY_ID,
            aws_secret_access_key=config.S3_SECRET_ACCESS_KEY,
            public_url=config.S3_PUBLIC_URL,
            base_url=config.STORAGE_BASE_URL,
        )

    raise ValueError(f"Unknown storage backend: {config.STORAGE_BACKEND}")


async def init_storage(config: Settings | None = None) -> StorageBackend:
    """
    Create and initialize the process-wide storage backend.

    Called once at application startup. Calling it again replaces the
    backend (tests use this together with ``reset_storage``).
    """
    global _storage

    backend = create_storage(config or settings)
    await backend.initialize()
    _storage = backend

    logger.info(f"Storage backend initialized: {backend.backend_name}")
    return backend


def get_storage() -> StorageBackend:
    """
    Return the active storage backend.

    Used as a FastAPI dependency. Falls back to building the backend from
    the current settings if startup did not run (e.g. scripts).
    """
    global _storage

    if _storage is None:
        _storage = create_storage(settings)
    return _storage


def reset_storage() -> None:
    """Forget the active backend so the next access rebuilds it."""
    global _storage
    _storage = None
