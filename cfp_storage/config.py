from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    LOG_LEVEL: str = "INFO"

    # Storage settings
    STORAGE_BACKEND: str = "local"  # local | s3
    STORAGE_BASE_PATH: str = "./uploads"
    STORAGE_BASE_URL: str = "/api/v1/files"
    STORAGE_PUBLIC_BASE_URL: str | None = None
    MAX_UPLOAD_SIZE_MB: int = 100
    ALLOWED_FILE_EXTENSIONS: list[str] = [
        "pdf",
        "pptx",
        "ppt",
        "odp",
        "key",
        "doc",
        "docx",
        "mp4",
        "webm",
        "jpg",
        "jpeg",
        "png",
        "gif",
    ]

    # Object store settings (STORAGE_BACKEND=s3)
    S3_BUCKET: str | None = None
    S3_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: str | None = None  # MinIO, Spaces, ...
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None
    S3_PUBLIC_URL: str | None = None

    @property
    def max_upload_size_bytes(self) -> int:
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    # Read from .env as well as the process environment; unknown keys are ignored
    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
