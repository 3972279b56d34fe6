from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class UploadSettings(BaseSettings):
    """Configuration for the upload transport, analysis client and task limits."""
    API_BASE_URL: str = "http://localhost:8080/api"
    UPLOAD_PATH: str = "/minio/upload"
    ANALYZE_PATH: str = "/items/analysis"
    REQUEST_TIMEOUT_SEC: float = 60.0
    UPLOAD_CHUNK_SIZE: int = 64 * 1024
    MAX_FILE_SIZE_BYTES: int = 10 * 1024 * 1024
    ALLOWED_CONTENT_TYPES: list[str] = [
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/webp",
    ]
    MAX_CONCURRENT_TASKS: int | None = None
    MAX_RETRIES: int | None = None

    model_config = ConfigDict(env_file=".env", extra="ignore")


def get_upload_settings() -> UploadSettings:
    """Return a fresh upload settings instance."""
    return UploadSettings()
