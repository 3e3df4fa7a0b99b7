"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
No sensitive values should be hardcoded here.
"""

from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    PROJECT_NAME: str = "Tubely API"
    VERSION: str = "0.1.0"
    API_PREFIX: str = "/api"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_JSON: bool = True

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./tubely.db"

    # Security - REQUIRED (no defaults for sensitive values)
    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # CORS
    CORS_ORIGINS: list[str] = []

    # Public address of this service, used for thumbnail URLs
    PUBLIC_BASE_URL: str = "http://localhost:8091"

    # Thumbnail store: filesystem, memory
    THUMBNAIL_STORE: str = "filesystem"
    ASSETS_ROOT: str = "./assets"

    # Scratch directory for staged uploads (system temp dir when unset)
    SCRATCH_DIR: Optional[str] = None

    # Object storage
    # STORAGE_BACKEND: s3, minio, aws, local
    STORAGE_BACKEND: str = "s3"
    STORAGE_BUCKET: str = ""
    STORAGE_REGION: str = "us-east-1"
    STORAGE_ACCESS_KEY: str = ""
    STORAGE_SECRET_KEY: str = ""
    STORAGE_ENDPOINT_URL: Optional[str] = None  # Required for MinIO
    STORAGE_USE_SSL: bool = True
    LOCAL_STORAGE_PATH: str = "./storage"
    PRESIGNED_URL_EXPIRE_SECONDS: int = 600

    # Media tools
    FFMPEG_PATH: str = "ffmpeg"
    FFPROBE_PATH: str = "ffprobe"
    MEDIA_TOOL_TIMEOUT_SECONDS: float = 300.0

    # Upload limits
    MAX_VIDEO_UPLOAD_BYTES: int = 1 << 30  # 1 GiB
    MAX_THUMBNAIL_UPLOAD_BYTES: int = 10 << 20  # 10 MiB

    # Tracing
    OTLP_ENDPOINT: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
