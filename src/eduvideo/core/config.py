"""Configuration management for the EduVideo upload service."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )

    ENV: str = "local"
    SERVICE_NAME: str = "eduvideo-upload"
    SERVICE_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./data/eduvideo.db"

    # Local storage layout
    UPLOAD_ROOT: str = "./uploads"
    LOCAL_VIDEO_URL_PREFIX: str = "/uploads/videos"

    # Upload constraints
    MAX_CHUNK_MB: int = 10
    MAX_VIDEO_MB: int = 2048
    ALLOWED_VIDEO_MIME_TYPES: str = (
        "video/mp4,video/mpeg,video/quicktime,video/x-msvideo,video/webm,video/x-matroska"
    )

    # Upload session store
    SESSION_STORE_BACKEND: str = "memory"  # "memory" or "redis"
    REDIS_URL: str = "redis://localhost:6379/0"
    UPLOAD_SESSION_TTL_SECONDS: int = 86400

    # Cloud provider selection
    VIDEO_STORAGE_PROVIDER: str = "cloudflare"  # "cloudflare", "s3" or "gcs"
    CLOUD_UPLOAD_MODE: str = "sync"  # "sync" or "background"
    CLOUD_UPLOAD_MAX_ATTEMPTS: int = 3
    CLOUD_UPLOAD_TIMEOUT: int = 600  # seconds for provider HTTP calls

    # Cloudflare Stream
    CLOUDFLARE_ACCOUNT_ID: str = ""
    CLOUDFLARE_API_TOKEN: str = ""
    CLOUDFLARE_API_BASE: str = "https://api.cloudflare.com/client/v4"

    # AWS S3
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "us-east-1"
    AWS_S3_BUCKET: str = ""
    S3_SIGNED_URL_EXPIRY_SECONDS: int = 3600

    # Google Cloud Storage
    GCP_PROJECT_ID: str = ""
    GCS_BUCKET_NAME: str = ""

    @property
    def chunks_dir(self) -> Path:
        """Directory holding one sub-directory of chunk files per upload."""
        return Path(self.UPLOAD_ROOT) / "chunks"

    @property
    def videos_dir(self) -> Path:
        """Directory holding merged and directly uploaded videos."""
        return Path(self.UPLOAD_ROOT) / "videos"

    @property
    def allowed_video_mime_types(self) -> list[str] | None:
        """Parse ALLOWED_VIDEO_MIME_TYPES into a list."""
        if not self.ALLOWED_VIDEO_MIME_TYPES:
            return None
        return [mt.strip() for mt in self.ALLOWED_VIDEO_MIME_TYPES.split(",")]

    @property
    def max_chunk_bytes(self) -> int:
        """Convert MAX_CHUNK_MB to bytes."""
        return self.MAX_CHUNK_MB * 1024 * 1024

    @property
    def max_video_bytes(self) -> int:
        """Convert MAX_VIDEO_MB to bytes."""
        return self.MAX_VIDEO_MB * 1024 * 1024


# Singleton settings instance
settings = Settings()
