# snapcast/core/config.py

import logging
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

class Settings(BaseSettings):
    """Application settings"""
    # Base App Config
    APP_NAME: str = "SnapCast API"
    API_V1_STR: str = "/api/v1"
    DEBUG: bool = False
    TESTING: bool = False
    LOG_LEVEL: str = "INFO"

    # Supabase (for Auth)
    SUPABASE_URL: str
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_AUDIENCE: str = "authenticated"
    SESSION_COOKIE_NAME: str = "sb-access-token"

    # Redis (for Job Queue and view invalidation)
    REDIS_URL: str
    JOB_QUEUE_NAME: str = "snapcast-jobs"
    INVALIDATION_CHANNEL: str = "snapcast-invalidations"

    # Direct Database Connection (for SQLAlchemy)
    DATABASE_URL: str

    # Bunny Stream (video CDN); checked when an operation needs them
    BUNNY_STREAM_BASE_URL: str = "https://video.bunnycdn.com"
    BUNNY_LIBRARY_ID: str | None = None
    BUNNY_STREAM_ACCESS_KEY: str | None = None
    BUNNY_TIMEOUT_SECONDS: float = 10.0

    # Status polling backoff (worker side)
    STATUS_POLL_INITIAL_DELAY: float = 2.0
    STATUS_POLL_FACTOR: float = 2.0
    STATUS_POLL_MAX_DELAY: float = 60.0
    STATUS_POLL_MAX_ATTEMPTS: int = 20

    # Two-phase delete
    PURGE_MAX_ATTEMPTS: int = 5

    # Cloudflare R2 (for thumbnails)
    R2_ENDPOINT_URL: str | None = None
    R2_ACCESS_KEY_ID: str | None = None
    R2_SECRET_ACCESS_KEY: str | None = None
    R2_BUCKET_NAME: str = "thumbnails"
    R2_PUBLIC_BASE_URL: str | None = None
    R2_UPLOAD_EXPIRATION: int = 3600

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding='utf-8',
        extra="ignore",
    )

@lru_cache()
def get_settings():
    return Settings()

settings = get_settings()
