"""
Application settings.
Database credentials come from the environment, or from AWS Secrets Manager
when DB_SECRET_NAME is set and nothing else is configured.
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # AWS
    AWS_REGION: str = "us-east-1"

    # Database. DATABASE_URL wins over the individual parts.
    DATABASE_URL: Optional[str] = None
    DB_HOST: Optional[str] = None
    DB_PORT: int = 5432
    DB_NAME: Optional[str] = None
    DB_USER: Optional[str] = None
    DB_PASS: Optional[str] = None
    DB_SECRET_NAME: Optional[str] = None  # e.g. jewelry-messaging/db

    # Redis (sessions are issued by the storefront auth service)
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    SESSION_TTL: int = 86400  # 24 hours in seconds
    SESSION_COOKIE_NAME: str = "session"

    # S3 (when set, message images are stored in S3)
    S3_BUCKET_NAME: Optional[str] = None
    S3_REGION: Optional[str] = None  # defaults to AWS_REGION

    # Messaging
    MESSAGE_POLL_INTERVAL_SECONDS: int = 5
    MESSAGE_IMAGE_MAX_BYTES: int = 5 * 1024 * 1024

    # Optional
    DEBUG: bool = False
    PROJECT_NAME: str = "Jewelry Messaging Backend"
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Local uploads fallback when S3_BUCKET_NAME is not set
    UPLOAD_DIR: str = "uploads"

    @property
    def use_s3(self) -> bool:
        return bool(self.S3_BUCKET_NAME)

    @property
    def s3_region(self) -> str:
        return self.S3_REGION or self.AWS_REGION

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.DB_USER}:{self.DB_PASS}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()

# Load DB credentials from AWS Secrets Manager only when they aren't already
# provided via environment variables (e.g. in Docker / local dev / tests).
if not settings.DATABASE_URL and not settings.DB_HOST and settings.DB_SECRET_NAME:
    from app.aws.secrets import get_secret

    _db_secret = get_secret(settings.DB_SECRET_NAME, region_name=settings.AWS_REGION)
    settings.DB_HOST = _db_secret["host"]
    settings.DB_PORT = int(_db_secret.get("port", 5432))
    settings.DB_NAME = _db_secret["database"]
    settings.DB_USER = _db_secret["username"]
    settings.DB_PASS = _db_secret["password"]
