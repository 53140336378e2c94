from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

STORAGE_BACKENDS = ("local", "s3")


class Settings(BaseSettings):
    """Read from the environment (or .env); names are case-insensitive."""

    app_name: str = "DocVault"
    app_version: str = "1.0.0"
    debug: bool = False

    # Metadata store; any SQLAlchemy async URL
    database_url: str = ""
    database_echo: bool = False
    database_command_timeout: float = Field(default=60.0, gt=0)

    # Blob store
    storage_backend: str = "local"
    storage_root: str = "/var/docvault/storage"
    s3_bucket: str | None = None
    s3_region: str = "us-east-1"
    s3_endpoint_url: str | None = None  # MinIO / LocalStack
    s3_access_key: str | None = None
    s3_secret_key: str | None = None
    storage_timeout_seconds: float = Field(default=30.0, gt=0)

    version_append_max_attempts: int = Field(default=3, ge=1)
    soft_delete_retention_days: int = Field(default=30, ge=0)

    redis_enabled: bool = True
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: str | None = None
    cache_ttl_group_membership: int = 30  # seconds

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="allow", case_sensitive=False
    )

    @model_validator(mode="after")
    def check_required(self) -> "Settings":
        if not self.database_url:
            raise ValueError("DATABASE_URL is required (environment or .env)")

        if self.storage_backend not in STORAGE_BACKENDS:
            raise ValueError(
                f"Invalid storage_backend {self.storage_backend!r}, expected one of {STORAGE_BACKENDS}"
            )
        # S3 credentials may come from the instance role; only the bucket is mandatory
        if self.storage_backend == "s3" and not self.s3_bucket:
            raise ValueError("s3_bucket is required when storage_backend is 's3' (S3_BUCKET)")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
