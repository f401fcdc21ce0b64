# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Environment-driven configuration.

Each concern reads its own prefixed variables (``DATABASE_*``, ``JWT_*``,
``STORAGE_*``, ``IMPORT_*``, ``CORS_*``, ``API_*``); Settings groups them
together with the top-level ``ENVIRONMENT``, ``DEBUG`` and ``LOG_LEVEL``.
Use get_settings() rather than instantiating Settings directly.
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

DEFAULT_JWT_SECRET = "change-this-in-production"


class DatabaseSettings(BaseSettings):
    """Connection to the LMS database.

    ``DATABASE_URL`` wins over the individual parts, which is how SQLite is
    selected for local runs.
    """

    model_config = SettingsConfigDict(env_prefix="DATABASE_", extra="ignore", populate_by_name=True)

    user: str = "lumen"
    password: SecretStr = SecretStr("lumen_password")
    host: str = "localhost"
    port: int = 5432
    database: str = "lumen_lms"
    url_override: str | None = Field(default=None, validation_alias="DATABASE_URL")
    pool_size: int = 10
    max_overflow: int = 20

    @property
    def url(self) -> str:
        if self.url_override:
            return self.url_override
        return URL.create(
            "postgresql+asyncpg",
            username=self.user,
            password=self.password.get_secret_value(),
            host=self.host,
            port=self.port,
            database=self.database,
        ).render_as_string(hide_password=False)

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")


class JWTSettings(BaseSettings):
    """Verification of provider-issued access tokens."""

    model_config = SettingsConfigDict(env_prefix="JWT_", extra="ignore")

    secret_key: SecretStr = SecretStr(DEFAULT_JWT_SECRET)
    algorithm: str = "HS256"
    # lifetime of tokens minted locally for development
    access_token_expire_minutes: int = Field(
        default=30, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES"
    )


class StorageSettings(BaseSettings):
    """Where uploaded files are kept between pipeline stages.

    Attributes:
        backend: ``local`` writes under local_root; ``s3`` uses a bucket.
        local_root: Directory of the local backend.
        bucket: Bucket of the S3 backend.
        region: S3 region.
        endpoint_url: Non-AWS endpoint such as MinIO.
        access_key_id: Explicit credentials; the boto3 chain is used when unset.
        secret_access_key: Secret matching access_key_id.
    """

    model_config = SettingsConfigDict(env_prefix="STORAGE_", extra="ignore")

    backend: Literal["local", "s3"] = "local"
    local_root: str = "./var/imports"
    bucket: str = "imports"
    region: str = "us-east-1"
    endpoint_url: str | None = None
    access_key_id: SecretStr | None = None
    secret_access_key: SecretStr | None = None


class ImportSettings(BaseSettings):
    """Size limits of uploads and of the error and preview samples."""

    model_config = SettingsConfigDict(env_prefix="IMPORT_", extra="ignore")

    max_file_size_mb: int = 10
    sample_errors_limit: int = 10
    preview_rows_limit: int = 10
    commit_errors_limit: int = 50

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


class CORSSettings(BaseSettings):
    """Browser origins allowed to call the API (comma-separated in CORS_ORIGINS)."""

    model_config = SettingsConfigDict(env_prefix="CORS_", extra="ignore")

    origins: str = "http://localhost:3000,http://localhost:5173"
    allow_credentials: bool = True
    allow_methods: list[str] = ["*"]
    allow_headers: list[str] = ["*"]

    @property
    def origins_list(self) -> list[str]:
        return [item.strip() for item in self.origins.split(",") if item.strip()]


class APISettings(BaseSettings):
    """Uvicorn server options used by ``lumen-lms-api``."""

    model_config = SettingsConfigDict(env_prefix="API_", extra="ignore")

    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 2
    reload: bool = False


class Settings(BaseSettings):
    """All configuration of the service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    jwt: JWTSettings = Field(default_factory=JWTSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    imports: ImportSettings = Field(default_factory=ImportSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    api: APISettings = Field(default_factory=APISettings)

    @model_validator(mode="after")
    def _refuse_default_secret_in_production(self) -> Self:
        if self.is_production and self.jwt.secret_key.get_secret_value() == DEFAULT_JWT_SECRET:
            raise ValueError("JWT secret key must be set (JWT_SECRET_KEY) in production")
        return self

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings loaded once per process; see clear_settings_cache()."""
    return Settings()


def clear_settings_cache() -> None:
    """Forget the cached Settings so the environment is read again."""
    get_settings.cache_clear()
