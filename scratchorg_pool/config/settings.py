"""Application settings using Pydantic settings management."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment configuration for the scratch org pool tooling."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", env_prefix="SFPOOL_")

    app_name: str = Field(default="scratchorg-pool")

    api_version: str = Field(default="50.0", description="DevHub REST API version used for every call.")
    request_timeout_seconds: float = Field(default=120.0)

    sfdx_executable: str = Field(default="sfdx")
    sfdx_timeout_seconds: float = Field(
        default=1800.0,
        description="Upper bound for a single sfdx invocation; scratch org creation can take minutes.",
    )

    retry_attempts: int = Field(default=3)
    query_retry_wait_seconds: float = Field(default=2.0)
    fetch_retry_wait_seconds: float = Field(default=3.0)
    critical_retry_wait_seconds: float = Field(
        default=30.0,
        description="Wait between attempts of schema describe and mutation calls.",
    )

    default_expiry_days: int = Field(default=2)
    limit_buffer: int = Field(
        default=0,
        description="Active scratch org capacity left untouched when filling a pool.",
    )

    log_level: str = Field(default="INFO")

    @model_validator(mode="after")
    def validate_retry_policy(self) -> "Settings":
        if self.retry_attempts < 1:
            raise ValueError("SFPOOL_RETRY_ATTEMPTS must be at least 1.")

        waits = (
            self.query_retry_wait_seconds,
            self.fetch_retry_wait_seconds,
            self.critical_retry_wait_seconds,
        )
        if any(wait < 0 for wait in waits):
            raise ValueError("Retry waits must not be negative.")

        if self.limit_buffer < 0:
            raise ValueError("SFPOOL_LIMIT_BUFFER must not be negative.")

        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
