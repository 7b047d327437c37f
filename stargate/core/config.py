"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the star gate services and
the maintenance scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stargate.models.options import (
    ErrorMessages,
    GracePeriodOptions,
    StarGateOptions,
)


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class GracePeriodSettings(GracePeriodOptions):
    """Validated grace period configuration loaded from the environment."""

    strategy: Literal["immediate", "timed", "never"] = "immediate"
    duration: int = Field(
        3600,
        ge=0,
        description="Grace period length in seconds, only used by the timed strategy.",
    )


class StarGateSettings(BaseSettings):
    """Configuration for the repository star requirement."""

    model_config = SettingsConfigDict(
        env_prefix="STARGATE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    repository: str = Field(
        ..., description='Repository users must star, as "owner/repo".'
    )
    cache_duration: int = Field(
        15, ge=0, description="Minutes a verification stays cache-valid."
    )
    on_api_failure: Literal["allow", "deny"] = Field(
        "allow",
        description="Star status assumed when GitHub cannot be reached.",
    )
    grace_period: GracePeriodSettings = Field(default_factory=GracePeriodSettings)
    enable_logging: bool = False
    messages: ErrorMessages = Field(default_factory=ErrorMessages)
    github_api_url: str = Field("https://api.github.com")
    user_agent: str = Field("stargate-access-gate")
    request_timeout: float = Field(10.0, gt=0)

    @field_validator("repository")
    @classmethod
    def _strip_repository(cls, value: str) -> str:
        return value.strip()

    def to_options(self) -> StarGateOptions:
        """Build the options consumed by the verifier and orchestrator."""
        return StarGateOptions(
            repository=self.repository,
            cache_duration=self.cache_duration,
            on_api_failure=self.on_api_failure,
            grace_period=GracePeriodOptions(
                strategy=self.grace_period.strategy,
                duration=self.grace_period.duration,
            ),
            enable_logging=self.enable_logging,
            messages=self.messages,
        )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    database_path: str = Field(
        "data/stargate.db",
        validation_alias="STARGATE_DB_PATH",
        description="SQLite file holding verification, session and account records.",
    )
    token_encryption_secret: str = Field(
        ...,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description="Secret used to derive the key encrypting stored GitHub tokens.",
    )
    host_api_key: str = Field(
        ...,
        validation_alias="STARGATE_HOST_API_KEY",
        description="Shared key the host backend sends when reporting a completed GitHub sign-in.",
    )
    session_ttl_hours: int = Field(
        168,
        gt=0,
        validation_alias="STARGATE_SESSION_TTL_HOURS",
        description="Lifetime of sessions issued after a gated sign-in.",
    )
    star_gate: StarGateSettings = Field(default_factory=StarGateSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "GracePeriodSettings",
    "StarGateSettings",
    "get_settings",
]
