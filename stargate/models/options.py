"""
Options consumed by the star verifier and the star gate orchestrator.
"""

from __future__ import annotations

from typing import Dict, Optional, Union

from pydantic import BaseModel, Field

from stargate.models.repository import RepositoryRef

DEFAULT_CACHE_DURATION_MINUTES = 15
DEFAULT_GRACE_PERIOD_SECONDS = 3600


class GracePeriodOptions(BaseModel):
    """
    Controls what happens when a user un-stars after access was granted.

    ``immediate`` revokes on the next check, ``timed`` keeps access for
    ``duration`` seconds after the un-star is first seen, and ``never`` keeps
    access for anyone who was granted it once.
    """

    strategy: str = "immediate"
    duration: int = DEFAULT_GRACE_PERIOD_SECONDS


class ErrorMessages(BaseModel):
    """Overrides for the user-facing denial messages."""

    not_starred: Optional[str] = None
    api_failure: Optional[str] = None
    grace_period_expired: Optional[str] = None


class StarGateOptions(BaseModel):
    """Runtime options for a single gated repository."""

    repository: Union[str, RepositoryRef, Dict[str, str]]
    cache_duration: int = DEFAULT_CACHE_DURATION_MINUTES
    on_api_failure: str = Field(
        "allow", description='Either "allow" (default) or "deny".'
    )
    grace_period: GracePeriodOptions = Field(default_factory=GracePeriodOptions)
    enable_logging: bool = False
    messages: ErrorMessages = Field(default_factory=ErrorMessages)


__all__ = [
    "DEFAULT_CACHE_DURATION_MINUTES",
    "DEFAULT_GRACE_PERIOD_SECONDS",
    "ErrorMessages",
    "GracePeriodOptions",
    "StarGateOptions",
]
