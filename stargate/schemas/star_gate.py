"""
Pydantic models for the star gate HTTP surface.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StarStatusResponse(_CamelModel):
    """Current star status for the signed-in user."""

    has_starred: bool = Field(..., description="Last known star status.")
    last_checked: Optional[datetime] = Field(
        None, description="When GitHub was last asked."
    )
    cache_expires: Optional[datetime] = Field(
        None, description="When the cached status stops being trusted."
    )
    grace_period_active: bool = False
    grace_period_ends: Optional[datetime] = None
    repository: str = Field(..., description="Gated repository as owner/repo.")


class RefreshResponse(_CamelModel):
    """Result of forcing a fresh star check."""

    has_starred: bool
    repository: str
    refreshed_at: datetime
    error: Optional[str] = Field(
        None, description="Why GitHub could not be consulted, when it could not."
    )


class SignInRequest(_CamelModel):
    """A completed GitHub OAuth sign-in, reported by the host backend."""

    user_id: str = Field(..., min_length=1, description="Host user identifier.")
    account_id: str = Field(..., min_length=1, description="GitHub account id.")
    access_token: str = Field(
        ..., min_length=1, description="GitHub OAuth access token for the user."
    )


class SignInResponse(_CamelModel):
    """Session issued for a user who passed the star gate."""

    session_token: str
    expires_at: datetime
    has_star_access: bool
    grace_period_active: bool = False
    grace_period_ends: Optional[datetime] = None
    repository: str


class ErrorDetail(BaseModel):
    """Machine-readable error body so clients can route remediation."""

    code: str
    message: str


__all__ = [
    "ErrorDetail",
    "RefreshResponse",
    "SignInRequest",
    "SignInResponse",
    "StarStatusResponse",
]
