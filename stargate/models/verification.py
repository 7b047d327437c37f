"""
Domain models for star verification, session and linked-account persistence.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoredRecord(BaseModel):
    """Base for records persisted as camelCase documents."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        """Serialize to the storage document shape."""
        return self.model_dump(by_alias=True)

    @classmethod
    def from_document(cls, document: Dict[str, Any]):
        return cls.model_validate(document)


class VerificationRecord(StoredRecord):
    """Cached star status for one (user, repository) pair."""

    id: str
    user_id: str
    repository: str = Field(..., description="Canonical owner/repo key.")
    has_starred: bool
    last_checked_at: datetime
    expires_at: datetime
    created_at: datetime
    access_granted_at: Optional[datetime] = None
    access_revoked_at: Optional[datetime] = None
    grace_period_ends_at: Optional[datetime] = None
    grace_period_started_at: Optional[datetime] = None

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) >= self.expires_at


class SessionRecord(StoredRecord):
    """Host session with the star gate fields attached."""

    id: str
    user_id: str
    token: str
    expires_at: datetime
    created_at: Optional[datetime] = None
    has_star_access: Optional[bool] = None
    star_verified_at: Optional[datetime] = None
    grace_period_active: Optional[bool] = None
    grace_period_ends_at: Optional[datetime] = None


class LinkedAccount(StoredRecord):
    """A user's linked GitHub account; the token is stored encrypted."""

    id: str
    user_id: str
    provider_id: str = "github"
    account_id: str
    access_token_encrypted: Optional[str] = None
    created_at: datetime
    updated_at: datetime


__all__ = [
    "LinkedAccount",
    "SessionRecord",
    "StoredRecord",
    "VerificationRecord",
    "utcnow",
]
