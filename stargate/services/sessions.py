"""Access to host sessions and their star gate fields."""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from stargate.clients.store import RecordStore, Where
from stargate.models.schema import SESSION
from stargate.models.verification import SessionRecord, utcnow


DEFAULT_SESSION_TTL = timedelta(days=7)


class SessionService:
    """Look up, issue, revoke and annotate sessions."""

    def __init__(
        self,
        store: RecordStore,
        clock: Callable[[], datetime] = utcnow,
        *,
        ttl: timedelta = DEFAULT_SESSION_TTL,
    ) -> None:
        self._store = store
        self._clock = clock
        self._ttl = ttl

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        document = await self._store.find_one(SESSION, [Where("id", session_id)])
        return SessionRecord.from_document(document) if document else None

    async def get_by_token(self, token: str) -> Optional[SessionRecord]:
        """Resolve a bearer token; expired sessions are treated as absent."""
        document = await self._store.find_one(SESSION, [Where("token", token)])
        if not document:
            return None
        session = SessionRecord.from_document(document)
        if session.expires_at <= self._clock():
            return None
        return session

    async def create(
        self, *, user_id: str, token: str, expires_at: datetime
    ) -> SessionRecord:
        session = SessionRecord(
            id=str(uuid.uuid4()),
            user_id=user_id,
            token=token,
            expires_at=expires_at,
            created_at=self._clock(),
        )
        document = await self._store.create(SESSION, session.to_document())
        return SessionRecord.from_document(document)

    async def issue(self, user_id: str) -> SessionRecord:
        """Create a session with a fresh bearer token and the configured lifetime."""
        return await self.create(
            user_id=user_id,
            token=secrets.token_urlsafe(32),
            expires_at=self._clock() + self._ttl,
        )

    async def revoke(self, session: SessionRecord) -> None:
        await self._store.delete(SESSION, session.id)

    async def record_star_access(
        self,
        session_id: str,
        *,
        granted: bool,
        grace_period_active: bool,
        grace_period_ends_at: Optional[datetime],
    ) -> Optional[SessionRecord]:
        document = await self._store.update(
            SESSION,
            session_id,
            {
                "hasStarAccess": granted,
                "starVerifiedAt": self._clock(),
                "gracePeriodActive": grace_period_active,
                "gracePeriodEndsAt": grace_period_ends_at,
            },
        )
        return SessionRecord.from_document(document) if document else None


__all__ = ["DEFAULT_SESSION_TTL", "SessionService"]
