"""Persistent cache of star verification results."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from stargate.clients.store import RecordStore, Where
from stargate.models.options import DEFAULT_CACHE_DURATION_MINUTES
from stargate.models.schema import STAR_VERIFICATION
from stargate.models.verification import VerificationRecord, utcnow


class StarVerificationCache:
    """
    Owns the lifecycle of ``VerificationRecord`` documents.

    There is at most one record per (user, repository). Records past their
    ``expiresAt`` stay in storage until ``cleanup_expired`` runs but are
    invisible to ``get``.
    """

    def __init__(
        self,
        store: RecordStore,
        cache_duration_minutes: int = DEFAULT_CACHE_DURATION_MINUTES,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._duration = timedelta(minutes=cache_duration_minutes)
        self._clock = clock

    @property
    def cache_duration(self) -> timedelta:
        return self._duration

    @staticmethod
    def _pair(user_id: str, repository: str) -> list[Where]:
        return [Where("userId", user_id), Where("repository", repository)]

    async def find(
        self, user_id: str, repository: str
    ) -> Optional[VerificationRecord]:
        """Return the stored record for the pair, expired or not."""
        document = await self._store.find_one(
            STAR_VERIFICATION, self._pair(user_id, repository)
        )
        if not document:
            return None
        return VerificationRecord.from_document(document)

    async def get(
        self, user_id: str, repository: str
    ) -> Optional[VerificationRecord]:
        """Return the record for the pair while it is still cache-valid."""
        record = await self.find(user_id, repository)
        if record is None or record.is_expired(self._clock()):
            return None
        return record

    async def set(
        self,
        user_id: str,
        repository: str,
        has_starred: bool,
        existing_access_granted_at: Optional[datetime] = None,
    ) -> VerificationRecord:
        """
        Upsert the verification for the pair.

        ``accessGrantedAt`` is set on the first starred result and carried over
        afterwards; an un-starred result never clears it.
        """
        now = self._clock()
        expires_at = now + self._duration
        existing = await self.find(user_id, repository)
        prior_grant = existing.access_granted_at if existing else None

        if has_starred:
            access_granted_at = existing_access_granted_at or prior_grant or now
        else:
            access_granted_at = prior_grant

        if existing is not None:
            document = await self._store.update(
                STAR_VERIFICATION,
                existing.id,
                {
                    "hasStarred": has_starred,
                    "lastCheckedAt": now,
                    "expiresAt": expires_at,
                    "accessGrantedAt": access_granted_at,
                },
            )
            if document is not None:
                return VerificationRecord.from_document(document)

        record = VerificationRecord(
            id=str(uuid.uuid4()),
            user_id=user_id,
            repository=repository,
            has_starred=has_starred,
            last_checked_at=now,
            expires_at=expires_at,
            created_at=now,
            access_granted_at=access_granted_at,
            access_revoked_at=None,
            grace_period_ends_at=None,
            grace_period_started_at=None,
        )
        document = await self._store.create(STAR_VERIFICATION, record.to_document())
        return VerificationRecord.from_document(document)

    async def set_grace_period_end(self, record_id: str, ends_at: datetime) -> None:
        await self._store.update(
            STAR_VERIFICATION, record_id, {"gracePeriodEndsAt": ends_at}
        )

    async def start_grace_period(
        self, record_id: str, started_at: datetime, ends_at: Optional[datetime]
    ) -> None:
        """Persist both representations of a freshly opened grace window."""
        await self._store.update(
            STAR_VERIFICATION,
            record_id,
            {"gracePeriodStartedAt": started_at, "gracePeriodEndsAt": ends_at},
        )

    async def clear_grace_period(self, record_id: str) -> None:
        await self._store.update(
            STAR_VERIFICATION,
            record_id,
            {"gracePeriodStartedAt": None, "gracePeriodEndsAt": None},
        )

    async def mark_revoked(self, record_id: str) -> None:
        await self._store.update(
            STAR_VERIFICATION, record_id, {"accessRevokedAt": self._clock()}
        )

    async def invalidate(self, user_id: str, repository: str) -> None:
        """Drop the record for the pair; missing records are ignored."""
        existing = await self._store.find_one(
            STAR_VERIFICATION, self._pair(user_id, repository)
        )
        if existing:
            await self._store.delete(STAR_VERIFICATION, existing["id"])

    async def cleanup_expired(self) -> int:
        """Delete every record whose ``expiresAt`` has passed; return the count."""
        expired = await self._store.find_many(
            STAR_VERIFICATION, [Where("expiresAt", self._clock(), "lt")]
        )
        for document in expired:
            await self._store.delete(STAR_VERIFICATION, document["id"])
        return len(expired)


__all__ = ["StarVerificationCache"]
