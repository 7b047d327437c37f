"""
Star verification and access decisions for the gated repository.

``GitHubStarVerifier.verify_star_status`` is the single entry point for the
current star status: it serves cache-valid records, falls back to the GitHub
API on a miss and coalesces concurrent checks for the same user. The access
policy itself (``should_grant_access``) is a pure function of the observed
status and the grant/grace timestamps stored with the verification.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

import httpx

from stargate.clients.github import GitHubStarClient
from stargate.models.options import StarGateOptions
from stargate.models.repository import RepositoryRef
from stargate.models.verification import VerificationRecord, utcnow
from stargate.services.cache import StarVerificationCache

IMMEDIATE = "immediate"
TIMED = "timed"
NEVER = "never"

REASON_STARRED = "User has starred the repository"
REASON_IMMEDIATE = "Star removed, immediate revocation"
REASON_NEVER_REVOKE = "Access previously granted, never revoke policy"
REASON_NEVER_GRANTED = "Access was never granted"
REASON_GRACE_STARTING = "Grace period starting now"
REASON_GRACE_EXPIRED = "Grace period expired"
REASON_UNKNOWN_STRATEGY = "Unknown grace period strategy"


class UnexpectedStatusError(Exception):
    """Raised when GitHub answers the star check with an unhandled status."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"Unexpected GitHub API response: {status_code}")


@dataclass(frozen=True, slots=True)
class VerificationResult:
    """Outcome of a star status lookup."""

    has_starred: bool
    cached: bool
    error: Optional[str] = None
    requires_reauth: bool = False


@dataclass(frozen=True, slots=True)
class AccessDecision:
    """Whether the session may continue and why."""

    granted: bool
    reason: str
    grace_period_active: bool


class GitHubStarVerifier:
    """Verify stars for one repository and apply the grace period policy."""

    def __init__(
        self,
        options: StarGateOptions,
        cache: StarVerificationCache,
        *,
        client: GitHubStarClient | None = None,
        logger: logging.Logger | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._options = options
        self._cache = cache
        self._client = client or GitHubStarClient()
        self._logger = logger or logging.getLogger(__name__)
        self._clock = clock
        self._repository = RepositoryRef.parse(options.repository)
        self._repo_key = self._repository.key
        self._pending: Dict[str, asyncio.Task[VerificationResult]] = {}

    @property
    def repository(self) -> RepositoryRef:
        return self._repository

    @property
    def repository_key(self) -> str:
        return self._repo_key

    @property
    def strategy(self) -> str:
        return self._options.grace_period.strategy

    @property
    def grace_period_duration(self) -> timedelta:
        return timedelta(seconds=self._options.grace_period.duration)

    @property
    def fails_open(self) -> bool:
        """True when an unverifiable star status is treated as starred."""
        return (self._options.on_api_failure or "allow") == "allow"

    def _log(self, message: str, *args: object) -> None:
        if self._options.enable_logging:
            self._logger.info(message, *args)

    async def verify_star_status(
        self, user_id: str, access_token: str
    ) -> VerificationResult:
        """
        Return the user's star status, never raising for transport failures.

        Storage errors are not turned into fallback results: a failing cache
        read, or a failing write of a 204/404 answer, propagates to the caller
        even though GitHub already answered.

        Concurrent calls for the same user share one lookup. A caller that is
        cancelled stops waiting but does not cancel the shared lookup.
        """
        key = f"{user_id}:{self._repo_key}"

        # No await between the lookup and the insert, so two tasks cannot both
        # miss the entry and start their own lookup.
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._verify(user_id, access_token))
            self._pending[key] = task
            task.add_done_callback(functools.partial(self._forget, key))
        else:
            self._log("Coalescing request for user %s", user_id)

        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task[VerificationResult]) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]

    async def _verify(self, user_id: str, access_token: str) -> VerificationResult:
        cached = await self._cache.get(user_id, self._repo_key)
        if cached is not None:
            self._log("Cache hit for user %s: %s", user_id, cached.has_starred)
            return VerificationResult(has_starred=cached.has_starred, cached=True)

        self._log("Cache miss for user %s", user_id)

        try:
            response = await self._client.check_starred(self._repository, access_token)
            self._log("GitHub API response: %s", response.status_code)

            if response.status_code == 204:
                await self._cache.set(user_id, self._repo_key, True)
                return VerificationResult(has_starred=True, cached=False)
            if response.status_code == 404:
                await self._cache.set(user_id, self._repo_key, False)
                return VerificationResult(has_starred=False, cached=False)
            if response.status_code == 401:
                self._log("GitHub auth failed for user %s", user_id)
                return VerificationResult(
                    has_starred=False,
                    cached=False,
                    error="GitHub authentication failed. Token may be expired.",
                    requires_reauth=True,
                )
            if response.status_code == 403:
                self._log("GitHub API rate limited for user %s", user_id)
                return VerificationResult(
                    has_starred=self.fails_open,
                    cached=False,
                    error="GitHub API rate limit or permission issue (status: 403)",
                )
            raise UnexpectedStatusError(response.status_code)
        except (httpx.HTTPError, UnexpectedStatusError) as exc:
            message = str(exc) or exc.__class__.__name__
            self._log(
                "GitHub API error: %s. Using fallback: %s",
                message,
                "allow" if self.fails_open else "deny",
            )
            return VerificationResult(
                has_starred=self.fails_open, cached=False, error=message
            )

    def should_grant_access(
        self,
        *,
        has_starred: bool,
        access_granted_at: Optional[datetime] = None,
        grace_period_ends_at: Optional[datetime] = None,
        grace_period_started_at: Optional[datetime] = None,
    ) -> AccessDecision:
        """Apply the configured grace period strategy to an observed status."""
        if has_starred:
            return AccessDecision(True, REASON_STARRED, False)

        strategy = self.strategy
        if strategy == IMMEDIATE:
            return AccessDecision(False, REASON_IMMEDIATE, False)

        if strategy == NEVER:
            if access_granted_at:
                return AccessDecision(True, REASON_NEVER_REVOKE, True)
            return AccessDecision(False, REASON_NEVER_GRANTED, False)

        if strategy == TIMED:
            now = self._clock()
            if grace_period_started_at:
                ends_at = grace_period_started_at + self.grace_period_duration
                if now < ends_at:
                    return AccessDecision(
                        True, f"Grace period active until {ends_at.isoformat()}", True
                    )
                return AccessDecision(False, REASON_GRACE_EXPIRED, False)

            # Records written before gracePeriodStartedAt existed only carry an end.
            if grace_period_ends_at and now < grace_period_ends_at:
                return AccessDecision(
                    True,
                    f"Grace period active until {grace_period_ends_at.isoformat()}",
                    True,
                )

            if access_granted_at and not grace_period_ends_at:
                return AccessDecision(True, REASON_GRACE_STARTING, True)

            return AccessDecision(False, REASON_GRACE_EXPIRED, False)

        return AccessDecision(False, REASON_UNKNOWN_STRATEGY, False)

    def decide(self, has_starred: bool, record: VerificationRecord | None) -> AccessDecision:
        """``should_grant_access`` fed from a stored verification record."""
        if record is None:
            return self.should_grant_access(has_starred=has_starred)
        return self.should_grant_access(
            has_starred=has_starred,
            access_granted_at=record.access_granted_at,
            grace_period_ends_at=record.grace_period_ends_at,
            grace_period_started_at=record.grace_period_started_at,
        )

    def calculate_grace_period_end(self, from_date: datetime) -> Optional[datetime]:
        """End of a grace window opened at ``from_date``; ``None`` unless timed."""
        if self.strategy == TIMED:
            return from_date + self.grace_period_duration
        return None

    def grace_period_ends_at(self, record: VerificationRecord) -> Optional[datetime]:
        """Effective end of the grace window stored on ``record``, if any."""
        if record.grace_period_started_at:
            return record.grace_period_started_at + self.grace_period_duration
        return record.grace_period_ends_at


__all__ = [
    "AccessDecision",
    "GitHubStarVerifier",
    "UnexpectedStatusError",
    "VerificationResult",
]
