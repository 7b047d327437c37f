"""
Star gate orchestration: the post-login hook and the status/refresh flows.

This module wires the verifier, the verification cache, linked accounts and
sessions together. It decides what happens to a session after the verifier
and the access policy have spoken; the policy itself lives in
``stargate.services.verification``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from http import HTTPStatus
from typing import Callable, Optional

from stargate.models.options import StarGateOptions
from stargate.models.verification import SessionRecord, VerificationRecord, utcnow
from stargate.schemas import RefreshResponse, SignInResponse, StarStatusResponse
from stargate.services.accounts import GitHubAccountService
from stargate.services.cache import StarVerificationCache
from stargate.services.sessions import SessionService
from stargate.services.verification import (
    REASON_GRACE_EXPIRED,
    AccessDecision,
    GitHubStarVerifier,
    VerificationResult,
)

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    STAR_REQUIRED = "STAR_REQUIRED"
    GITHUB_ACCOUNT_NOT_FOUND = "GITHUB_ACCOUNT_NOT_FOUND"
    GITHUB_TOKEN_MISSING = "GITHUB_TOKEN_MISSING"
    API_FAILURE = "API_FAILURE"
    GRACE_PERIOD_EXPIRED = "GRACE_PERIOD_EXPIRED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"


DEFAULT_MESSAGES = {
    ErrorCode.STAR_REQUIRED: "Repository star required for access",
    ErrorCode.GITHUB_ACCOUNT_NOT_FOUND: "GitHub account not linked",
    ErrorCode.GITHUB_TOKEN_MISSING: "GitHub access token not available",
    ErrorCode.API_FAILURE: "GitHub API unavailable",
    ErrorCode.GRACE_PERIOD_EXPIRED: "Grace period has expired",
    ErrorCode.TOKEN_EXPIRED: "GitHub token expired, re-authentication required",
    ErrorCode.NOT_AUTHENTICATED: "Not authenticated",
}


class StarGateError(Exception):
    """A star gate failure the caller should surface with a stable code."""

    def __init__(
        self,
        code: ErrorCode,
        message: str | None = None,
        status_code: int = HTTPStatus.FORBIDDEN,
    ) -> None:
        self.code = code
        self.message = message or DEFAULT_MESSAGES[code]
        self.status_code = int(status_code)
        super().__init__(f"[{code.value}] {self.message}")


class StarGateService:
    """Apply the star requirement to sessions and report star status."""

    def __init__(
        self,
        *,
        options: StarGateOptions,
        verifier: GitHubStarVerifier,
        cache: StarVerificationCache,
        accounts: GitHubAccountService,
        sessions: SessionService,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._options = options
        self._verifier = verifier
        self._cache = cache
        self._accounts = accounts
        self._sessions = sessions
        self._clock = clock

    @property
    def repository_key(self) -> str:
        return self._verifier.repository_key

    def _log(self, message: str, *args: object) -> None:
        if self._options.enable_logging:
            logger.info(message, *args)

    async def initialize(self) -> int:
        """Sweep expired verification records once at startup."""
        self._log("Repository: %s", self.repository_key)
        self._log("Cache duration: %s minutes", self._options.cache_duration)
        self._log("API failure mode: %s", self._options.on_api_failure)
        self._log("Grace period strategy: %s", self._verifier.strategy)
        removed = await self._cache.cleanup_expired()
        if removed:
            self._log("Cleaned up %s expired cache entries", removed)
        return removed

    async def _require_token(self, user_id: str) -> str:
        account = await self._accounts.get_account(user_id)
        if account is None:
            self._log("No GitHub account found for user %s", user_id)
            raise StarGateError(
                ErrorCode.GITHUB_ACCOUNT_NOT_FOUND, status_code=HTTPStatus.UNAUTHORIZED
            )
        token = self._accounts.access_token_for(account)
        if not token:
            self._log("No GitHub access token for user %s", user_id)
            raise StarGateError(
                ErrorCode.GITHUB_TOKEN_MISSING, status_code=HTTPStatus.UNAUTHORIZED
            )
        return token

    async def after_sign_in(self, session: SessionRecord) -> AccessDecision:
        """
        Keep or revoke a freshly created session based on the star requirement.

        Raises ``StarGateError`` after deleting the session when access is
        denied or the GitHub token must be renewed.
        """
        user_id = session.user_id
        self._log("Verifying star status for user %s", user_id)

        try:
            token = await self._require_token(user_id)
        except StarGateError:
            await self._sessions.revoke(session)
            raise
        result = await self._verifier.verify_star_status(user_id, token)

        if result.requires_reauth:
            await self._sessions.revoke(session)
            raise StarGateError(
                ErrorCode.TOKEN_EXPIRED,
                "GitHub token expired. Please sign in again.",
                HTTPStatus.UNAUTHORIZED,
            )

        self._log(
            "Star verification: %s", "STARRED" if result.has_starred else "NOT STARRED"
        )

        record = await self._cache.find(user_id, self.repository_key)
        if record is not None and result.has_starred and result.error is None:
            record = await self._reset_grace_period(record)

        decision = self._verifier.decide(result.has_starred, record)
        self._log("Access: %s", "GRANTED" if decision.granted else "DENIED")

        if not decision.granted:
            if record is not None:
                await self._cache.mark_revoked(record.id)
            await self._sessions.revoke(session)
            raise self._denial(result, decision, record)

        grace_period_ends_at = await self._open_grace_period(result, decision, record)
        await self._sessions.record_star_access(
            session.id,
            granted=True,
            grace_period_active=decision.grace_period_active,
            grace_period_ends_at=grace_period_ends_at,
        )
        return decision

    async def sign_in(
        self, *, user_id: str, account_id: str, access_token: str
    ) -> SignInResponse:
        """
        Complete a GitHub sign-in reported by the host.

        Links the GitHub account with the fresh OAuth token, issues a session
        and runs ``after_sign_in`` on it. The session token is only returned
        when access is granted.
        """
        await self._accounts.link(
            user_id=user_id, account_id=account_id, access_token=access_token
        )
        session = await self._sessions.issue(user_id)
        decision = await self.after_sign_in(session)
        stored = await self._sessions.get(session.id) or session
        return SignInResponse(
            session_token=stored.token,
            expires_at=stored.expires_at,
            has_star_access=decision.granted,
            grace_period_active=decision.grace_period_active,
            grace_period_ends=stored.grace_period_ends_at,
            repository=self.repository_key,
        )

    async def _reset_grace_period(
        self, record: VerificationRecord
    ) -> VerificationRecord:
        if record.grace_period_started_at is None and record.grace_period_ends_at is None:
            return record
        await self._cache.clear_grace_period(record.id)
        return record.model_copy(
            update={"grace_period_started_at": None, "grace_period_ends_at": None}
        )

    async def _open_grace_period(
        self,
        result: VerificationResult,
        decision: AccessDecision,
        record: Optional[VerificationRecord],
    ) -> Optional[datetime]:
        if record is None:
            return None
        ends_at = self._verifier.grace_period_ends_at(record)
        if (
            result.has_starred
            or not decision.grace_period_active
            or ends_at is not None
            or record.access_granted_at is None
        ):
            return ends_at

        started_at = self._clock()
        ends_at = self._verifier.calculate_grace_period_end(started_at)
        if ends_at is not None:
            await self._cache.start_grace_period(record.id, started_at, ends_at)
            self._log("Grace period for user %s ends at %s", record.user_id, ends_at)
        return ends_at

    def _denial(
        self,
        result: VerificationResult,
        decision: AccessDecision,
        record: Optional[VerificationRecord],
    ) -> StarGateError:
        messages = self._options.messages
        if result.error is not None and not self._verifier.fails_open:
            return StarGateError(
                ErrorCode.API_FAILURE,
                messages.api_failure,
                HTTPStatus.SERVICE_UNAVAILABLE,
            )
        had_grace_period = record is not None and (
            record.grace_period_started_at is not None
            or record.grace_period_ends_at is not None
        )
        if decision.reason == REASON_GRACE_EXPIRED and had_grace_period:
            return StarGateError(
                ErrorCode.GRACE_PERIOD_EXPIRED,
                messages.grace_period_expired
                or (
                    "Your grace period has ended. Please star the repository "
                    f"{self.repository_key} to continue."
                ),
            )
        return StarGateError(
            ErrorCode.STAR_REQUIRED,
            messages.not_starred
            or f"Please star the repository {self.repository_key} to access this application.",
        )

    async def get_status(self, user_id: str) -> StarStatusResponse:
        """Report the cached status, consulting GitHub only when the cache lapsed."""
        record = await self._cache.get(user_id, self.repository_key)
        if record is None:
            token = await self._accounts.get_access_token(user_id)
            if token:
                await self._verifier.verify_star_status(user_id, token)
                record = await self._cache.get(user_id, self.repository_key)

        if record is None:
            return StarStatusResponse(has_starred=False, repository=self.repository_key)

        grace_period_ends = self._verifier.grace_period_ends_at(record)
        return StarStatusResponse(
            has_starred=record.has_starred,
            last_checked=record.last_checked_at,
            cache_expires=record.expires_at,
            grace_period_active=(
                grace_period_ends is not None and self._clock() < grace_period_ends
            ),
            grace_period_ends=grace_period_ends,
            repository=self.repository_key,
        )

    async def refresh_status(self, user_id: str) -> RefreshResponse:
        """Drop the cached status and ask GitHub again."""
        await self._cache.invalidate(user_id, self.repository_key)

        token = await self._accounts.get_access_token(user_id)
        if not token:
            raise StarGateError(
                ErrorCode.GITHUB_TOKEN_MISSING,
                "GitHub account not linked or token expired",
                HTTPStatus.BAD_REQUEST,
            )

        result = await self._verifier.verify_star_status(user_id, token)
        return RefreshResponse(
            has_starred=result.has_starred,
            repository=self.repository_key,
            refreshed_at=self._clock(),
            error=result.error,
        )


__all__ = ["DEFAULT_MESSAGES", "ErrorCode", "StarGateError", "StarGateService"]
