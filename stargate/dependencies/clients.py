"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

import logging
from datetime import timedelta
from functools import lru_cache

from stargate.clients import GitHubStarClient, SQLiteStore
from stargate.core.config import get_settings
from stargate.services import (
    GitHubAccountService,
    GitHubStarVerifier,
    SessionService,
    StarGateService,
    StarVerificationCache,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_record_store() -> SQLiteStore:
    """Provide shared SQLite record store."""
    settings = _settings()
    return SQLiteStore(settings.database_path)


@lru_cache()
def get_github_star_client() -> GitHubStarClient:
    """Provide the GitHub API client used for star checks."""
    star_gate = _settings().star_gate
    return GitHubStarClient(
        base_url=star_gate.github_api_url,
        user_agent=star_gate.user_agent,
        timeout=star_gate.request_timeout,
    )


@lru_cache()
def get_verification_cache() -> StarVerificationCache:
    """Provide the verification cache bound to the record store."""
    star_gate = _settings().star_gate
    return StarVerificationCache(get_record_store(), star_gate.cache_duration)


@lru_cache()
def get_star_verifier() -> GitHubStarVerifier:
    """Provide a singleton verifier so request coalescing spans all callers."""
    options = _settings().star_gate.to_options()
    return GitHubStarVerifier(
        options,
        get_verification_cache(),
        client=get_github_star_client(),
        logger=logging.getLogger("stargate.verifier"),
    )


@lru_cache()
def get_account_service() -> GitHubAccountService:
    """Provide linked GitHub account access with encrypted tokens."""
    settings = _settings()
    return GitHubAccountService(
        get_record_store(), secret=settings.token_encryption_secret
    )


@lru_cache()
def get_session_service() -> SessionService:
    """Provide session lookups for authenticating star gate requests."""
    settings = _settings()
    return SessionService(
        get_record_store(), ttl=timedelta(hours=settings.session_ttl_hours)
    )


@lru_cache()
def get_star_gate_service() -> StarGateService:
    """Provide the star gate orchestrator."""
    settings = _settings()
    return StarGateService(
        options=settings.star_gate.to_options(),
        verifier=get_star_verifier(),
        cache=get_verification_cache(),
        accounts=get_account_service(),
        sessions=get_session_service(),
    )


__all__ = [
    "get_account_service",
    "get_github_star_client",
    "get_record_store",
    "get_session_service",
    "get_star_gate_service",
    "get_star_verifier",
    "get_verification_cache",
]
