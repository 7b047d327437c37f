"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_account_service,
    get_github_star_client,
    get_record_store,
    get_session_service,
    get_star_gate_service,
    get_star_verifier,
    get_verification_cache,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SettingsDependency",
    "get_account_service",
    "get_app_settings",
    "get_github_star_client",
    "get_record_store",
    "get_session_service",
    "get_star_gate_service",
    "get_star_verifier",
    "get_verification_cache",
]
