"""Expose constructed client wrappers."""

from .github import GitHubStarClient
from .sqlite_store import SQLiteStore
from .star_gate_api import StarGateApiClient, StarGateApiError
from .store import RecordStore, Where

__all__ = [
    "GitHubStarClient",
    "RecordStore",
    "SQLiteStore",
    "StarGateApiClient",
    "StarGateApiError",
    "Where",
]
