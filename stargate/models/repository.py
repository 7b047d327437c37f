"""
Repository identifiers for the star requirement.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

EXPECTED_FORMAT = '"owner/repo"'


class InvalidRepositoryFormat(ValueError):
    """Raised when a repository value cannot be parsed as owner/repo."""

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(
            f"Invalid repository format: {value}. Expected {EXPECTED_FORMAT}"
        )


@dataclass(frozen=True, slots=True)
class RepositoryRef:
    """A GitHub repository addressed by owner and name."""

    owner: str
    repo: str

    def __post_init__(self) -> None:
        if not self.owner or not self.repo:
            raise InvalidRepositoryFormat(f"{self.owner}/{self.repo}")

    @property
    def key(self) -> str:
        """Canonical ``owner/repo`` key used for caching and display."""
        return f"{self.owner}/{self.repo}"

    @classmethod
    def parse(cls, value: str | RepositoryRef | Mapping[str, Any]) -> RepositoryRef:
        """Build a reference from an ``owner/repo`` string or a structured value."""
        if isinstance(value, RepositoryRef):
            return value
        if isinstance(value, str):
            parts = value.split("/")
            if len(parts) != 2 or not parts[0] or not parts[1]:
                raise InvalidRepositoryFormat(value)
            return cls(owner=parts[0], repo=parts[1])
        if isinstance(value, Mapping):
            owner = value.get("owner")
            repo = value.get("repo")
            if not isinstance(owner, str) or not isinstance(repo, str):
                raise InvalidRepositoryFormat(value)
            return cls(owner=owner, repo=repo)
        raise InvalidRepositoryFormat(value)

    def __str__(self) -> str:
        return self.key


__all__ = ["EXPECTED_FORMAT", "InvalidRepositoryFormat", "RepositoryRef"]
