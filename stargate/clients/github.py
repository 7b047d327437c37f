"""
GitHub REST client for the "is this repository starred by the user" check.
"""

from __future__ import annotations

import logging
from typing import Dict

import httpx

from stargate.models.repository import RepositoryRef
from stargate.utils.http import RetryConfig, call_with_backoff

logger = logging.getLogger(__name__)


class GitHubStarClient:
    """Issue authenticated star checks against the GitHub API."""

    API_BASE_URL = "https://api.github.com"
    API_VERSION = "2022-11-28"
    ACCEPT = "application/vnd.github+json"

    def __init__(
        self,
        *,
        base_url: str = API_BASE_URL,
        user_agent: str = "stargate-access-gate",
        timeout: float = 10.0,
        retry_config: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._user_agent = user_agent
        self._timeout = timeout
        self._retry_config = retry_config or RetryConfig()
        self._transport = transport

    def starred_url(self, repository: RepositoryRef) -> str:
        return f"{self._base_url}/user/starred/{repository.owner}/{repository.repo}"

    def _headers(self, access_token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Accept": self.ACCEPT,
            "X-GitHub-Api-Version": self.API_VERSION,
            "User-Agent": self._user_agent,
        }

    async def check_starred(
        self, repository: RepositoryRef, access_token: str
    ) -> httpx.Response:
        """
        Ask GitHub whether the token's user has starred ``repository``.

        GitHub answers 204 when starred and 404 when not. The response is
        returned unparsed; retries follow the client's ``RetryConfig``.
        """
        url = self.starred_url(repository)
        headers = self._headers(access_token)

        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            logger.debug("GET %s", url)
            response = await call_with_backoff(
                lambda: client.get(url, headers=headers),
                retry_config=self._retry_config,
            )

        logger.debug("Response %s from %s", response.status_code, url)
        return response


__all__ = ["GitHubStarClient"]
