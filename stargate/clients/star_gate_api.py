"""
Async client for the star gate HTTP endpoints, for frontends and other services.
"""

from __future__ import annotations

from typing import Any, Dict

import httpx

from stargate.schemas import RefreshResponse, StarStatusResponse


class StarGateApiError(Exception):
    """Raised when the star gate endpoints answer with an error."""

    def __init__(self, status_code: int, code: str, message: str) -> None:
        self.status_code = status_code
        self.code = code
        self.message = message
        super().__init__(f"{status_code} {code}: {message}")


class StarGateApiClient:
    """Call ``/star-gate/status`` and ``/star-gate/refresh`` on behalf of a session."""

    def __init__(
        self,
        base_url: str,
        session_token: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._session_token = session_token
        self._timeout = timeout
        self._transport = transport

    async def _request(self, method: str, path: str) -> Dict[str, Any]:
        async with httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            response = await client.request(
                method,
                path,
                headers={"Authorization": f"Bearer {self._session_token}"},
            )
        if response.is_error:
            raise self._error_from(response)
        return response.json()

    @staticmethod
    def _error_from(response: httpx.Response) -> StarGateApiError:
        code = "UNKNOWN_ERROR"
        message = response.reason_phrase or "Request failed"
        try:
            body = response.json()
        except ValueError:
            body = None
        detail = body.get("detail") if isinstance(body, dict) else None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
        elif isinstance(detail, str):
            message = detail
        return StarGateApiError(response.status_code, code, message)

    async def check_star_status(self) -> StarStatusResponse:
        payload = await self._request("GET", "/star-gate/status")
        return StarStatusResponse.model_validate(payload)

    async def refresh_star_status(self) -> RefreshResponse:
        """Force a fresh GitHub check, e.g. right after the user starred the repo."""
        payload = await self._request("POST", "/star-gate/refresh")
        return RefreshResponse.model_validate(payload)


__all__ = ["StarGateApiClient", "StarGateApiError"]
