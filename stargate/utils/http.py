"""HTTP utilities providing retry/backoff semantics."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

RATE_LIMITED = 429


@dataclass(slots=True)
class RetryConfig:
    """
    Attempt budget and exponential backoff for remote calls.

    The wait before retry ``n`` (0-based) is ``delay_unit * backoff_base ** n``
    seconds, i.e. 1s, 2s, 4s with the defaults.
    """

    attempts: int = 3
    backoff_base: float = 2.0
    delay_unit: float = 1.0

    def delay_for(self, attempt: int) -> float:
        return self.delay_unit * self.backoff_base**attempt


def is_retryable_status(status_code: int) -> bool:
    """Server errors and rate limiting are worth another attempt."""
    return status_code >= 500 or status_code == RATE_LIMITED


def is_retryable_response(response: httpx.Response) -> bool:
    return is_retryable_status(response.status_code)


async def call_with_backoff(
    func: Callable[[], Awaitable[httpx.Response]],
    *,
    retry_config: RetryConfig | None = None,
    should_retry: Callable[[httpx.Response], bool] = is_retryable_response,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> httpx.Response:
    """
    Call ``func`` until it yields a response ``should_retry`` accepts.

    The last response is returned as-is once attempts run out, even when it is
    still retryable. Network errors are retried the same way; the final one is
    re-raised to the caller.
    """
    config = retry_config or RetryConfig()
    if config.attempts < 1:
        raise ValueError("RetryConfig.attempts must be at least 1")

    for attempt in range(config.attempts):
        is_last = attempt == config.attempts - 1
        try:
            response = await func()
        except httpx.RequestError as exc:
            if is_last:
                raise
            delay = config.delay_for(attempt)
            logger.debug("Network error, retrying in %.1fs: %s", delay, exc)
            await sleep(delay)
            continue

        if not should_retry(response) or is_last:
            return response

        delay = config.delay_for(attempt)
        logger.debug(
            "Remote returned %s, retrying in %.1fs", response.status_code, delay
        )
        await sleep(delay)

    raise RuntimeError("Retry loop exited without a response")  # pragma: no cover


__all__ = [
    "RetryConfig",
    "call_with_backoff",
    "is_retryable_response",
    "is_retryable_status",
]
