"""
Retrying HTTP calls for the REST API module and other non-cached requests.

Only transient failures are retried: network errors, 5xx responses and 429
rate limits. Any other 4xx (bad key, validation failure) fails on the first
attempt.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

from foundrybridge.foundry.errors import RequestFailed

logger = logging.getLogger(__name__)

SleepFunction = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff with up to 10% jitter."""

    retry_attempts: int = 3
    base_delay: float = 1.0
    jitter: float = 0.1

    def __post_init__(self) -> None:
        if self.retry_attempts < 0:
            raise ValueError("retry_attempts must be non-negative")
        if self.base_delay < 0:
            raise ValueError("base_delay must be non-negative")

    @property
    def max_attempts(self) -> int:
        return self.retry_attempts + 1

    def compute_backoff(
        self, attempt: int, *, random_func: Callable[[], float] | None = None
    ) -> float:
        """Return the delay after failed ``attempt`` (1-indexed)."""
        if attempt < 1:
            raise ValueError("attempt must be >= 1")
        delay = self.base_delay * 2 ** (attempt - 1)
        rng = random_func or random.random
        return delay + rng() * self.jitter * delay


def is_retryable(error: Exception) -> bool:
    """True for network errors, 5xx responses and 429 rate limits."""
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return status >= 500 or status == 429
    return isinstance(error, httpx.TransportError)


async def call_with_retries(
    operation: Callable[[], Awaitable[httpx.Response]],
    *,
    policy: RetryPolicy | None = None,
    sleep: SleepFunction | None = None,
    random_func: Callable[[], float] | None = None,
) -> httpx.Response:
    """
    Run an HTTP operation, retrying transient failures.

    Non-2xx responses are turned into errors with ``raise_for_status()``
    before classification.

    Args:
        operation: Zero-argument coroutine factory issuing the request
        policy: Retry policy (default: 3 retries, 1s base delay)
        sleep: Sleep coroutine, replaceable in tests
        random_func: Jitter source, replaceable in tests

    Returns:
        The successful response

    Raises:
        RequestFailed: On a non-retryable error, or once attempts run out.
            ``status`` holds the last HTTP status when one was received.
    """
    policy = policy or RetryPolicy()
    sleep_fn = sleep or asyncio.sleep

    attempt = 1
    while True:
        try:
            response = await operation()
            response.raise_for_status()
            return response
        except httpx.HTTPError as error:
            status = (
                error.response.status_code
                if isinstance(error, httpx.HTTPStatusError)
                else None
            )
            if not is_retryable(error):
                raise RequestFailed(f"Request failed: {error}", status=status, cause=error) from error
            if attempt >= policy.max_attempts:
                raise RequestFailed(
                    f"Request failed after {attempt} attempts: {error}",
                    status=status,
                    cause=error,
                ) from error

            delay = policy.compute_backoff(attempt, random_func=random_func)
            logger.warning(
                f"Request attempt {attempt}/{policy.max_attempts} failed ({error}); "
                f"retrying in {delay:.2f}s"
            )
            await sleep_fn(delay)
            attempt += 1
