# src/llm/retry.py — v2
"""Retry policy with exponential backoff and jitter for provider calls.

Only transient errors (rate limited / unavailable) are retried. Every
other error surfaces after a single attempt.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from teamrun.core.errors import ProviderError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({429, 503, 529})
_RETRYABLE_MARKERS = ("rate limit", "rate_limit", "too many requests", "overloaded", "unavailable")


class LLMCallError(Exception):
    """A provider call failed, after retries when the error was transient."""

    def __init__(self, agent: str, attempts: int, last_error: Exception):
        self.agent = agent
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{_describe(last_error)} (after {attempts} attempt(s))")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration for provider calls."""

    max_retries: int = 3
    backoff_ms: int = 1000
    jitter: bool = True

    def delay_s(self, attempt: int) -> float:
        """Delay before retry number ``attempt + 1`` (0-based attempt)."""
        factor = 1 + random.random() if self.jitter else 1.0  # noqa: S311
        return self.backoff_ms * (2**attempt) * factor / 1000.0


def is_retryable(error: BaseException) -> bool:
    """Classify an exception as transient (retryable) or not."""
    if isinstance(error, ProviderError):
        if error.retryable:
            return True
        return error.status_code in RETRYABLE_STATUS_CODES
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status in RETRYABLE_STATUS_CODES
    msg = str(error).lower()
    return any(marker in msg for marker in _RETRYABLE_MARKERS)


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    agent: str = "unknown",
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **kwargs: Any,
) -> Any:
    """Execute an async call, retrying transient failures.

    Makes at most ``policy.max_retries + 1`` calls.

    Raises:
        LLMCallError: On a non-retryable error or once retries are exhausted.
    """
    policy = policy or RetryPolicy()
    attempt = 0

    while True:
        try:
            return await fn(*args, **kwargs)
        except Exception as e:
            if attempt >= policy.max_retries or not is_retryable(e):
                raise LLMCallError(agent, attempt + 1, e) from e

            delay = policy.delay_s(attempt)
            logger.warning(
                "Retryable error for agent '%s', retrying in %.2fs (attempt %d/%d): %s",
                agent, delay, attempt + 1, policy.max_retries, e,
            )
            attempt += 1
            await sleep(delay)


def _describe(error: Exception) -> str:
    if isinstance(error, ProviderError):
        if error.status_code is not None:
            return f"{error.reason} (status {error.status_code})"
        return error.reason
    if isinstance(error, TimeoutError):
        return "request timed out"
    return str(error) or type(error).__name__
