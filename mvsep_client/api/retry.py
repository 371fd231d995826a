"""Retry, backoff, and timeout helpers for MVSEP API calls.

WHY: MVSEP sits behind a busy queue and occasionally answers with 429/5xx
or drops connections. Transient failures should be retried a few times
with growing gaps; permanent ones (bad token, bad input) should surface
immediately.

HOW: is_retryable_error() inspects the MVSEPError kind and status.
delay_for() picks the server's Retry-After hint when present, otherwise
capped exponential backoff. retry_with_backoff() runs an async operation
under a RetryPolicy. with_timeout() bounds a single awaitable with
asyncio.wait_for and turns expiry into a TIMEOUT error.

RULES:
- All durations are seconds (float)
- Backoff is base * 2**attempt, capped at 32s; attempt 0 is the delay
  before the second attempt
- parse_retry_after() never returns a negative value
- with_timeout() applies to one attempt, not to the whole retry sequence
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, TypeVar

from mvsep_client.api.errors import ErrorKind, MVSEPError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

MAX_BACKOFF_S = 32.0

# 2**6 already exceeds the cap for any base >= 0.5s; the clamp only keeps
# float conversion from overflowing on absurd attempt counts.
_MAX_EXPONENT = 64


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to retry, how long to wait, and how long one attempt may take."""

    max_retries: int = 3
    retry_delay: float = 1.0
    timeout: float | None = 30.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise MVSEPError.validation(
                f"max_retries must be >= 0, got {self.max_retries}"
            )
        if self.retry_delay < 0:
            raise MVSEPError.validation(
                f"retry_delay must be >= 0, got {self.retry_delay}"
            )
        if self.timeout is not None and self.timeout <= 0:
            raise MVSEPError.validation(
                f"timeout must be > 0 seconds, got {self.timeout}"
            )


def is_retryable_error(error: BaseException) -> bool:
    """Decide whether another attempt could succeed after ``error``.

    Network, timeout, and rate-limit errors are always retryable. Generic
    API errors are retryable only for the gateway/overload statuses in
    RETRYABLE_STATUS_CODES. Anything that isn't an MVSEPError is treated
    as a programming error and never retried.
    """
    if not isinstance(error, MVSEPError):
        return False
    if error.kind in (ErrorKind.NETWORK, ErrorKind.TIMEOUT, ErrorKind.RATE_LIMIT):
        return True
    if error.kind == ErrorKind.API:
        return error.status in RETRYABLE_STATUS_CODES
    return False


def calculate_backoff(attempt: int, base_delay: float) -> float:
    """Exponential backoff for ``attempt`` (0-based), capped at MAX_BACKOFF_S."""
    exponent = min(max(attempt, 0), _MAX_EXPONENT)
    return min(base_delay * (2 ** exponent), MAX_BACKOFF_S)


def parse_retry_after(value: str | None) -> float:
    """Parse a Retry-After header into seconds to wait.

    Accepts delta-seconds ("5") or an HTTP date
    ("Wed, 21 Oct 2026 07:28:00 GMT"). Returns 0.0 when the value is
    absent, unparseable, or a date in the past.
    """
    if not value:
        return 0.0
    value = value.strip()

    try:
        return float(max(int(value), 0))
    except ValueError:
        pass

    try:
        target = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return 0.0
    if target is None:
        return 0.0
    if target.tzinfo is None:
        target = target.replace(tzinfo=timezone.utc)

    delta = (target - datetime.now(timezone.utc)).total_seconds()
    return max(delta, 0.0)


def delay_for(attempt: int, base_delay: float, error: BaseException | None = None) -> float:
    """Seconds to sleep before the attempt following ``attempt``.

    Priority: the error's parsed retry_after, then a Retry-After header
    carried on the error, then capped exponential backoff.
    """
    if isinstance(error, MVSEPError):
        if error.retry_after:
            return error.retry_after
        header = error.headers.get("retry-after")
        if header:
            hinted = parse_retry_after(header)
            if hinted > 0:
                return hinted
    return calculate_backoff(attempt, base_delay)


async def with_timeout(
    awaitable: Awaitable[T],
    timeout: float | None,
    message: str | None = None,
) -> T:
    """Await ``awaitable`` for at most ``timeout`` seconds.

    On expiry the underlying operation is cancelled and a TIMEOUT
    MVSEPError is raised. ``timeout=None`` disables the limit.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as exc:
        raise MVSEPError.timeout(
            message or f"Request timed out after {timeout:g}s"
        ) from exc


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    is_retryable: Callable[[BaseException], bool] = is_retryable_error,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Run ``operation`` up to ``policy.max_retries + 1`` times.

    ``operation`` is called once per attempt and must return a fresh
    awaitable each time. The last error is re-raised unchanged when the
    attempts are exhausted or the error is not retryable.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as error:
            if attempt >= policy.max_retries or not is_retryable(error):
                raise
            delay = delay_for(attempt, policy.retry_delay, error)
            logger.info(
                "Attempt %d/%d failed (%s); retrying in %.2fs",
                attempt + 1,
                policy.max_retries + 1,
                error,
                delay,
            )
            await sleep(delay)
            attempt += 1
