"""Polling loop that waits for a separation job to finish.

WHY: Separation runs asynchronously on MVSEP's side and can sit in a queue
for minutes. Callers want a single awaitable that resolves with the
finished job, reports progress along the way, and gives up after a
deadline.

HOW: poll_until_done() takes a fetch function (normally
MVSEPClient.get_separation, which already retries through the request
executor) and loops: check the deadline, fetch, return on done, raise on
failed, otherwise report progress and sleep.

RULES:
- The deadline is checked before every fetch; an expired deadline raises
  TIMEOUT without issuing another request
- on_progress is called for pending/running snapshots only, in poll order
- on_progress may be sync or async; an awaitable result is awaited
- Exceptions from on_progress propagate and end the poll
- Each call owns its own session state; nothing is shared between polls
- Cancelling the awaiting task stops the loop at its next suspension point
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from mvsep_client.api.errors import MVSEPError
from mvsep_client.api.models import JobState, SeparationStatus
from mvsep_client.config import DEFAULT_POLL_INTERVAL_S, DEFAULT_POLL_MAX_DURATION_S

logger = logging.getLogger(__name__)


@dataclass
class PollingOptions:
    """Polling configuration for one wait.

    RULES:
    - interval: seconds between status fetches (default 5)
    - max_duration: seconds before giving up (default 30 minutes)
    - on_progress: called (and awaited, if async) with each non-terminal
      SeparationStatus
    """

    interval: float = DEFAULT_POLL_INTERVAL_S
    max_duration: float = DEFAULT_POLL_MAX_DURATION_S
    on_progress: Callable[[SeparationStatus], Any] | None = None


async def poll_until_done(
    fetch_status: Callable[[str], Awaitable[SeparationStatus]],
    job_id: str,
    options: PollingOptions | None = None,
    *,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> SeparationStatus:
    """Poll ``job_id`` until it reaches a terminal state.

    Args:
        fetch_status: Coroutine function returning the current snapshot.
        job_id: The job hash to poll.
        options: Interval, deadline, and progress callback.
        clock: Monotonic time source (seconds).
        sleep: Async sleep used between polls.

    Returns:
        The SeparationStatus whose state is DONE.

    Raises:
        MVSEPError: TIMEOUT when max_duration elapses, SEPARATION when the
            job fails, or whatever fetch_status raised.
    """
    options = options or PollingOptions()
    start = clock()
    polls = 0

    while True:
        elapsed = clock() - start
        if elapsed > options.max_duration:
            raise MVSEPError.timeout(
                f"Separation job {job_id} timed out after {elapsed:.1f}s "
                f"(limit: {options.max_duration:g}s)"
            )

        status = await fetch_status(job_id)
        polls += 1

        if status.state == JobState.DONE:
            logger.debug("Job %s done after %d polls", job_id, polls)
            return status

        if status.state == JobState.FAILED:
            raise MVSEPError.separation(
                f"Separation job {job_id} failed (status: {status.raw_status})",
                job_id=job_id,
            )

        if options.on_progress:
            result = options.on_progress(status)
            if inspect.isawaitable(result):
                await result

        await sleep(options.interval)
