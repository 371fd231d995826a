"""Tests for the separation job polling loop.

WHY: The poller decides when to stop waiting. It must return exactly on
done, fail exactly on failed, never poll past its deadline, and report
progress in order.

HOW: fetch_status is a fake coroutine replaying a list of states. Most
tests inject a fake clock and sleep so time is deterministic; one test
uses real time with tiny intervals.

RULES:
- Fetch counts and callback order are asserted explicitly
- No network access
"""

from __future__ import annotations

import asyncio
from typing import List

import pytest

from mvsep_client.api.errors import ErrorKind, MVSEPError
from mvsep_client.api.models import JobState, SeparationStatus
from mvsep_client.api.poller import PollingOptions, poll_until_done


class FakeJob:
    """Replays wire statuses; the last one repeats forever."""

    def __init__(self, statuses: List[str]) -> None:
        self.statuses = list(statuses)
        self.fetches: List[str] = []

    async def fetch(self, job_id: str) -> SeparationStatus:
        self.fetches.append(job_id)
        wire = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return SeparationStatus.from_dict(job_id, {"success": True, "status": wire, "data": {}})


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay


def _poll(job, options, clock=None):
    clock = clock or FakeClock()
    return asyncio.run(
        poll_until_done(job.fetch, "job-1", options, clock=clock, sleep=clock.sleep)
    )


class TestTerminalStates:
    """The loop ends on done (return) or failed (raise)."""

    def test_pending_running_done(self):
        job = FakeJob(["waiting", "processing", "done"])
        seen = []
        result = _poll(job, PollingOptions(interval=1.0, on_progress=seen.append))

        assert result.state == JobState.DONE
        assert result.hash == "job-1"
        assert len(job.fetches) == 3
        assert [s.state for s in seen] == [JobState.PENDING, JobState.RUNNING]

    def test_done_on_first_poll_skips_callback_and_sleep(self):
        job = FakeJob(["done"])
        seen = []
        clock = FakeClock()
        _poll(job, PollingOptions(on_progress=seen.append), clock)
        assert len(job.fetches) == 1
        assert seen == []
        assert clock.sleeps == []

    def test_failed_raises_separation_error_with_job_id(self):
        job = FakeJob(["waiting", "processing", "error"])
        seen = []
        with pytest.raises(MVSEPError) as exc_info:
            _poll(job, PollingOptions(interval=1.0, on_progress=seen.append))

        err = exc_info.value
        assert err.kind == ErrorKind.SEPARATION
        assert err.job_id == "job-1"
        assert len(job.fetches) == 3
        assert len(seen) == 2

    def test_sleeps_interval_between_polls(self):
        job = FakeJob(["waiting", "waiting", "done"])
        clock = FakeClock()
        _poll(job, PollingOptions(interval=2.5), clock)
        assert clock.sleeps == [2.5, 2.5]


class TestDeadline:
    """max_duration bounds the whole wait."""

    def test_times_out_with_fake_clock(self):
        job = FakeJob(["processing"])
        clock = FakeClock()
        with pytest.raises(MVSEPError) as exc_info:
            _poll(job, PollingOptions(interval=10.0, max_duration=35.0), clock)

        assert exc_info.value.kind == ErrorKind.TIMEOUT
        # polls at t=0,10,20,30; t=40 is past the deadline and is not fetched
        assert len(job.fetches) == 4

    def test_times_out_in_real_time(self):
        job = FakeJob(["processing"])

        async def run():
            return await poll_until_done(
                job.fetch,
                "job-1",
                PollingOptions(interval=0.01, max_duration=0.05),
            )

        with pytest.raises(MVSEPError) as exc_info:
            asyncio.run(run())
        assert exc_info.value.kind == ErrorKind.TIMEOUT
        assert "job-1" in exc_info.value.message
        assert len(job.fetches) >= 1


class TestProgressCallback:
    def test_callback_receives_snapshots_in_order(self):
        job = FakeJob(["waiting", "processing", "merging", "done"])
        seen = []
        _poll(job, PollingOptions(on_progress=lambda s: seen.append(s.raw_status)))
        assert seen == ["waiting", "processing", "merging"]

    def test_callback_error_aborts_poll(self):
        job = FakeJob(["waiting", "done"])

        def explode(status):
            raise RuntimeError("ui went away")

        with pytest.raises(RuntimeError, match="ui went away"):
            _poll(job, PollingOptions(on_progress=explode))
        assert len(job.fetches) == 1

    def test_async_callback_is_awaited(self):
        job = FakeJob(["waiting", "processing", "done"])
        seen = []

        async def record(status):
            await asyncio.sleep(0)
            seen.append(status.raw_status)

        result = _poll(job, PollingOptions(on_progress=record))
        assert result.state == JobState.DONE
        assert seen == ["waiting", "processing"]

    def test_async_callback_error_aborts_poll(self):
        job = FakeJob(["waiting", "done"])

        async def explode(status):
            raise RuntimeError("ui went away")

        with pytest.raises(RuntimeError, match="ui went away"):
            _poll(job, PollingOptions(on_progress=explode))
        assert len(job.fetches) == 1

    def test_fetch_errors_propagate(self):
        async def fetch(job_id):
            raise MVSEPError.authentication()

        clock = FakeClock()
        with pytest.raises(MVSEPError) as exc_info:
            asyncio.run(
                poll_until_done(fetch, "job-1", PollingOptions(), clock=clock, sleep=clock.sleep)
            )
        assert exc_info.value.kind == ErrorKind.AUTHENTICATION


class TestIsolation:
    def test_concurrent_polls_do_not_interfere(self):
        fast = FakeJob(["waiting", "done"])
        slow = FakeJob(["waiting", "processing", "processing", "done"])

        async def run():
            return await asyncio.gather(
                poll_until_done(fast.fetch, "fast", PollingOptions(interval=0.001)),
                poll_until_done(slow.fetch, "slow", PollingOptions(interval=0.001)),
            )

        fast_result, slow_result = asyncio.run(run())
        assert fast_result.hash == "fast"
        assert slow_result.hash == "slow"
        assert fast.fetches == ["fast", "fast"]
        assert slow.fetches == ["slow"] * 4
