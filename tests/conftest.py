"""Shared test fixtures for the mvsep_client test suite.

WHY: Executor and client tests both need a fake MVSEP server that returns
a scripted sequence of responses and records what was sent. Centralizing
it keeps each test focused on the behavior under test.

HOW: ScriptedServer wraps an httpx.MockTransport. Each queued item is an
httpx.Response, an exception to raise from the transport, or a callable
taking the request. The transport is injected through the ``transport``
parameter, so nothing global is patched.

RULES:
- No test touches the real network
- MVSEP_API_TOKEN is removed from the environment for every test
- Running out of scripted responses fails the test loudly
"""

from __future__ import annotations

from typing import Any, Callable, List

import httpx
import pytest


class ScriptedServer:
    """A fake MVSEP server replaying queued responses in order."""

    def __init__(self, responses: List[Any]) -> None:
        self.responses = list(responses)
        self.requests: List[httpx.Request] = []
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> Any:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(
                "Unexpected request {} {}".format(request.method, request.url)
            )
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return item(request)
        return item

    @property
    def calls(self) -> int:
        return len(self.requests)


@pytest.fixture(autouse=True)
def _no_env_token(monkeypatch):
    """Keep a developer's real token out of the tests."""
    monkeypatch.delenv("MVSEP_API_TOKEN", raising=False)


@pytest.fixture
def server() -> Callable[..., ScriptedServer]:
    """Factory: ``server(resp1, resp2, ...)`` -> ScriptedServer."""

    def _make(*responses: Any) -> ScriptedServer:
        return ScriptedServer(list(responses))

    return _make


@pytest.fixture
def recorded_sleeps():
    """An async sleep replacement that records delays instead of waiting."""
    delays: List[float] = []

    async def _sleep(delay: float) -> None:
        delays.append(delay)

    _sleep.delays = delays  # type: ignore[attr-defined]
    return _sleep
