"""Request executor: one logical MVSEP API call, with retries.

WHY: Every endpoint needs the same treatment: send the request, bound
each attempt in time, classify failures into MVSEPError kinds, and retry
the transient ones. Doing this in one place keeps the client methods to
a path and a payload each.

HOW: RequestExecutor owns an httpx.AsyncClient (opened by the async
context manager). execute() wraps a single send in with_timeout() and
hands that to retry_with_backoff(). The transport is injectable, so
tests pass an httpx.MockTransport instead of patching anything global.

RULES:
- This module is the only place that looks at raw HTTP statuses
- 429 -> RATE_LIMIT, 401/403 -> AUTHENTICATION, 400/422 -> VALIDATION,
  other non-2xx -> API; httpx and socket timeouts -> TIMEOUT, other httpx
  errors and OSErrors raised by the transport -> NETWORK
- JSON bodies (by content type) are parsed; everything else stays text
- The parsed body is attached to the error as ``response``
- Upload payloads in RequestAttempt.files must be bytes so every attempt
  resends the same content
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from mvsep_client.api.errors import MVSEPError
from mvsep_client.api.retry import (
    RetryPolicy,
    parse_retry_after,
    retry_with_backoff,
    with_timeout,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestAttempt:
    """Description of one logical request; reused verbatim for each attempt."""

    method: str
    path: str
    params: dict[str, Any] | None = None
    data: dict[str, Any] | None = None
    files: dict[str, tuple] | None = None
    headers: dict[str, str] | None = None


# ---------------------------------------------------------------------------
# Response classification
# ---------------------------------------------------------------------------


def parse_body(response: httpx.Response) -> Any:
    """Parse JSON responses by content type; anything else is returned as text."""
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text


def _body_message(body: Any, default: str) -> str:
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message:
            return message
    return default


def error_from_response(response: httpx.Response, body: Any) -> MVSEPError:
    """Build the MVSEPError matching a non-2xx response."""
    status = response.status_code
    headers = dict(response.headers)
    status_text = response.reason_phrase

    if status == 429:
        return MVSEPError.rate_limit(
            _body_message(body, "Rate limit exceeded"),
            status=status,
            status_text=status_text,
            response=body,
            headers=headers,
            retry_after=parse_retry_after(response.headers.get("retry-after")),
        )

    if status in (401, 403):
        return MVSEPError.authentication(
            _body_message(body, "Authentication failed"), status=status
        )

    if status in (400, 422):
        field_errors = None
        if isinstance(body, dict):
            field_errors = body.get("errors")
            # Laravel-style responses put the per-field dict in "message"
            if field_errors is None and isinstance(body.get("message"), dict):
                field_errors = body["message"]
        return MVSEPError.validation(
            _body_message(body, "Validation failed"),
            field_errors=field_errors,
            status=status,
        )

    return MVSEPError.api(
        status,
        _body_message(body, f"API request failed with status {status}"),
        status_text=status_text,
        response=body,
        headers=headers,
    )


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class RequestExecutor:
    """Sends RequestAttempts to the MVSEP API with timeout and retry.

    WHY: Centralizes transport, classification, and retry so the client
    facade only describes requests.

    HOW: Use as ``async with RequestExecutor(...) as executor:``. Entering
    opens an httpx.AsyncClient with the base URL and default headers;
    exiting closes it.

    RULES:
    - policy.timeout bounds each attempt, not the retry sequence
    - transport=None means httpx's real network transport
    - debug=True logs method, URL, and response bodies at DEBUG
    """

    def __init__(
        self,
        base_url: str,
        policy: RetryPolicy | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        debug: bool = False,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._policy = policy or RetryPolicy()
        self._headers = dict(headers or {})
        self._transport = transport
        self._debug = debug
        self._sleep = sleep
        self._client: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def __aenter__(self) -> RequestExecutor:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=httpx.Timeout(self._policy.timeout),
            transport=self._transport,
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "RequestExecutor must be used as an async context manager: "
                "async with RequestExecutor(...) as executor: ..."
            )
        return self._client

    async def execute(self, attempt: RequestAttempt) -> Any:
        """Perform ``attempt`` with retries and return the parsed 2xx body.

        Raises:
            MVSEPError: the final classified error once retries are
                exhausted, or immediately for non-retryable kinds.
        """
        client = self._ensure_client()
        return await retry_with_backoff(
            lambda: with_timeout(self._send(client, attempt), self._policy.timeout),
            self._policy,
            sleep=self._sleep,
        )

    async def _send(self, client: httpx.AsyncClient, attempt: RequestAttempt) -> Any:
        if self._debug:
            logger.debug("%s %s%s", attempt.method, self._base_url, attempt.path)

        try:
            response = await client.request(
                attempt.method,
                attempt.path,
                params=attempt.params,
                data=attempt.data,
                files=attempt.files,
                headers=attempt.headers,
            )
        except (httpx.TimeoutException, TimeoutError) as exc:
            raise MVSEPError.timeout(f"Request timed out: {exc}") from exc
        except (httpx.HTTPError, OSError) as exc:
            raise MVSEPError.network(f"Network request failed: {exc}", exc) from exc

        body = parse_body(response)

        if not response.is_success:
            if self._debug:
                logger.debug("Error response %d: %s", response.status_code, body)
            raise error_from_response(response, body)

        if self._debug:
            logger.debug("Response: %s", body)
        return body
