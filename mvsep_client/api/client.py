"""Async client for the MVSEP audio separation API.

WHY: Applications want to upload a track, pick an algorithm, and get the
separated stems back without dealing with form encoding, retries, or
polling. This module puts the whole workflow behind one class.

HOW: MVSEPClient describes each endpoint as a RequestAttempt and hands it
to a RequestExecutor (timeouts, retries, error classification). Job
waiting goes through poll_until_done(). The client is an async context
manager; entering it opens the HTTP connection pool.

RULES:
- Always use the async context manager (async with MVSEPClient(...) as client:)
- api_token defaults to MVSEP_API_TOKEN from .env; missing -> VALIDATION
- Upload payloads are read into memory once so retries resend the same bytes
- Endpoint methods return typed models from models.py
- Workflow: get_algorithms -> create_separation -> wait_for_separation
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import IO, Any, Tuple, Union

import httpx

from mvsep_client import __version__
from mvsep_client.api.errors import ErrorKind, MVSEPError
from mvsep_client.api.executor import RequestAttempt, RequestExecutor
from mvsep_client.api.models import (
    Algorithm,
    APIResponse,
    Demo,
    HistoryItem,
    News,
    SeparationStatus,
    User,
)
from mvsep_client.api.poller import PollingOptions, poll_until_done
from mvsep_client.api.retry import RetryPolicy
from mvsep_client.config import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY_S,
    DEFAULT_TIMEOUT_S,
    MVSEP_BASE_URL,
    load_api_token,
)

USER_AGENT = f"mvsep-client/{__version__} python-httpx/{httpx.__version__}"

FileInput = Union[str, Path, bytes, IO[bytes], Tuple[str, Any]]
"""Accepted upload payloads: a path (str or Path), raw bytes, a binary file
object, or ``(filename, any of the above)``."""


class MVSEPClient:
    """Async client for the MVSEP API.

    WHY: One object carrying the token, host, and retry settings, with a
    method per API operation.

    HOW: Wraps a RequestExecutor. Configuration is read-only after
    construction, so one client can serve concurrent tasks.

    RULES:
    - Use as: async with MVSEPClient() as client: ...
    - timeout is per attempt; max_retries extra attempts for transient errors
    - custom_headers are merged into every request
    - transport is for tests (httpx.MockTransport); None uses the network
    """

    def __init__(
        self,
        api_token: str | None = None,
        base_url: str | None = None,
        timeout: float | None = DEFAULT_TIMEOUT_S,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY_S,
        debug: bool = False,
        custom_headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        api_token = api_token or load_api_token()
        if not api_token:
            raise MVSEPError.validation("API token is required")

        self._api_token = api_token
        self._executor = RequestExecutor(
            base_url or MVSEP_BASE_URL,
            policy=RetryPolicy(
                max_retries=max_retries, retry_delay=retry_delay, timeout=timeout
            ),
            headers={"User-Agent": USER_AGENT, **(custom_headers or {})},
            transport=transport,
            debug=debug,
        )

    @property
    def base_url(self) -> str:
        return self._executor.base_url

    async def __aenter__(self) -> MVSEPClient:
        await self._executor.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        await self._executor.aclose()

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self._executor.execute(
            RequestAttempt("GET", path, params=_form_fields(params or {}) or None)
        )

    async def _post(
        self,
        path: str,
        data: dict[str, Any],
        files: dict[str, tuple] | None = None,
    ) -> Any:
        return await self._executor.execute(
            RequestAttempt("POST", path, data=_form_fields(data), files=files)
        )

    # ------------------------------------------------------------------
    # Authentication & user
    # ------------------------------------------------------------------

    async def register(
        self, name: str, email: str, password: str, password_confirmation: str
    ) -> APIResponse:
        """Register a new MVSEP account."""
        body = await self._post(
            "/api/app/register",
            {
                "name": name,
                "email": email,
                "password": password,
                "password_confirmation": password_confirmation,
            },
        )
        return APIResponse.from_dict(body)

    async def login(self, email: str, password: str) -> APIResponse:
        """Log in; ``response.data`` is a User carrying the account's api_token."""
        body = await self._post(
            "/api/app/login", {"email": email, "password": password}
        )
        response = APIResponse.from_dict(body)
        if isinstance(response.data, dict):
            response.data = User.from_dict(response.data)
        return response

    async def get_user(self) -> User:
        body = await self._get("/api/app/user", {"api_token": self._api_token})
        response = APIResponse.from_dict(body)
        return User.from_dict(_expect_dict(response.data, "/api/app/user"))

    async def enable_premium(self) -> APIResponse:
        return await self._profile_toggle("/api/app/enable_premium")

    async def disable_premium(self) -> APIResponse:
        return await self._profile_toggle("/api/app/disable_premium")

    async def enable_long_filenames(self) -> APIResponse:
        return await self._profile_toggle("/api/app/enable_long_filenames")

    async def disable_long_filenames(self) -> APIResponse:
        return await self._profile_toggle("/api/app/disable_long_filenames")

    async def _profile_toggle(self, path: str) -> APIResponse:
        body = await self._post(path, {"api_token": self._api_token})
        return APIResponse.from_dict(body)

    # ------------------------------------------------------------------
    # Algorithms
    # ------------------------------------------------------------------

    async def get_algorithms(self) -> list[Algorithm]:
        """List separation algorithms; use ``Algorithm.id`` as ``sep_type``."""
        body = await self._get("/api/app/algorithms")
        return [Algorithm.from_dict(a) for a in _expect_list(body, "/api/app/algorithms")]

    # ------------------------------------------------------------------
    # Separation jobs
    # ------------------------------------------------------------------

    async def create_separation(
        self,
        audiofile: FileInput,
        sep_type: int | str,
        **options: Any,
    ) -> str:
        """Upload ``audiofile`` and start a separation job.

        Args:
            audiofile: Path, bytes, binary file object, or (filename, content).
            sep_type: Algorithm ID from get_algorithms().
            **options: Extra algorithm fields (add_opt1, output_format, ...).
                None values are dropped.

        Returns:
            The job hash used by get_separation / wait_for_separation.

        Raises:
            MVSEPError: FILE_UPLOAD if the payload can't be read, SEPARATION
                if the API accepted the upload but returned no hash, or any
                request error from the executor.
        """
        files = {"audiofile": _file_field(audiofile, "audio")}
        body = await self._post(
            "/api/separation/create",
            {"api_token": self._api_token, "sep_type": sep_type, **options},
            files=files,
        )

        if isinstance(body, dict):
            if body.get("hash"):
                return str(body["hash"])
            data = body.get("data")
            if isinstance(data, dict) and data.get("hash"):
                return str(data["hash"])

        raise MVSEPError.separation("No hash returned from separation creation")

    async def get_separation(self, job_hash: str) -> SeparationStatus:
        """Fetch the current status snapshot of a separation job."""
        body = await self._get("/api/separation/get", {"hash": job_hash})
        return SeparationStatus.from_dict(
            job_hash, _expect_dict(body, "/api/separation/get")
        )

    async def wait_for_separation(
        self,
        job_hash: str,
        polling: PollingOptions | None = None,
    ) -> SeparationStatus:
        """Poll until the job is done; see poll_until_done for the rules."""
        return await poll_until_done(self.get_separation, job_hash, polling)

    async def create_and_wait_for_separation(
        self,
        audiofile: FileInput,
        sep_type: int | str,
        polling: PollingOptions | None = None,
        **options: Any,
    ) -> SeparationStatus:
        """create_separation() followed by wait_for_separation()."""
        job_hash = await self.create_separation(audiofile, sep_type, **options)
        return await self.wait_for_separation(job_hash, polling)

    async def get_separation_history(
        self, start: int | None = None, limit: int | None = None
    ) -> list[HistoryItem]:
        body = await self._get(
            "/api/app/separation_history",
            {"api_token": self._api_token, "start": start, "limit": limit},
        )
        items = _expect_list(body, "/api/app/separation_history")
        return [HistoryItem.from_dict(item) for item in items]

    # ------------------------------------------------------------------
    # News & demos
    # ------------------------------------------------------------------

    async def get_news(
        self,
        lang: str | None = None,
        start: int | None = None,
        limit: int | None = None,
    ) -> list[News]:
        body = await self._get(
            "/api/app/news", {"lang": lang, "start": start, "limit": limit}
        )
        return [News.from_dict(n) for n in _expect_list(body, "/api/app/news")]

    async def get_demo(
        self, start: int | None = None, limit: int | None = None
    ) -> list[Demo]:
        body = await self._get("/api/app/demo", {"start": start, "limit": limit})
        return [Demo.from_dict(d) for d in _expect_list(body, "/api/app/demo")]

    # ------------------------------------------------------------------
    # Quality checker
    # ------------------------------------------------------------------

    async def add_quality_checker_entry(
        self,
        zipfile: FileInput,
        algo_name: str,
        main_text: str,
        dataset_type: str,
        ensemble: str,
        password: str,
    ) -> APIResponse:
        """Submit a zip of separated stems to the quality checker leaderboard."""
        body = await self._post(
            "/api/quality_checker/add",
            {
                "api_token": self._api_token,
                "algo_name": algo_name,
                "main_text": main_text,
                "dataset_type": dataset_type,
                "ensemble": ensemble,
                "password": password,
            },
            files={"zipfile": _file_field(zipfile, "results.zip")},
        )
        return APIResponse.from_dict(body)

    async def delete_quality_checker_entry(
        self, entry_id: int | str, password: str
    ) -> APIResponse:
        body = await self._post(
            "/api/quality_checker/delete", {"id": entry_id, "password": password}
        )
        return APIResponse.from_dict(body)


# ---------------------------------------------------------------------------
# Form helpers (module-private)
# ---------------------------------------------------------------------------


def _form_fields(params: dict[str, Any]) -> dict[str, str]:
    """Stringify form/query values, dropping None."""
    fields: dict[str, str] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            fields[key] = "true" if value else "false"
        else:
            fields[key] = str(value)
    return fields


def _file_field(value: FileInput, default_name: str) -> tuple[str, bytes]:
    """Read an upload payload into ``(filename, bytes)``.

    RULES:
    - str/PathLike path: filename is the basename, content read from disk
    - bytes/bytearray: filename is ``default_name``
    - file object: filename from its ``name`` attribute when present
    - (filename, payload): explicit filename, payload resolved as above
    - Unreadable payloads raise FILE_UPLOAD
    """
    if isinstance(value, tuple):
        filename, payload = value
        return filename, _file_field(payload, filename)[1]

    try:
        if isinstance(value, (bytes, bytearray)):
            return default_name, bytes(value)
        if isinstance(value, (str, os.PathLike)):
            path = Path(value)
            return path.name, path.read_bytes()
        if hasattr(value, "read"):
            name = getattr(value, "name", None)
            filename = os.path.basename(name) if isinstance(name, str) else default_name
            return filename, value.read()
    except OSError as exc:
        raise MVSEPError.file_upload(f"Failed to read upload file: {exc}", exc) from exc

    raise MVSEPError.file_upload(
        f"Unsupported upload payload type: {type(value).__name__}"
    )


def _expect_dict(body: Any, endpoint: str) -> dict:
    if not isinstance(body, dict):
        raise MVSEPError(
            ErrorKind.API, f"Unexpected response from {endpoint}", response=body
        )
    return body


def _expect_list(body: Any, endpoint: str) -> list:
    """Accept a bare JSON list or a ``{"data": [...]}`` envelope."""
    if isinstance(body, dict) and isinstance(body.get("data"), list):
        return body["data"]
    if not isinstance(body, list):
        raise MVSEPError(
            ErrorKind.API, f"Unexpected response from {endpoint}", response=body
        )
    return body
