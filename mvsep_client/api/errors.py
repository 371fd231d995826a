"""Error taxonomy for the MVSEP client.

WHY: Callers need to branch on *why* a call failed (bad token, rate limit,
server hiccup, job failure) without string matching. The retry loop needs
the same information to decide whether another attempt is worthwhile.

HOW: One exception class, MVSEPError, tagged with an ErrorKind. Each kind
has a named constructor that fills in the fields relevant to it (HTTP
status, headers, Retry-After, validation details, job hash). Code that
cares about the failure inspects ``error.kind`` rather than the class.

RULES:
- Every error has a human-readable message and a machine-readable code
- Only the request executor turns raw HTTP/transport outcomes into errors
- retry_after is in seconds (float), never milliseconds
- is_api_error() is the broadening query for "the server answered with a
  body worth inspecting" (API and RATE_LIMIT kinds). That covers non-2xx
  replies and 2xx bodies of an unexpected shape; the latter have
  ``status`` None
"""

from __future__ import annotations

import enum
from typing import Any


class ErrorKind(str, enum.Enum):
    """Closed set of failure categories."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    API = "api"
    FILE_UPLOAD = "file_upload"
    SEPARATION = "separation"


_CODES: dict[ErrorKind, str] = {
    ErrorKind.NETWORK: "NETWORK_ERROR",
    ErrorKind.TIMEOUT: "TIMEOUT_ERROR",
    ErrorKind.RATE_LIMIT: "RATE_LIMIT_ERROR",
    ErrorKind.AUTHENTICATION: "AUTH_ERROR",
    ErrorKind.VALIDATION: "VALIDATION_ERROR",
    ErrorKind.API: "API_ERROR",
    ErrorKind.FILE_UPLOAD: "FILE_UPLOAD_ERROR",
    ErrorKind.SEPARATION: "SEPARATION_ERROR",
}


class MVSEPError(Exception):
    """Raised for every failure surfaced by the MVSEP client.

    WHY: A single exception type keeps ``except MVSEPError`` sufficient for
    callers, while ``kind`` carries the category for finer handling.

    HOW: Fields that don't apply to a kind stay None. Prefer the named
    constructors over calling __init__ directly.

    RULES:
    - status/status_text/response/headers only set for HTTP-derived kinds
    - retry_after only set for RATE_LIMIT
    - field_errors only set for VALIDATION
    - job_id only set for SEPARATION
    - cause is also chained as __cause__ when given
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        status: int | None = None,
        status_text: str | None = None,
        response: Any = None,
        headers: dict[str, str] | None = None,
        retry_after: float | None = None,
        field_errors: Any = None,
        job_id: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status = status
        self.status_text = status_text
        self.response = response
        self.headers = dict(headers) if headers else {}
        self.retry_after = retry_after
        self.field_errors = field_errors
        self.job_id = job_id
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @property
    def code(self) -> str:
        return _CODES[self.kind]

    def __repr__(self) -> str:
        parts = [f"kind={self.kind.value}", f"message={self.message!r}"]
        if self.status is not None:
            parts.append(f"status={self.status}")
        if self.retry_after is not None:
            parts.append(f"retry_after={self.retry_after}")
        if self.job_id is not None:
            parts.append(f"job_id={self.job_id!r}")
        return "MVSEPError({})".format(", ".join(parts))

    # ------------------------------------------------------------------
    # Named constructors
    # ------------------------------------------------------------------

    @classmethod
    def network(cls, message: str, cause: BaseException | None = None) -> MVSEPError:
        return cls(ErrorKind.NETWORK, message, cause=cause)

    @classmethod
    def timeout(cls, message: str = "Operation timed out") -> MVSEPError:
        return cls(ErrorKind.TIMEOUT, message)

    @classmethod
    def rate_limit(
        cls,
        message: str = "Rate limit exceeded",
        *,
        status: int = 429,
        status_text: str | None = None,
        response: Any = None,
        headers: dict[str, str] | None = None,
        retry_after: float | None = None,
    ) -> MVSEPError:
        return cls(
            ErrorKind.RATE_LIMIT,
            message,
            status=status,
            status_text=status_text,
            response=response,
            headers=headers,
            retry_after=retry_after,
        )

    @classmethod
    def authentication(
        cls,
        message: str = "Authentication failed",
        *,
        status: int | None = None,
    ) -> MVSEPError:
        return cls(ErrorKind.AUTHENTICATION, message, status=status)

    @classmethod
    def validation(
        cls,
        message: str = "Validation failed",
        *,
        field_errors: Any = None,
        status: int | None = None,
    ) -> MVSEPError:
        return cls(
            ErrorKind.VALIDATION, message, field_errors=field_errors, status=status
        )

    @classmethod
    def api(
        cls,
        status: int,
        message: str,
        *,
        status_text: str | None = None,
        response: Any = None,
        headers: dict[str, str] | None = None,
    ) -> MVSEPError:
        return cls(
            ErrorKind.API,
            message,
            status=status,
            status_text=status_text,
            response=response,
            headers=headers,
        )

    @classmethod
    def file_upload(
        cls, message: str, cause: BaseException | None = None
    ) -> MVSEPError:
        return cls(ErrorKind.FILE_UPLOAD, message, cause=cause)

    @classmethod
    def separation(cls, message: str, job_id: str | None = None) -> MVSEPError:
        return cls(ErrorKind.SEPARATION, message, job_id=job_id)


def is_api_error(error: BaseException) -> bool:
    """True when the server answered with an error status or an unusable body.

    Malformed 2xx bodies are API errors with ``status`` None.
    """
    return isinstance(error, MVSEPError) and error.kind in (
        ErrorKind.API,
        ErrorKind.RATE_LIMIT,
    )
