"""MVSEP API package: async HTTP interface to the MVSEP separation service.

WHY: Callers need to upload audio, start separation jobs, wait for them,
and read the results. This package encapsulates all MVSEP communication.

HOW: errors.py defines the failure taxonomy, retry.py the backoff and
timeout helpers, executor.py the retried HTTP call, poller.py the job
wait loop, and client.py the MVSEPClient facade. Response data is parsed
into dataclasses in models.py.

RULES:
- All HTTP calls go through RequestExecutor (no direct httpx usage elsewhere)
- Authentication is via the api_token form/query field
"""

from mvsep_client.api.client import MVSEPClient
from mvsep_client.api.errors import ErrorKind, MVSEPError, is_api_error
from mvsep_client.api.executor import RequestAttempt, RequestExecutor
from mvsep_client.api.models import JobState, SeparationStatus
from mvsep_client.api.poller import PollingOptions, poll_until_done
from mvsep_client.api.retry import (
    RetryPolicy,
    calculate_backoff,
    is_retryable_error,
    parse_retry_after,
    retry_with_backoff,
    with_timeout,
)

__all__ = [
    "ErrorKind",
    "JobState",
    "MVSEPClient",
    "MVSEPError",
    "PollingOptions",
    "RequestAttempt",
    "RequestExecutor",
    "RetryPolicy",
    "SeparationStatus",
    "calculate_backoff",
    "is_api_error",
    "is_retryable_error",
    "parse_retry_after",
    "poll_until_done",
    "retry_with_backoff",
    "with_timeout",
]
