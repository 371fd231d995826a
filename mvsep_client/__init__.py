"""MVSEP client: async Python SDK for the MVSEP audio separation API.

WHY: MVSEP separates music into stems (vocals, drums, bass, ...) through
an asynchronous job API. Scripts and services that use it all need the
same upload -> create job -> poll -> download-links workflow, with
sensible retry behavior on a busy shared service.

HOW: Three layers: a request executor (timeouts, retries, error
classification), a job poller, and the MVSEPClient facade with one method
per endpoint. Each layer is independently testable.

RULES:
- All HTTP goes through mvsep_client.api.executor.RequestExecutor
- Every failure is an MVSEPError; branch on ``error.kind``
- All durations are seconds
"""

__version__ = "0.1.0"

from mvsep_client.api import (  # noqa: E402
    ErrorKind,
    JobState,
    MVSEPClient,
    MVSEPError,
    PollingOptions,
    SeparationStatus,
)

__all__ = [
    "ErrorKind",
    "JobState",
    "MVSEPClient",
    "MVSEPError",
    "PollingOptions",
    "SeparationStatus",
    "__version__",
]
