"""MVSEP API request and response dataclasses.

WHY: The MVSEP API returns loosely-shaped JSON (numeric flags as 0/1,
payloads that change shape with job state). Typed dataclasses make the
fields callers rely on explicit and keep dict-digging out of client code.

HOW: Each dataclass has a from_dict factory that reads the fields it knows
and tolerates missing optional ones. Nested structures the SDK does not
interpret (algorithm field definitions, audio tags) are kept as raw dicts.
JobState normalizes MVSEP's wire statuses into four lifecycle states.

RULES:
- JobState is the only place wire status strings are interpreted
- Unknown wire statuses are treated as RUNNING (logged at WARNING) so a
  new server-side stage doesn't break polling
- SeparationStatus.data is queue info while pending and the result
  payload once done
- Numeric 0/1 flags from the API are exposed as bool
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


class JobState(str, enum.Enum):
    """Lifecycle state of a separation job as observed by polling.

    RULES:
    - pending: queued, data carries queue position
    - running: being processed
    - done: terminal success, data carries output files
    - failed: terminal failure
    """

    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.DONE, JobState.FAILED)

    @classmethod
    def from_wire(cls, value: Any) -> JobState:
        """Map an MVSEP status string onto a JobState."""
        key = str(value).lower() if value is not None else ""
        state = _WIRE_STATES.get(key)
        if state is None:
            logger.warning("Unknown separation status %r, treating as running", value)
            return cls.RUNNING
        return state


_WIRE_STATES: dict[str, JobState] = {
    "waiting": JobState.PENDING,
    "pending": JobState.PENDING,
    "processing": JobState.RUNNING,
    "running": JobState.RUNNING,
    "distributing": JobState.RUNNING,
    "merging": JobState.RUNNING,
    "done": JobState.DONE,
    "error": JobState.FAILED,
    "failed": JobState.FAILED,
    "not_found": JobState.FAILED,
}


def _flag(value: Any) -> bool:
    """MVSEP sends booleans as 0/1 (sometimes as strings)."""
    try:
        return bool(int(value))
    except (TypeError, ValueError):
        return bool(value)


# ---------------------------------------------------------------------------
# Generic envelope
# ---------------------------------------------------------------------------


@dataclass
class APIResponse:
    """The ``{success, message, data}`` envelope most MVSEP endpoints use."""

    success: bool
    message: str | None = None
    data: Any = None
    status: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> APIResponse:
        if not isinstance(data, dict):
            return cls(success=True, data=data)
        message = data.get("message")
        return cls(
            success=bool(data.get("success", True)),
            message=message if isinstance(message, str) else None,
            data=data.get("data"),
            status=data.get("status"),
        )


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@dataclass
class User:
    name: str
    email: str
    api_token: str | None = None
    premium_minutes: float = 0
    premium_enabled: bool = False
    long_filenames_enabled: bool = False
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> User:
        return cls(
            name=data.get("name", ""),
            email=data.get("email", ""),
            api_token=data.get("api_token"),
            premium_minutes=data.get("premium_minutes") or 0,
            premium_enabled=_flag(data.get("premium_enabled", 0)),
            long_filenames_enabled=_flag(data.get("long_filenames_enabled", 0)),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


# ---------------------------------------------------------------------------
# Algorithms
# ---------------------------------------------------------------------------


@dataclass
class Algorithm:
    """A separation algorithm; ``id`` is the ``sep_type`` to submit jobs with."""

    id: int
    name: str
    algorithm_group_id: int | None = None
    is_active: bool = True
    price_coefficient: float | None = None
    fields: list[dict] = field(default_factory=list)
    descriptions: list[dict] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> Algorithm:
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            algorithm_group_id=data.get("algorithm_group_id"),
            is_active=_flag(data.get("is_active", 1)),
            price_coefficient=data.get("price_coefficient"),
            fields=list(data.get("algorithm_fields") or []),
            descriptions=list(data.get("algorithm_descriptions") or []),
        )

    def description(self, lang: str = "en") -> str | None:
        """Short description in ``lang``, falling back to the first one available."""
        for desc in self.descriptions:
            if desc.get("lang") == lang:
                return desc.get("short_description")
        if self.descriptions:
            return self.descriptions[0].get("short_description")
        return None


# ---------------------------------------------------------------------------
# Separations
# ---------------------------------------------------------------------------


@dataclass
class SeparatedFile:
    url: str
    size: str | None = None
    download: str | None = None
    stem: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> SeparatedFile:
        return cls(
            url=data["url"],
            size=data.get("size"),
            download=data.get("download"),
            stem=data.get("stem"),
        )


@dataclass
class SeparationStatus:
    """Snapshot of a separation job from GET /api/separation/get.

    WHY: Both the poller and callers need the normalized state plus the
    payload, without caring about MVSEP's wire status names.

    HOW: from_dict() maps the wire ``status`` through JobState.from_wire
    and keeps the original string in ``raw_status``.
    """

    hash: str
    state: JobState
    data: dict | None = None
    success: bool = True
    raw_status: str | None = None

    @classmethod
    def from_dict(cls, job_hash: str, data: dict) -> SeparationStatus:
        payload = data.get("data")
        return cls(
            hash=job_hash,
            state=JobState.from_wire(data.get("status")),
            data=payload if isinstance(payload, dict) else None,
            success=bool(data.get("success", True)),
            raw_status=data.get("status"),
        )

    @property
    def queue_position(self) -> tuple[int, int] | None:
        """``(current_order, queue_count)`` while queued, else None."""
        if not self.data or "queue_count" not in self.data:
            return None
        return int(self.data.get("current_order", 0)), int(self.data["queue_count"])

    @property
    def files(self) -> list[SeparatedFile]:
        if not self.data:
            return []
        return [SeparatedFile.from_dict(f) for f in self.data.get("files") or []]


@dataclass
class HistoryItem:
    id: int
    hash: str
    created_at: str | None = None
    job_exists: bool = False
    credits: float = 0
    time_left: float = 0
    algorithm: Algorithm | None = None

    @classmethod
    def from_dict(cls, data: dict) -> HistoryItem:
        algo = data.get("algorithm")
        return cls(
            id=int(data["id"]),
            hash=data["hash"],
            created_at=data.get("created_at"),
            job_exists=bool(data.get("job_exists", False)),
            credits=data.get("credits") or 0,
            time_left=data.get("time_left") or 0,
            algorithm=Algorithm.from_dict(algo) if isinstance(algo, dict) else None,
        )


# ---------------------------------------------------------------------------
# News & demos
# ---------------------------------------------------------------------------


@dataclass
class News:
    id: int
    title: str
    text: str = ""
    lang: str | None = None
    created_at: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> News:
        return cls(
            id=int(data["id"]),
            title=data.get("title", ""),
            text=data.get("text", ""),
            lang=data.get("lang"),
            created_at=data.get("created_at"),
        )


@dataclass
class Demo:
    hash: str
    date: str | None = None
    input_audio: str | None = None
    algorithm: Algorithm | None = None

    @classmethod
    def from_dict(cls, data: dict) -> Demo:
        algo = data.get("algorithm")
        return cls(
            hash=data["hash"],
            date=data.get("date"),
            input_audio=data.get("input_audio"),
            algorithm=Algorithm.from_dict(algo) if isinstance(algo, dict) else None,
        )
