"""Configuration defaults and .env loading for the MVSEP client.

WHY: Centralizes the values a caller might want to tweak (host, timeouts,
retry counts, polling cadence) so they are easy to find and override, and
keeps the API token out of source code.

HOW: python-dotenv loads a .env file on import. Defaults are module-level
constants; MVSEP_BASE_URL can be overridden from the environment.
load_api_token() reads MVSEP_API_TOKEN.

RULES:
- All durations are in seconds
- The API token is never hardcoded or defaulted
- Explicit constructor arguments on MVSEPClient always win over these
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the working directory
load_dotenv()

# ---------------------------------------------------------------------------
# API configuration defaults
# ---------------------------------------------------------------------------

MVSEP_BASE_URL = os.getenv("MVSEP_BASE_URL", "https://mvsep.com")

DEFAULT_TIMEOUT_S = 30.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_S = 1.0

DEFAULT_POLL_INTERVAL_S = 5.0
DEFAULT_POLL_MAX_DURATION_S = 30 * 60  # 30 minutes


def load_api_token() -> str | None:
    """Return MVSEP_API_TOKEN from the environment, or None when unset/blank."""
    token = os.getenv("MVSEP_API_TOKEN", "").strip()
    return token or None
