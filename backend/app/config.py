from __future__ import annotations

"""Application-level feature flags and configuration.

All values are read from the environment once at import time. Flags that
change analytics semantics default to the deterministic behaviour so that
reports are reproducible unless an environment explicitly opts in.
"""

import os


def _env_flag(name: str, default: bool = True) -> bool:
    """Read a boolean-like flag from environment.

    Accepted falsy values: "0", "false", "off", "no" (case-insensitive).
    Anything else (or unset) falls back to `default`.
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in {"0", "false", "off", "no"}:
        return False
    if value in {"1", "true", "on", "yes"}:
        return True
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# Application constants
APP_NAME = "Workforce Analytics API"
APP_VERSION = "1.0.0"
SERVICE_NAME = "workforce-analytics"

# Workforce analytics
# Synthetic "no recent review" coin flip kept for demo datasets only.
ENABLE_SYNTHETIC_REVIEW_SIGNAL: bool = _env_flag("ENABLE_SYNTHETIC_REVIEW_SIGNAL", default=False)
REVIEW_LOOKBACK_MONTHS: int = _env_int("REVIEW_LOOKBACK_MONTHS", 12)

# Dashboards
DASHBOARD_DEFAULT_DAYS: int = _env_int("DASHBOARD_DEFAULT_DAYS", 30)

# Access logging
SLOW_REQUEST_MS: int = _env_int("SLOW_REQUEST_MS", 1000)
