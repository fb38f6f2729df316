from __future__ import annotations

import logging
import os
from typing import Optional

from vitals.core.retention import DEFAULT_INTERVAL_S, DEFAULT_KEEP_PER_USER

log = logging.getLogger(__name__)

DEFAULT_SHUTDOWN_TIMEOUT_S = 30.0


def _env_number(name: str, default: float, *, minimum: float) -> float:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        log.warning("Ignoring %s=%r (not a number); using %s", name, raw, default)
        return default
    if value < minimum:
        log.warning("Ignoring %s=%r (below %s); using %s", name, raw, minimum, default)
        return default
    return value


def retention_keep_per_user() -> int:
    return int(_env_number("SYNC_JOB_RETENTION_PER_USER", DEFAULT_KEEP_PER_USER, minimum=1))


def retention_interval_s() -> float:
    return _env_number("SYNC_JOB_RETENTION_INTERVAL_S", DEFAULT_INTERVAL_S, minimum=1)


def portfolio_fixture_dir() -> Optional[str]:
    v = (os.environ.get("PORTFOLIO_FIXTURE_DIR") or "").strip()
    return v or None


def shutdown_timeout_s() -> float:
    return _env_number("SYNC_SHUTDOWN_TIMEOUT_S", DEFAULT_SHUTDOWN_TIMEOUT_S, minimum=0)
