"""Shared config, environment lookup, and schedule parsing."""

import os
import time
from datetime import datetime, timezone
from pathlib import Path

from dotenv import load_dotenv

from errors import ConfigurationError, InvalidScheduleError

PROJECT_ROOT = Path(__file__).resolve().parent
load_dotenv(PROJECT_ROOT / ".env")

# --- Graph API ---

GRAPH_BASE = "https://graph.facebook.com"
GRAPH_VERSION = "v21.0"
GRAPH_TIMEOUT = float(os.environ.get("GRAPH_TIMEOUT", "30"))

USER_TOKEN_ENV = "FACEBOOK_ACCESS_TOKEN"
PAGE_ID_ENV = "FB_PAGE_ID"
REQUIRED_ENV = (USER_TOKEN_ENV, PAGE_ID_ENV)

PLATFORMS = ("facebook", "instagram")

# --- Store and scheduler ---

STORE_SEED_PATH = os.environ.get("STORE_SEED_PATH", "")
STORE_STATE_PATH = os.environ.get("STORE_STATE_PATH", "")
SCHEDULER_INTERVAL = float(os.environ.get("SCHEDULER_INTERVAL", "30"))


def require_env(name: str) -> str:
    """Return a non-empty environment value or raise ConfigurationError."""
    value = os.environ.get(name, "").strip()
    if not value:
        raise ConfigurationError(f"Environment variable {name} is not set")
    return value


def missing_env(names: tuple[str, ...] = REQUIRED_ENV) -> list[str]:
    return [name for name in names if not os.environ.get(name)]


def parse_schedule(value: str | None, now: float | None = None) -> int | None:
    """Parse an ISO timestamp into unix seconds, requiring it to be in the future.

    Empty values mean "publish now" and return None. Naive timestamps are
    read as UTC.
    """
    if not value:
        return None
    try:
        moment = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise InvalidScheduleError(f"Invalid schedule time: {value}") from None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)

    ts = moment.timestamp()
    current = time.time() if now is None else now
    if ts <= current:
        raise InvalidScheduleError("Schedule time must be in the future")
    return int(ts)
