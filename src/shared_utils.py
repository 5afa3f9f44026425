#!/usr/bin/env python3
"""
Shared utilities for the santa-tracker backend.

Environment helpers, data-directory resolution, and the timestamp/number
formatting shared by the route builder, the CSV patchers and the API server.
"""

from __future__ import annotations

import math
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

ROOT = Path(__file__).resolve().parents[1]

# Serialized form of every timestamp column in a route table.
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_LIVE_FLIGHT_FILE = "2025_santa_tracker.csv"

# ---------------------------------------------------------------------------
# Environment helpers
# ---------------------------------------------------------------------------

def env_bool(name: str, default: bool) -> bool:
    """Read a boolean from an environment variable."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return raw.lower() in {"1", "true", "yes", "y", "on"}


def env_int(name: str, default: int) -> int:
    """Read an int from an environment variable."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_list(name: str, default: str) -> List[str]:
    """Read a comma-separated list from an environment variable.

    Case is preserved (file names are case-sensitive); duplicates are dropped.
    """
    raw = (os.getenv(name, default) or default).strip()
    if not raw:
        return []
    seen: set[str] = set()
    out: List[str] = []
    for token in raw.split(","):
        value = token.strip()
        if not value or value in seen:
            continue
        seen.add(value)
        out.append(value)
    return out


def data_dir() -> Path:
    """Directory holding the published route CSV files."""
    raw = os.getenv("ROUTE_DATA_DIR", "").strip()
    return Path(raw) if raw else ROOT / "public"


def live_flight_file() -> str:
    return os.getenv("LIVE_FLIGHT_FILE", DEFAULT_LIVE_FLIGHT_FILE).strip() or DEFAULT_LIVE_FLIGHT_FILE


def allowed_data_files() -> List[str]:
    """Route files the HTTP layer may read or rewrite."""
    return env_list("WEATHER_ALLOWED_FILES", live_flight_file())


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------

def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return value.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(raw: str) -> datetime:
    """Parse a serialized route timestamp as a UTC-aware datetime."""
    return datetime.strptime(raw.strip(), TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def epoch_millis(value: datetime) -> int:
    return int(as_utc(value).timestamp() * 1000)


# ---------------------------------------------------------------------------
# Number helpers
# ---------------------------------------------------------------------------

def format_number(value: Optional[float]) -> str:
    """Render a number the way the route CSV stores it.

    Integral values drop the trailing ``.0`` (``14.0`` -> ``14``); ``None``
    renders as an empty field.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        raise TypeError("boolean is not a route number")
    if isinstance(value, int):
        return str(value)
    if math.isfinite(value) and value == int(value):
        return str(int(value))
    return repr(float(value))


def parse_optional_float(raw: str) -> Optional[float]:
    value = (raw or "").strip()
    if not value:
        return None
    return float(value)


def parse_optional_int(raw: str) -> Optional[int]:
    value = (raw or "").strip()
    if not value:
        return None
    return int(float(value))
