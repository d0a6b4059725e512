"""Normalization helpers.

Centralizes defensive parsing of producer readings before they are
validated into samples.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any

from cartrack._constants import GPS_INVALID_MICRODEGREES


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or value == "--":
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def normalize_timestamp(value: Any) -> datetime | None:
    """Normalize an epoch timestamp (seconds or milliseconds) or ISO string to a UTC datetime.

    - Empty/missing -> None
    - <= 0 -> None
    - Milliseconds (> 1e11) -> seconds
    """

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    ts = safe_float(value)
    if ts is None or ts <= 0:
        return None
    if ts > 1e11:
        ts /= 1000.0
    return datetime.fromtimestamp(ts, tz=UTC)


def position_from_microdegrees(latitude: Any, longitude: Any) -> tuple[float, float] | None:
    """Convert a fixed-point (micro-degree) position to degrees.

    Returns ``None`` when either coordinate is missing or carries the
    "GPS fix not transferred" sentinel. Range checks are left to the
    sample model.
    """

    lat = safe_int(latitude)
    lon = safe_int(longitude)
    if lat is None or lon is None:
        return None
    if GPS_INVALID_MICRODEGREES in (lat, lon):
        return None
    return lat / 1_000_000.0, lon / 1_000_000.0
