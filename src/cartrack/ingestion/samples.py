"""Producer-side sample construction.

Turns a flat mapping of readings (as delivered by a vendor API adapter)
into a validated :class:`TelemetrySample`. Readings that fail validation
are logged and dropped, so invalid samples never reach a vehicle log.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from cartrack.ingestion.normalize import normalize_timestamp, position_from_microdegrees, safe_float, safe_int
from cartrack.models.telemetry import TelemetrySample

_logger = logging.getLogger(__name__)

_INT_FIELDS = ("odometer_km", "soc_percent", "speed_kmh", "range_km", "charging_power_w")


def _parse_bool(value: Any) -> bool | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    parsed = safe_int(value)
    if parsed is None:
        return None
    return parsed != 0


def build_sample(readings: Mapping[str, Any]) -> TelemetrySample | None:
    """Build a sample from raw readings.

    Positions may be given in degrees (``latitude``/``longitude``) or as
    fixed-point micro-degrees (``latitude_e6``/``longitude_e6``).

    Returns ``None`` (and logs a warning) when the readings are invalid.
    """
    values: dict[str, Any] = {}

    captured_at = normalize_timestamp(readings.get("captured_at"))
    if captured_at is not None:
        values["captured_at"] = captured_at
    values["vehicle_contact_at"] = normalize_timestamp(readings.get("vehicle_contact_at"))

    for name in _INT_FIELDS:
        parsed = safe_int(readings.get(name))
        if parsed is not None:
            values[name] = parsed

    temperature = safe_float(readings.get("outside_temperature_c"))
    if temperature is not None:
        values["outside_temperature_c"] = temperature

    mode = readings.get("charging_mode")
    if mode is not None and mode != "":
        values["charging_mode"] = mode

    brake = _parse_bool(readings.get("parking_brake_active"))
    if brake is not None:
        values["parking_brake_active"] = brake

    if "latitude_e6" in readings or "longitude_e6" in readings:
        position = position_from_microdegrees(readings.get("latitude_e6"), readings.get("longitude_e6"))
    else:
        lat = safe_float(readings.get("latitude"))
        lon = safe_float(readings.get("longitude"))
        position = (lat, lon) if lat is not None and lon is not None else None
    if position is not None:
        values["latitude"], values["longitude"] = position

    try:
        return TelemetrySample.model_validate(values)
    except ValidationError as exc:
        _logger.warning("Dropping invalid telemetry readings: %s", exc.errors(include_url=False))
        return None
