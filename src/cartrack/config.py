"""Tracker configuration for cartrack."""

from __future__ import annotations

import dataclasses
import math
import os
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from cartrack._constants import DEFAULT_GEOCODE_RADIUS_M, NOMINATIM_URL, USER_AGENT
from cartrack.exceptions import CarTrackConfigError


def _env_float(name: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise CarTrackConfigError(f"{name} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class TrackerConfig:
    """Tracker configuration.

    Parameters
    ----------
    battery_capacity_kwh : float
        Usable battery capacity. SoC deltas are converted to energy with
        ``battery_capacity_kwh * soc_percent / 100``.
    geocode_radius_m : float
        Radius in meters within which a cached address is reused.
    time_zone : str
        IANA time zone whose wall-clock hour selects the poll backoff ceiling.
    nominatim_url : str
        Reverse geocoding endpoint.
    user_agent : str
        ``User-Agent`` sent to the geocoding service.
    accept_language : str
        Preferred language of resolved addresses.
    geocode_min_interval : float
        Minimum number of seconds between two live geocoding requests.
    geocode_timeout : float
        Total timeout of one geocoding request in seconds.
    data_dir : str or None
        Directory for the JSON store. ``None`` keeps everything in memory.
    """

    battery_capacity_kwh: float
    geocode_radius_m: float = DEFAULT_GEOCODE_RADIUS_M
    time_zone: str = "Europe/Berlin"
    nominatim_url: str = NOMINATIM_URL
    user_agent: str = USER_AGENT
    accept_language: str = "en"
    geocode_min_interval: float = 1.0
    geocode_timeout: float = 20.0
    data_dir: str | None = None

    def __post_init__(self) -> None:
        capacity = self.battery_capacity_kwh
        if capacity is None or isinstance(capacity, bool) or not isinstance(capacity, (int, float)):
            raise CarTrackConfigError(f"battery_capacity_kwh must be a number, got {capacity!r}")
        if not math.isfinite(capacity) or capacity <= 0:
            raise CarTrackConfigError(f"battery_capacity_kwh must be positive, got {capacity}")
        if self.geocode_radius_m < 0:
            raise CarTrackConfigError(f"geocode_radius_m must not be negative, got {self.geocode_radius_m}")
        try:
            ZoneInfo(self.time_zone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise CarTrackConfigError(f"Unknown time zone: {self.time_zone!r}") from exc

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.time_zone)

    @classmethod
    def from_env(cls, **overrides: Any) -> TrackerConfig:
        """Create configuration from environment variables.

        Reads ``CARTRACK_BATTERY_CAPACITY_KWH`` and optional ``CARTRACK_*``
        variables. Explicit keyword arguments override environment values.

        Raises
        ------
        CarTrackConfigError
            If the battery capacity is neither set in the environment nor
            passed explicitly, or any value is invalid.
        """
        env = os.environ

        _ENV_FLOAT_MAP = {
            "CARTRACK_BATTERY_CAPACITY_KWH": "battery_capacity_kwh",
            "CARTRACK_GEOCODE_RADIUS_M": "geocode_radius_m",
            "CARTRACK_GEOCODE_MIN_INTERVAL": "geocode_min_interval",
            "CARTRACK_GEOCODE_TIMEOUT": "geocode_timeout",
        }
        _ENV_STR_MAP = {
            "CARTRACK_TIME_ZONE": "time_zone",
            "CARTRACK_NOMINATIM_URL": "nominatim_url",
            "CARTRACK_USER_AGENT": "user_agent",
            "CARTRACK_ACCEPT_LANGUAGE": "accept_language",
            "CARTRACK_DATA_DIR": "data_dir",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_float(env_key, val)
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        config_kwargs.update(overrides)

        if "battery_capacity_kwh" not in config_kwargs:
            raise CarTrackConfigError("Battery capacity not configured (set CARTRACK_BATTERY_CAPACITY_KWH)")

        return cls(**config_kwargs)
