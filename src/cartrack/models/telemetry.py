"""Telemetry sample model.

One :class:`TelemetrySample` is recorded per poll. Its :meth:`~TelemetrySample.state`
is derived on demand from the charging mode and the parking brake and is
the only input the episode segmenter classifies on.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import Field, field_validator, model_validator

from cartrack._constants import (
    MAX_CHARGING_POWER_W,
    MAX_ODOMETER_KM,
    MAX_OUTSIDE_TEMP_C,
    MAX_RANGE_KM,
    MAX_SPEED_KMH,
    MIN_OUTSIDE_TEMP_C,
)
from cartrack.models._base import AwareDatetime, CarTrackBaseModel, utcnow


class ChargingMode(StrEnum):
    OFF = "off"
    AC = "ac"
    DC = "dc"


class VehicleState(StrEnum):
    """Instantaneous classification of a sample."""

    DRIVING = "driving"
    PARKING = "parking"
    CHARGING_AC = "charging_ac"
    CHARGING_DC = "charging_dc"

    @property
    def is_charging(self) -> bool:
        return self in (VehicleState.CHARGING_AC, VehicleState.CHARGING_DC)


class GeoPosition(CarTrackBaseModel):
    """A point on the map in degrees."""

    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)


class TelemetrySample(CarTrackBaseModel):
    """A single polled snapshot of the vehicle.

    Range checks are the producer's contract: a sample that fails them
    raises :class:`pydantic.ValidationError` and never enters a log.
    """

    captured_at: AwareDatetime = Field(default_factory=utcnow)
    """When the sample was received by this process."""
    vehicle_contact_at: AwareDatetime | None = None
    """When the vehicle itself last reported data."""
    odometer_km: int = Field(..., ge=0, le=MAX_ODOMETER_KM)
    soc_percent: int = Field(..., ge=0, le=100)
    """State of charge (0-100 percent)."""
    charging_mode: ChargingMode = ChargingMode.OFF
    parking_brake_active: bool = False
    latitude: float | None = Field(default=None, ge=-90.0, le=90.0)
    longitude: float | None = Field(default=None, ge=-180.0, le=180.0)

    # --- Optional readings, carried along but not segmented on ---
    speed_kmh: int | None = Field(default=None, ge=0, le=MAX_SPEED_KMH)
    outside_temperature_c: float | None = Field(default=None, ge=MIN_OUTSIDE_TEMP_C, le=MAX_OUTSIDE_TEMP_C)
    range_km: int | None = Field(default=None, ge=0, le=MAX_RANGE_KM)
    charging_power_w: int | None = Field(default=None, ge=0, le=MAX_CHARGING_POWER_W)

    @field_validator("charging_mode", mode="before")
    @classmethod
    def _normalize_charging_mode(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("vehicle_contact_at", mode="before")
    @classmethod
    def _empty_contact_time(cls, value: Any) -> Any:
        if value == "":
            return None
        return value

    @model_validator(mode="after")
    def _position_complete(self) -> TelemetrySample:
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be given together")
        return self

    def state(self) -> VehicleState:
        """Classify the sample.

        Charging wins over the parking brake; a released brake without
        charging means the vehicle is driving.
        """
        if self.charging_mode == ChargingMode.AC:
            return VehicleState.CHARGING_AC
        if self.charging_mode == ChargingMode.DC:
            return VehicleState.CHARGING_DC
        if self.parking_brake_active:
            return VehicleState.PARKING
        return VehicleState.DRIVING

    @property
    def observed_at(self) -> datetime:
        """Best available timestamp: vehicle contact time, else capture time."""
        return self.vehicle_contact_at or self.captured_at

    @property
    def position(self) -> GeoPosition | None:
        if self.latitude is None or self.longitude is None:
            return None
        return GeoPosition(latitude=self.latitude, longitude=self.longitude)

    def same_readings(self, other: TelemetrySample) -> bool:
        """Whether *other* reports exactly the same vehicle data.

        The capture time is ignored: two polls that hit the same vehicle
        report compare equal.
        """
        return self.model_dump(exclude={"captured_at"}) == other.model_dump(exclude={"captured_at"})
