"""Episode records: rides and charging sessions.

Episodes are created once by the segmenter, optionally enriched with
addresses before they are recorded, and never modified afterwards.
"""

from __future__ import annotations

from datetime import timedelta

from pydantic import Field, model_validator

from cartrack.models._base import AwareDatetime, CarTrackBaseModel
from cartrack.models.address import GeoGridEntry
from cartrack.models.telemetry import ChargingMode, GeoPosition


def format_duration(seconds: float) -> str:
    """Format a number of seconds as ``H:MM:SS``."""
    secs = int(seconds)
    mins, s = divmod(secs, 60)
    h, m = divmod(mins, 60)
    return f"{h}:{m:02d}:{s:02d}"


class Ride(CarTrackBaseModel):
    """A driving trip between two confirmed boundaries."""

    started_at: AwareDatetime
    ended_at: AwareDatetime
    start_odometer_km: int = Field(..., ge=0)
    end_odometer_km: int = Field(..., ge=0)
    start_soc: int = Field(..., ge=0, le=100)
    end_soc: int = Field(..., ge=0, le=100)
    start_position: GeoPosition | None = None
    end_position: GeoPosition | None = None
    start_temperature_c: float | None = None
    end_temperature_c: float | None = None
    energy_consumed_kwh: float = Field(..., ge=0.0)
    start_address: GeoGridEntry | None = None
    end_address: GeoGridEntry | None = None

    @model_validator(mode="after")
    def _check_order(self) -> Ride:
        if self.ended_at < self.started_at:
            raise ValueError("ride ends before it starts")
        if self.start_soc < self.end_soc:
            raise ValueError("ride start_soc must not be below end_soc")
        return self

    @property
    def distance_km(self) -> int:
        return self.end_odometer_km - self.start_odometer_km

    @property
    def duration(self) -> timedelta:
        return self.ended_at - self.started_at


class Charge(CarTrackBaseModel):
    """A charging session, observed directly or inferred from a SoC increase."""

    started_at: AwareDatetime
    ended_at: AwareDatetime
    start_soc: int = Field(..., ge=0, le=100)
    end_soc: int = Field(..., ge=0, le=100)
    energy_added_kwh: float = Field(..., ge=0.0)
    mode: ChargingMode
    position: GeoPosition | None = None
    address: GeoGridEntry | None = None
    odometer_km: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_fields(self) -> Charge:
        if self.ended_at < self.started_at:
            raise ValueError("charge ends before it starts")
        if self.mode == ChargingMode.OFF:
            raise ValueError("charge mode must be ac or dc")
        return self

    @property
    def duration(self) -> timedelta:
        return self.ended_at - self.started_at


Episode = Ride | Charge
