"""Data models for telemetry samples, episodes and addresses."""

from cartrack.models._base import AwareDatetime, CarTrackBaseModel
from cartrack.models.address import GeoGridEntry
from cartrack.models.episodes import Charge, Episode, Ride, format_duration
from cartrack.models.poll import PollState
from cartrack.models.telemetry import ChargingMode, GeoPosition, TelemetrySample, VehicleState

__all__ = [
    "AwareDatetime",
    "CarTrackBaseModel",
    "Charge",
    "ChargingMode",
    "Episode",
    "GeoGridEntry",
    "GeoPosition",
    "PollState",
    "Ride",
    "TelemetrySample",
    "VehicleState",
    "format_duration",
]
