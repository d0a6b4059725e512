"""cartrack - Turn sparse EV telemetry polls into rides and charging sessions."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("cartrack")
except PackageNotFoundError:
    __version__ = "0+local"

from cartrack.config import TrackerConfig
from cartrack.exceptions import (
    CarTrackConfigError,
    CarTrackError,
    GeocodeResponseError,
    GeocodeTransportError,
    GeocodeUnavailable,
    OutOfRangeError,
    StoreError,
)
from cartrack.geo import AddressResolver, GeoGridCache, fcc_distance_m
from cartrack.geocode import NominatimGeocoder
from cartrack.models import (
    Charge,
    ChargingMode,
    Episode,
    GeoGridEntry,
    GeoPosition,
    PollState,
    Ride,
    TelemetrySample,
    VehicleState,
)
from cartrack.scheduler import PollScheduler
from cartrack.segmenter import EpisodeSegmenter
from cartrack.store import JsonStore
from cartrack.tracker import Fleet, TelemetryLog, VehicleSnapshot, VehicleTracker

__all__ = [
    "__version__",
    "AddressResolver",
    "CarTrackConfigError",
    "CarTrackError",
    "Charge",
    "ChargingMode",
    "Episode",
    "EpisodeSegmenter",
    "Fleet",
    "GeoGridCache",
    "GeoGridEntry",
    "GeoPosition",
    "GeocodeResponseError",
    "GeocodeTransportError",
    "GeocodeUnavailable",
    "JsonStore",
    "NominatimGeocoder",
    "OutOfRangeError",
    "PollScheduler",
    "PollState",
    "Ride",
    "StoreError",
    "TelemetryLog",
    "TelemetrySample",
    "TrackerConfig",
    "VehicleSnapshot",
    "VehicleState",
    "VehicleTracker",
    "fcc_distance_m",
]
