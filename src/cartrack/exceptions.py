"""Custom exception hierarchy for cartrack."""

from __future__ import annotations


class CarTrackError(Exception):
    """Base exception for all cartrack errors."""


class CarTrackConfigError(CarTrackError):
    """Invalid or missing configuration."""


class OutOfRangeError(CarTrackError, ValueError):
    """A coordinate handed to the grid cache is outside its valid range."""

    def __init__(self, message: str, *, field: str = "", value: float | None = None) -> None:
        self.field = field
        self.value = value
        super().__init__(message)


class GeocodeUnavailable(CarTrackError):
    """Reverse geocoding could not produce an address.

    Address enrichment is best-effort: episodes are still recorded,
    only without address fields.
    """


class GeocodeTransportError(GeocodeUnavailable):
    """HTTP-level failure (network, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str = "",
    ) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class GeocodeResponseError(GeocodeUnavailable):
    """The geocoding service answered, but not with a usable address."""


class StoreError(CarTrackError):
    """A persisted snapshot cannot be read or written."""
