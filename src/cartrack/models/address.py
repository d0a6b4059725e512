"""Resolved address model.

A :class:`GeoGridEntry` is what the reverse geocoder produces and what the
grid cache stores. Entries are created once and only read afterwards.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from pydantic import Field

from cartrack.exceptions import GeocodeResponseError
from cartrack.ingestion.normalize import safe_float, safe_str
from cartrack.models._base import CarTrackBaseModel


class GeoGridEntry(CarTrackBaseModel):
    """An address resolved for a point on the map."""

    latitude: float = Field(..., ge=-90.0, le=90.0)
    """Latitude in degrees."""
    longitude: float = Field(..., ge=-180.0, le=180.0)
    """Longitude in degrees."""
    country: str = ""
    city: str = ""
    street: str = ""
    house_number: str = ""
    postal_code: str = ""

    @property
    def label(self) -> str:
        """Single-line human readable form, e.g. ``"Hauptstr. 5, 80331 München"``."""
        street = " ".join(part for part in (self.street, self.house_number) if part)
        place = " ".join(part for part in (self.postal_code, self.city) if part)
        return ", ".join(part for part in (street, place) if part)

    @classmethod
    def from_nominatim(cls, payload: Mapping[str, Any] | str | bytes) -> GeoGridEntry:
        """Build an entry from a Nominatim ``/reverse`` response.

        Nominatim responses look like::

            {"lat": "51.4510296", "lon": "11.3051494",
             "display_name": "...",
             "address": {"road": "A 38", "town": "Sangerhausen",
                         "postcode": "06526", "country": "Deutschland", ...}}

        Raises
        ------
        GeocodeResponseError
            If the payload is not JSON, lacks coordinates or an address,
            or its coordinates are out of range.
        """
        if isinstance(payload, (str, bytes)):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as exc:
                raise GeocodeResponseError(f"Cannot parse Nominatim response: {exc}") from exc
        if not isinstance(payload, Mapping):
            raise GeocodeResponseError(f"Nominatim response is not an object: {payload!r}")

        if "error" in payload:
            raise GeocodeResponseError(f"Nominatim error: {payload['error']}")

        latitude = safe_float(payload.get("lat"))
        if latitude is None:
            raise GeocodeResponseError(f"Nominatim response does not contain a latitude: {payload!r}")
        if not -90.0 <= latitude <= 90.0:
            raise GeocodeResponseError(f"Nominatim latitude is out of range: {latitude}")

        longitude = safe_float(payload.get("lon"))
        if longitude is None:
            raise GeocodeResponseError(f"Nominatim response does not contain a longitude: {payload!r}")
        if not -180.0 <= longitude <= 180.0:
            raise GeocodeResponseError(f"Nominatim longitude is out of range: {longitude}")

        address = payload.get("address")
        if not isinstance(address, Mapping):
            raise GeocodeResponseError(f"Nominatim response does not contain an address: {payload!r}")

        return cls(
            latitude=latitude,
            longitude=longitude,
            country=safe_str(address.get("country")) or "",
            city=safe_str(address.get("city") or address.get("town") or address.get("village")) or "",
            street=safe_str(address.get("road")) or "",
            house_number=safe_str(address.get("house_number") or address.get("number")) or "",
            postal_code=safe_str(address.get("postcode")) or "",
        )
