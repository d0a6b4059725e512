"""Grid-indexed cache of reverse-geocoded addresses.

Entries are bucketed into 0.1 degree latitude/longitude cells. A lookup
only scans the 3x3 block of cells around the query point, so the cost
stays bounded by the local density of entries instead of growing with
the whole cache.
"""

from __future__ import annotations

import math
import threading
from collections.abc import Iterable, Iterator

from cartrack._constants import GRID_CELLS_PER_DEGREE
from cartrack.exceptions import OutOfRangeError
from cartrack.geo.distance import fcc_distance_m
from cartrack.models.address import GeoGridEntry


def cell_index(degrees: float) -> int:
    """Grid cell index of a latitude or longitude."""
    return math.floor(degrees * GRID_CELLS_PER_DEGREE)


class GeoGridCache:
    """Two-level ``lat cell -> lon cell -> entries`` index.

    The cache can be shared by trackers of several vehicles; ``insert`` and
    ``lookup`` are serialized by an internal lock.
    """

    def __init__(self) -> None:
        self._by_latitude: dict[int, dict[int, list[GeoGridEntry]]] = {}
        self._size = 0
        self._lock = threading.RLock()

    @classmethod
    def from_entries(cls, entries: Iterable[GeoGridEntry]) -> GeoGridCache:
        cache = cls()
        for entry in entries:
            cache.insert(entry)
        return cache

    def insert(self, entry: GeoGridEntry) -> None:
        """Add *entry* to its cell. Nearby duplicates are simply appended."""
        lat_idx = cell_index(entry.latitude)
        lon_idx = cell_index(entry.longitude)
        with self._lock:
            lat_row = self._by_latitude.setdefault(lat_idx, {})
            lat_row.setdefault(lon_idx, []).append(entry)
            self._size += 1

    def lookup(self, latitude: float, longitude: float, max_distance_m: float) -> GeoGridEntry | None:
        """Return the entry closest to the given point within *max_distance_m*.

        On equal distances the entry found first is kept.

        Raises
        ------
        OutOfRangeError
            If the coordinates are not valid degrees.
        """
        if not -90.0 <= latitude <= 90.0:
            raise OutOfRangeError(f"latitude out of range: {latitude}", field="latitude", value=latitude)
        if not -180.0 <= longitude <= 180.0:
            raise OutOfRangeError(f"longitude out of range: {longitude}", field="longitude", value=longitude)

        lat_idx = cell_index(latitude)
        lon_idx = cell_index(longitude)

        closest: GeoGridEntry | None = None
        closest_distance = 0.0
        with self._lock:
            for lati in range(lat_idx - 1, lat_idx + 2):
                lat_row = self._by_latitude.get(lati)
                if lat_row is None:
                    continue
                for loni in range(lon_idx - 1, lon_idx + 2):
                    for entry in lat_row.get(loni, ()):
                        distance = fcc_distance_m(latitude, longitude, entry.latitude, entry.longitude)
                        if distance <= max_distance_m and (closest is None or distance < closest_distance):
                            closest = entry
                            closest_distance = distance
        return closest

    def cell_count(self) -> int:
        """Number of non-empty grid cells."""
        with self._lock:
            return sum(len(lat_row) for lat_row in self._by_latitude.values())

    def entries(self) -> list[GeoGridEntry]:
        with self._lock:
            return [entry for lat_row in self._by_latitude.values() for cell in lat_row.values() for entry in cell]

    def __iter__(self) -> Iterator[GeoGridEntry]:
        return iter(self.entries())

    def __len__(self) -> int:
        return self._size
