"""Cache-first address resolution.

The resolver asks the grid cache first and only falls back to the live
reverse geocoder on a miss. Successful live results are inserted into the
cache so the next episode in the same neighbourhood is served locally.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable

from cartrack._constants import DEFAULT_GEOCODE_RADIUS_M
from cartrack.exceptions import GeocodeUnavailable
from cartrack.geo.grid import GeoGridCache
from cartrack.models.address import GeoGridEntry
from cartrack.models.telemetry import GeoPosition

_logger = logging.getLogger(__name__)

ResolveAddress = Callable[[float, float], GeoGridEntry | Awaitable[GeoGridEntry]]
"""Live reverse geocoder: ``(latitude, longitude) -> GeoGridEntry``, sync or async.

Must raise :class:`GeocodeUnavailable` when no address can be produced.
"""


class AddressResolver:
    """Resolve positions to addresses through a :class:`GeoGridCache`."""

    def __init__(
        self,
        cache: GeoGridCache,
        resolve_address: ResolveAddress | None = None,
        *,
        max_distance_m: float = DEFAULT_GEOCODE_RADIUS_M,
    ) -> None:
        self._cache = cache
        self._resolve_address = resolve_address
        self._max_distance_m = max_distance_m
        self.cache_hits = 0
        self.live_requests = 0

    @property
    def cache(self) -> GeoGridCache:
        return self._cache

    async def resolve(self, position: GeoPosition | None) -> GeoGridEntry | None:
        """Return the address of *position*, or ``None`` if it cannot be resolved."""
        if position is None:
            return None

        cached = self._cache.lookup(position.latitude, position.longitude, self._max_distance_m)
        if cached is not None:
            self.cache_hits += 1
            return cached

        if self._resolve_address is None:
            return None

        self.live_requests += 1
        try:
            result = self._resolve_address(position.latitude, position.longitude)
            if inspect.isawaitable(result):
                result = await result
        except GeocodeUnavailable as exc:
            _logger.warning("Reverse geocoding of %.6f,%.6f failed: %s", position.latitude, position.longitude, exc)
            return None

        self._cache.insert(result)
        return result
