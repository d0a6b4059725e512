"""Live reverse geocoding through OpenStreetMap Nominatim.

Nominatim's usage policy asks for at most one request per second and a
descriptive ``User-Agent``; :class:`NominatimGeocoder` enforces both.
It is only called on grid cache misses (see :class:`cartrack.geo.AddressResolver`).
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

import aiohttp

from cartrack.config import TrackerConfig
from cartrack.exceptions import GeocodeTransportError
from cartrack.models.address import GeoGridEntry

_logger = logging.getLogger(__name__)


class NominatimGeocoder:
    """Async reverse geocoder.

    Usage::

        async with NominatimGeocoder(config) as geocoder:
            entry = await geocoder(48.1205901, 11.5138059)
    """

    def __init__(
        self,
        config: TrackerConfig,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._throttle = asyncio.Lock()
        self._last_request_at: float | None = None

    async def __aenter__(self) -> NominatimGeocoder:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.geocode_timeout),
            )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
        self._http_session = None

    async def __call__(self, latitude: float, longitude: float) -> GeoGridEntry:
        return await self.reverse(latitude, longitude)

    async def _wait_for_slot(self) -> None:
        """Sleep until the minimum request interval has passed. Caller holds the throttle lock."""
        if self._last_request_at is not None:
            wait = self._config.geocode_min_interval - (time.monotonic() - self._last_request_at)
            if wait > 0:
                await asyncio.sleep(wait)
        self._last_request_at = time.monotonic()

    async def reverse(self, latitude: float, longitude: float) -> GeoGridEntry:
        """Resolve a position to an address.

        Raises
        ------
        GeocodeTransportError
            On network errors, non-200 responses or invalid JSON.
        GeocodeResponseError
            If the response does not describe an address.
        """
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.geocode_timeout),
            )

        url = self._config.nominatim_url
        params = {
            "format": "jsonv2",
            "lat": f"{latitude:.7f}",
            "lon": f"{longitude:.7f}",
            "zoom": "18",
            "addressdetails": "1",
            "accept-language": self._config.accept_language,
        }
        headers = {
            "accept": "application/json",
            "user-agent": self._config.user_agent,
        }

        async with self._throttle:
            await self._wait_for_slot()
            _logger.debug("GET %s lat=%s lon=%s", url, params["lat"], params["lon"])
            try:
                async with self._http_session.get(url, params=params, headers=headers) as resp:
                    try:
                        text = await resp.text()
                    except (UnicodeDecodeError, LookupError) as exc:
                        raise GeocodeTransportError(
                            f"Undecodable response from {url}: {exc}",
                            status_code=resp.status,
                            url=url,
                        ) from exc
                    if resp.status != 200:
                        raise GeocodeTransportError(
                            f"HTTP {resp.status} from {url}: {text[:200]}",
                            status_code=resp.status,
                            url=url,
                        )
            except GeocodeTransportError:
                raise
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                raise GeocodeTransportError(f"Request to {url} failed: {exc}", url=url) from exc

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise GeocodeTransportError(f"Invalid JSON from {url}: {text[:200]}", url=url) from exc

        return GeoGridEntry.from_nominatim(payload)
