"""JSON persistence for vehicle snapshots and the address cache.

Layout below the data directory::

    vehicles/<VIN>.json   one VehicleSnapshot per vehicle
    geocache.json         all cached addresses

Files are written to a temporary sibling first and then atomically
replaced, so a crash never leaves a half-written snapshot behind.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from cartrack.config import TrackerConfig
from cartrack.exceptions import CarTrackConfigError, StoreError
from cartrack.geo.grid import GeoGridCache
from cartrack.geo.resolver import ResolveAddress
from cartrack.models._base import utcnow
from cartrack.models.address import GeoGridEntry
from cartrack.tracker import Fleet, VehicleSnapshot, VehicleTracker

_logger = logging.getLogger(__name__)

_ENTRIES = TypeAdapter(list[GeoGridEntry])
_SAFE_VIN = re.compile(r"^[A-Za-z0-9_-]+$")


def _write_atomic(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_bytes(data)
        tmp.replace(path)
    except OSError as exc:
        raise StoreError(f"Cannot write {path}: {exc}") from exc


def _read(path: Path) -> bytes | None:
    if not path.exists():
        return None
    try:
        return path.read_bytes()
    except OSError as exc:
        raise StoreError(f"Cannot read {path}: {exc}") from exc


class JsonStore:
    """Directory-backed store for a :class:`Fleet`."""

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    @classmethod
    def from_config(cls, config: TrackerConfig) -> JsonStore:
        if not config.data_dir:
            raise CarTrackConfigError("No data directory configured (set CARTRACK_DATA_DIR)")
        return cls(config.data_dir)

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def cache_path(self) -> Path:
        return self._directory / "geocache.json"

    def vehicle_path(self, vin: str) -> Path:
        if not _SAFE_VIN.match(vin):
            raise StoreError(f"VIN cannot be used as a file name: {vin!r}")
        return self._directory / "vehicles" / f"{vin}.json"

    # ------------------------------------------------------------------
    # Vehicles
    # ------------------------------------------------------------------

    def save_vehicle(self, tracker: VehicleTracker) -> None:
        path = self.vehicle_path(tracker.vin)
        _write_atomic(path, tracker.snapshot().model_dump_json(indent=1).encode("utf-8"))
        _logger.debug("Saved %s", path)

    def load_vehicle(self, vin: str) -> VehicleSnapshot | None:
        path = self.vehicle_path(vin)
        data = _read(path)
        if data is None:
            return None
        try:
            return VehicleSnapshot.model_validate_json(data)
        except ValidationError as exc:
            raise StoreError(f"Corrupted vehicle snapshot {path}: {exc}") from exc

    def stored_vins(self) -> list[str]:
        vehicles_dir = self._directory / "vehicles"
        if not vehicles_dir.is_dir():
            return []
        return sorted(path.stem for path in vehicles_dir.glob("*.json"))

    # ------------------------------------------------------------------
    # Address cache
    # ------------------------------------------------------------------

    def save_cache(self, cache: GeoGridCache) -> None:
        _write_atomic(self.cache_path, _ENTRIES.dump_json(cache.entries(), indent=1))

    def load_cache(self) -> GeoGridCache:
        data = _read(self.cache_path)
        if data is None:
            return GeoGridCache()
        try:
            entries = _ENTRIES.validate_json(data)
        except ValidationError as exc:
            raise StoreError(f"Corrupted address cache {self.cache_path}: {exc}") from exc
        return GeoGridCache.from_entries(entries)

    # ------------------------------------------------------------------
    # Fleet
    # ------------------------------------------------------------------

    def save_fleet(self, fleet: Fleet) -> None:
        for tracker in fleet:
            self.save_vehicle(tracker)
        self.save_cache(fleet.cache)

    def load_fleet(
        self,
        config: TrackerConfig,
        *,
        resolve_address: ResolveAddress | None = None,
        clock: Callable[[], datetime] = utcnow,
        logger: logging.Logger | None = None,
    ) -> Fleet:
        fleet = Fleet(
            config,
            resolve_address=resolve_address,
            cache=self.load_cache(),
            clock=clock,
            logger=logger,
        )
        for vin in self.stored_vins():
            snapshot = self.load_vehicle(vin)
            if snapshot is not None:
                fleet.restore(snapshot)
        _logger.info("Loaded %d vehicles and %d cached addresses", len(fleet), len(fleet.cache))
        return fleet
