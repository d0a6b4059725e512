"""Per-vehicle tracking and the fleet facade.

A :class:`VehicleTracker` owns one vehicle's append-only sample log, the
rides and charges derived from it and its poll schedule. A :class:`Fleet`
maps VINs to trackers that share one address cache.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from datetime import datetime
from typing import overload

from pydantic import BaseModel, ConfigDict, Field

from cartrack.config import TrackerConfig
from cartrack.geo.grid import GeoGridCache
from cartrack.geo.resolver import AddressResolver, ResolveAddress
from cartrack.models._base import utcnow
from cartrack.models.episodes import Charge, Episode, Ride
from cartrack.models.poll import PollState
from cartrack.models.telemetry import TelemetrySample
from cartrack.scheduler import PollScheduler
from cartrack.segmenter import EpisodeSegmenter

_logger = logging.getLogger(__name__)


class TelemetryLog(Sequence[TelemetrySample]):
    """Append-only, arrival-ordered sequence of samples."""

    def __init__(self, samples: Iterable[TelemetrySample] = ()) -> None:
        self._samples: list[TelemetrySample] = list(samples)

    def append(self, sample: TelemetrySample) -> int:
        """Append *sample* and return its index."""
        self._samples.append(sample)
        return len(self._samples) - 1

    @property
    def last(self) -> TelemetrySample | None:
        return self._samples[-1] if self._samples else None

    @overload
    def __getitem__(self, index: int) -> TelemetrySample: ...

    @overload
    def __getitem__(self, index: slice) -> list[TelemetrySample]: ...

    def __getitem__(self, index: int | slice) -> TelemetrySample | list[TelemetrySample]:
        return self._samples[index]

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[TelemetrySample]:
        return iter(self._samples)


class VehicleSnapshot(BaseModel):
    """Everything persisted for one vehicle."""

    model_config = ConfigDict(extra="forbid")

    vin: str
    samples: list[TelemetrySample] = Field(default_factory=list)
    rides: list[Ride] = Field(default_factory=list)
    charges: list[Charge] = Field(default_factory=list)
    poll_state: PollState = Field(default_factory=PollState)


class VehicleTracker:
    """Sample log, episodes and poll schedule of a single vehicle.

    Calls for one tracker must not overlap; trackers of different
    vehicles are independent.
    """

    def __init__(
        self,
        vin: str,
        config: TrackerConfig,
        *,
        resolver: AddressResolver | None = None,
        samples: Iterable[TelemetrySample] = (),
        rides: Iterable[Ride] = (),
        charges: Iterable[Charge] = (),
        poll_state: PollState | None = None,
        clock: Callable[[], datetime] = utcnow,
        logger: logging.Logger | None = None,
    ) -> None:
        self._vin = vin
        self._log = logging.LoggerAdapter(logger if logger is not None else _logger, {"vin": vin})
        self._segmenter = EpisodeSegmenter(config, logger=self._log)
        self._scheduler = PollScheduler(poll_state, time_zone=config.tzinfo, clock=clock)
        self._resolver = resolver
        self._samples = TelemetryLog(samples)
        self._rides: list[Ride] = list(rides)
        self._charges: list[Charge] = list(charges)

    @classmethod
    def from_snapshot(
        cls,
        snapshot: VehicleSnapshot,
        config: TrackerConfig,
        *,
        resolver: AddressResolver | None = None,
        clock: Callable[[], datetime] = utcnow,
        logger: logging.Logger | None = None,
    ) -> VehicleTracker:
        return cls(
            snapshot.vin,
            config,
            resolver=resolver,
            samples=snapshot.samples,
            rides=snapshot.rides,
            charges=snapshot.charges,
            poll_state=snapshot.poll_state,
            clock=clock,
            logger=logger,
        )

    def snapshot(self) -> VehicleSnapshot:
        return VehicleSnapshot(
            vin=self._vin,
            samples=list(self._samples),
            rides=list(self._rides),
            charges=list(self._charges),
            poll_state=self._scheduler.state.model_copy(),
        )

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def vin(self) -> str:
        return self._vin

    @property
    def samples(self) -> TelemetryLog:
        return self._samples

    @property
    def rides(self) -> tuple[Ride, ...]:
        return tuple(self._rides)

    @property
    def charges(self) -> tuple[Charge, ...]:
        return tuple(self._charges)

    @property
    def poll_state(self) -> PollState:
        return self._scheduler.state

    @property
    def next_poll_at(self) -> datetime | None:
        return self._scheduler.next_poll_at

    def may_poll(self, now: datetime | None = None) -> bool:
        return self._scheduler.may_poll(now)

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    async def append_sample(self, sample: TelemetrySample) -> list[Episode]:
        """Record a validated sample and return the episodes it completes."""
        previous = self._samples.last
        self._samples.append(sample)

        emitted: list[Episode] = []
        try:
            episode = self._segmenter.analyze(self._samples)
            if episode is not None:
                emitted.append(await self._record(episode))
        finally:
            # The sample is logged; keep the schedule in step with it.
            if previous is not None and sample.same_readings(previous):
                self._scheduler.on_no_change()
            else:
                self._scheduler.on_state_observed(sample.state())
            self._log.debug("Next poll at %s", self._scheduler.next_poll_at)
        return emitted

    def on_poll_failed(self) -> datetime:
        """Back off after a poll that did not produce a sample."""
        return self._scheduler.on_no_change()

    async def analyze_all(self) -> list[Episode]:
        """Rebuild both episode lists from the complete sample log."""
        self._rides.clear()
        self._charges.clear()
        episodes = [await self._record(episode) for episode in self._segmenter.analyze_all(self._samples)]
        self._log.info("Re-derived %d rides and %d charges", len(self._rides), len(self._charges))
        return episodes

    async def _record(self, episode: Episode) -> Episode:
        try:
            episode = await self._enrich(episode)
        finally:
            # Later samples never re-emit an episode.
            if isinstance(episode, Ride):
                self._rides.append(episode)
            else:
                self._charges.append(episode)
        return episode

    async def _enrich(self, episode: Episode) -> Episode:
        if self._resolver is None:
            return episode
        if isinstance(episode, Ride):
            start_address = await self._resolver.resolve(episode.start_position)
            end_address = await self._resolver.resolve(episode.end_position)
            return episode.model_copy(update={"start_address": start_address, "end_address": end_address})
        address = await self._resolver.resolve(episode.position)
        return episode.model_copy(update={"address": address})


class Fleet:
    """All tracked vehicles, sharing one address cache and geocoder.

    Usage::

        async with NominatimGeocoder(config) as geocoder:
            fleet = Fleet(config, resolve_address=geocoder)
            episodes = await fleet.append_sample(vin, sample)
            wait_until = fleet.next_poll_at(vin)
    """

    def __init__(
        self,
        config: TrackerConfig,
        *,
        resolve_address: ResolveAddress | None = None,
        cache: GeoGridCache | None = None,
        clock: Callable[[], datetime] = utcnow,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._clock = clock
        self._logger = logger
        self._resolver = AddressResolver(
            cache if cache is not None else GeoGridCache(),
            resolve_address,
            max_distance_m=config.geocode_radius_m,
        )
        self._vehicles: dict[str, VehicleTracker] = {}

    @property
    def config(self) -> TrackerConfig:
        return self._config

    @property
    def cache(self) -> GeoGridCache:
        return self._resolver.cache

    @property
    def resolver(self) -> AddressResolver:
        return self._resolver

    def vehicle(self, vin: str) -> VehicleTracker:
        """Tracker for *vin*, created on first use."""
        tracker = self._vehicles.get(vin)
        if tracker is None:
            _logger.info("New vehicle with VIN %s added", vin)
            tracker = VehicleTracker(
                vin,
                self._config,
                resolver=self._resolver,
                clock=self._clock,
                logger=self._logger,
            )
            self._vehicles[vin] = tracker
        return tracker

    def restore(self, snapshot: VehicleSnapshot) -> VehicleTracker:
        """Re-create a tracker from persisted state, replacing any existing one."""
        tracker = VehicleTracker.from_snapshot(
            snapshot,
            self._config,
            resolver=self._resolver,
            clock=self._clock,
            logger=self._logger,
        )
        self._vehicles[snapshot.vin] = tracker
        return tracker

    async def append_sample(self, vin: str, sample: TelemetrySample) -> list[Episode]:
        return await self.vehicle(vin).append_sample(sample)

    def next_poll_at(self, vin: str) -> datetime | None:
        tracker = self._vehicles.get(vin)
        return tracker.next_poll_at if tracker is not None else None

    def may_poll(self, vin: str, now: datetime | None = None) -> bool:
        tracker = self._vehicles.get(vin)
        return tracker is None or tracker.may_poll(now)

    @property
    def vins(self) -> list[str]:
        return list(self._vehicles)

    def __contains__(self, vin: object) -> bool:
        return vin in self._vehicles

    def __iter__(self) -> Iterator[VehicleTracker]:
        return iter(list(self._vehicles.values()))

    def __len__(self) -> int:
        return len(self._vehicles)
