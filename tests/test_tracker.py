"""Tests for VehicleTracker and Fleet."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

import pytest

from cartrack.config import TrackerConfig
from cartrack.exceptions import GeocodeTransportError
from cartrack.geo import AddressResolver, GeoGridCache
from cartrack.models import Charge, GeoGridEntry, GeoPosition, Ride, TelemetrySample
from cartrack.tracker import Fleet, TelemetryLog, VehicleTracker

T0 = datetime(2026, 1, 15, 8, 0, tzinfo=UTC)
VIN = "LGXC16DF0P0000001"

HOME = (48.1200, 11.5140)
OFFICE = (48.1770, 11.5560)


class _Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class _FakeGeocoder:
    """Synchronous geocoder that records every live request."""

    def __init__(self) -> None:
        self.calls: list[tuple[float, float]] = []

    def __call__(self, latitude: float, longitude: float) -> GeoGridEntry:
        self.calls.append((latitude, longitude))
        return GeoGridEntry(latitude=latitude, longitude=longitude, city="München", street=f"Street {len(self.calls)}")


class _FailingGeocoder:
    def __init__(self) -> None:
        self.calls = 0

    def __call__(self, latitude: float, longitude: float) -> GeoGridEntry:
        self.calls += 1
        raise GeocodeTransportError("service down", status_code=503)


def _sample(minute: int, *, odo: int, soc: int, at: tuple[float, float], mode: str = "off") -> TelemetrySample:
    return TelemetrySample(
        captured_at=T0 + timedelta(minutes=minute),
        odometer_km=odo,
        soc_percent=soc,
        charging_mode=mode,
        parking_brake_active=True,
        latitude=at[0],
        longitude=at[1],
    )


def _commute() -> list[TelemetrySample]:
    return [
        _sample(0, odo=1000, soc=80, at=HOME),
        _sample(10, odo=1000, soc=80, at=HOME),
        _sample(60, odo=1012, soc=77, at=OFFICE),
        _sample(300, odo=1012, soc=77, at=OFFICE),
        _sample(600, odo=1024, soc=74, at=HOME),
    ]


@pytest.fixture
def config() -> TrackerConfig:
    return TrackerConfig(battery_capacity_kwh=60.0, time_zone="UTC")


@pytest.fixture
def clock() -> _Clock:
    return _Clock(T0)


# ------------------------------------------------------------------
# TelemetryLog
# ------------------------------------------------------------------


def test_telemetry_log_is_append_only_sequence() -> None:
    log = TelemetryLog()
    assert log.last is None

    first = _sample(0, odo=1, soc=50, at=HOME)
    second = _sample(5, odo=1, soc=50, at=HOME)

    assert log.append(first) == 0
    assert log.append(second) == 1
    assert len(log) == 2
    assert log[0] is first
    assert log.last is second
    assert list(log) == [first, second]
    assert log[-1:] == [second]


# ------------------------------------------------------------------
# VehicleTracker
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_episodes_are_enriched_with_addresses(config: TrackerConfig, clock: _Clock) -> None:
    geocoder = _FakeGeocoder()
    resolver = AddressResolver(GeoGridCache(), geocoder)
    tracker = VehicleTracker(VIN, config, resolver=resolver, clock=clock)

    emitted = []
    for sample in _commute():
        emitted.extend(await tracker.append_sample(sample))

    assert len(emitted) == 2
    assert all(isinstance(episode, Ride) for episode in emitted)
    assert tracker.rides == tuple(emitted)
    assert tracker.charges == ()

    outbound, inbound = tracker.rides
    assert outbound.start_address is not None
    assert outbound.end_address is not None
    assert outbound.start_address.street == "Street 1"
    assert outbound.end_address.street == "Street 2"
    # The way back is served from the cache.
    assert inbound.start_address == outbound.end_address
    assert inbound.end_address == outbound.start_address
    assert resolver.live_requests == 2
    assert resolver.cache_hits == 2
    assert len(geocoder.calls) == 2


@pytest.mark.asyncio
async def test_async_geocoder_is_awaited(config: TrackerConfig, clock: _Clock) -> None:
    async def geocode(latitude: float, longitude: float) -> GeoGridEntry:
        return GeoGridEntry(latitude=latitude, longitude=longitude, city="Sangerhausen")

    tracker = VehicleTracker(VIN, config, resolver=AddressResolver(GeoGridCache(), geocode), clock=clock)

    for sample in _commute()[:3]:
        await tracker.append_sample(sample)

    (ride,) = tracker.rides
    assert ride.start_address is not None
    assert ride.start_address.city == "Sangerhausen"


@pytest.mark.asyncio
async def test_geocoder_failure_still_records_episode(
    config: TrackerConfig, clock: _Clock, caplog: pytest.LogCaptureFixture
) -> None:
    geocoder = _FailingGeocoder()
    resolver = AddressResolver(GeoGridCache(), geocoder)
    tracker = VehicleTracker(VIN, config, resolver=resolver, clock=clock)

    with caplog.at_level(logging.WARNING):
        for sample in _commute()[:3]:
            await tracker.append_sample(sample)

    (ride,) = tracker.rides
    assert ride.start_address is None
    assert ride.end_address is None
    assert geocoder.calls == 2
    assert len(resolver.cache) == 0
    assert "Reverse geocoding" in caplog.text


@pytest.mark.asyncio
async def test_unexpected_geocoder_error_keeps_log_consistent(config: TrackerConfig, clock: _Clock) -> None:
    def broken(latitude: float, longitude: float) -> GeoGridEntry:
        raise RuntimeError("geocoder bug")

    tracker = VehicleTracker(VIN, config, resolver=AddressResolver(GeoGridCache(), broken), clock=clock)
    first, second, third = _commute()[:3]
    await tracker.append_sample(first)
    await tracker.append_sample(second)

    with pytest.raises(RuntimeError, match="geocoder bug"):
        await tracker.append_sample(third)

    assert len(tracker.samples) == 3
    (ride,) = tracker.rides
    assert ride.distance_km == 12
    assert ride.start_address is None
    assert tracker.poll_state.current_backoff_minutes == 5
    assert tracker.next_poll_at == T0 + timedelta(minutes=5)

    # Nothing is emitted twice once the log moves on.
    await tracker.append_sample(_sample(120, odo=1012, soc=77, at=OFFICE))
    assert len(tracker.rides) == 1


@pytest.mark.asyncio
async def test_missing_position_skips_geocoding(config: TrackerConfig, clock: _Clock) -> None:
    geocoder = _FakeGeocoder()
    tracker = VehicleTracker(VIN, config, resolver=AddressResolver(GeoGridCache(), geocoder), clock=clock)

    for minute, odo in ((0, 1000), (10, 1000), (60, 1020)):
        await tracker.append_sample(
            TelemetrySample(
                captured_at=T0 + timedelta(minutes=minute),
                odometer_km=odo,
                soc_percent=70,
                parking_brake_active=True,
            )
        )

    (ride,) = tracker.rides
    assert ride.start_position is None
    assert ride.start_address is None
    assert geocoder.calls == []


@pytest.mark.asyncio
async def test_tracker_without_resolver(config: TrackerConfig, clock: _Clock) -> None:
    tracker = VehicleTracker(VIN, config, clock=clock)

    for sample in _commute()[:3]:
        await tracker.append_sample(sample)

    (ride,) = tracker.rides
    assert ride.start_position == GeoPosition(latitude=HOME[0], longitude=HOME[1])
    assert ride.start_address is None


@pytest.mark.asyncio
async def test_charge_gets_single_address(config: TrackerConfig, clock: _Clock) -> None:
    geocoder = _FakeGeocoder()
    tracker = VehicleTracker(VIN, config, resolver=AddressResolver(GeoGridCache(), geocoder), clock=clock)

    for sample in (
        _sample(0, odo=1000, soc=40, at=HOME, mode="ac"),
        _sample(60, odo=1000, soc=70, at=HOME, mode="ac"),
        _sample(90, odo=1000, soc=70, at=HOME),
    ):
        await tracker.append_sample(sample)

    (charge,) = tracker.charges
    assert isinstance(charge, Charge)
    assert charge.address is not None
    assert charge.energy_added_kwh == pytest.approx(18.0)
    assert len(geocoder.calls) == 1


@pytest.mark.asyncio
async def test_backoff_follows_readings(config: TrackerConfig, clock: _Clock) -> None:
    tracker = VehicleTracker(VIN, config, clock=clock)
    first = _sample(0, odo=1000, soc=80, at=HOME)

    await tracker.append_sample(first)
    assert tracker.poll_state.current_backoff_minutes == 5
    assert tracker.next_poll_at == T0 + timedelta(minutes=5)
    assert not tracker.may_poll(T0 + timedelta(minutes=1))

    # Same readings, new capture time: nothing new.
    await tracker.append_sample(first.model_copy(update={"captured_at": T0 + timedelta(minutes=5)}))
    assert tracker.poll_state.current_backoff_minutes == 7

    await tracker.append_sample(_sample(12, odo=1000, soc=79, at=HOME))
    assert tracker.poll_state.current_backoff_minutes == 5


@pytest.mark.asyncio
async def test_dc_charging_sample_shortens_backoff(config: TrackerConfig, clock: _Clock) -> None:
    tracker = VehicleTracker(VIN, config, clock=clock)

    await tracker.append_sample(_sample(0, odo=1000, soc=30, at=HOME, mode="dc"))

    assert tracker.poll_state.current_backoff_minutes == 2


def test_failed_poll_backs_off(config: TrackerConfig, clock: _Clock) -> None:
    tracker = VehicleTracker(VIN, config, clock=clock)

    assert tracker.on_poll_failed() == T0 + timedelta(minutes=7)
    assert tracker.poll_state.current_backoff_minutes == 7


@pytest.mark.asyncio
async def test_analyze_all_matches_incremental_replay(config: TrackerConfig, clock: _Clock) -> None:
    geocoder = _FakeGeocoder()
    tracker = VehicleTracker(VIN, config, resolver=AddressResolver(GeoGridCache(), geocoder), clock=clock)
    for sample in _commute():
        await tracker.append_sample(sample)
    incremental = tracker.rides

    rebuilt = await tracker.analyze_all()

    assert tuple(rebuilt) == incremental
    assert tracker.rides == incremental
    # Addresses of the rebuild all come from the cache.
    assert len(geocoder.calls) == 2


@pytest.mark.asyncio
async def test_snapshot_round_trip(config: TrackerConfig, clock: _Clock) -> None:
    tracker = VehicleTracker(VIN, config, clock=clock)
    for sample in _commute():
        await tracker.append_sample(sample)

    snapshot = tracker.snapshot()
    restored = VehicleTracker.from_snapshot(snapshot, config, clock=clock)

    assert restored.vin == VIN
    assert list(restored.samples) == list(tracker.samples)
    assert restored.rides == tracker.rides
    assert restored.poll_state == tracker.poll_state
    assert restored.poll_state is not tracker.poll_state


# ------------------------------------------------------------------
# Fleet
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_fleet_shares_cache_between_vehicles(config: TrackerConfig, clock: _Clock) -> None:
    geocoder = _FakeGeocoder()
    fleet = Fleet(config, resolve_address=geocoder, clock=clock)
    other_vin = "LGXC16DF0P0000002"

    for sample in _commute()[:3]:
        await fleet.append_sample(VIN, sample)
    for sample in _commute()[:3]:
        await fleet.append_sample(other_vin, sample)

    assert len(fleet) == 2
    assert set(fleet.vins) == {VIN, other_vin}
    assert VIN in fleet
    assert "unknown" not in fleet
    assert len(fleet.cache) == 2
    assert fleet.resolver.live_requests == 2
    assert fleet.resolver.cache_hits == 2
    assert {tracker.vin for tracker in fleet} == {VIN, other_vin}


@pytest.mark.asyncio
async def test_fleet_uses_configured_radius(clock: _Clock) -> None:
    geocoder = _FakeGeocoder()
    config = TrackerConfig(battery_capacity_kwh=60.0, geocode_radius_m=0.0, time_zone="UTC")
    fleet = Fleet(config, resolve_address=geocoder, clock=clock)

    await fleet.resolver.resolve(GeoPosition(latitude=48.12, longitude=11.514))
    await fleet.resolver.resolve(GeoPosition(latitude=48.1201, longitude=11.514))

    assert len(geocoder.calls) == 2


@pytest.mark.asyncio
async def test_fleet_poll_gate(config: TrackerConfig, clock: _Clock) -> None:
    fleet = Fleet(config, clock=clock)

    assert fleet.next_poll_at(VIN) is None
    assert fleet.may_poll(VIN)

    await fleet.append_sample(VIN, _sample(0, odo=1000, soc=80, at=HOME))

    assert fleet.next_poll_at(VIN) == T0 + timedelta(minutes=5)
    assert not fleet.may_poll(VIN, T0 + timedelta(minutes=2))
    assert fleet.may_poll(VIN, T0 + timedelta(minutes=5))


@pytest.mark.asyncio
async def test_fleet_restore_replaces_tracker(config: TrackerConfig, clock: _Clock) -> None:
    fleet = Fleet(config, clock=clock)
    for sample in _commute():
        await fleet.append_sample(VIN, sample)
    snapshot = fleet.vehicle(VIN).snapshot()

    fresh = Fleet(config, clock=clock)
    restored = fresh.restore(snapshot)

    assert fresh.vehicle(VIN) is restored
    assert restored.rides == fleet.vehicle(VIN).rides
