"""Tests for sample, episode and address models."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from cartrack.exceptions import GeocodeResponseError, GeocodeUnavailable
from cartrack.models import (
    Charge,
    ChargingMode,
    GeoGridEntry,
    Ride,
    TelemetrySample,
    VehicleState,
    format_duration,
)

NOMINATIM_RESPONSE = """
{"place_id": 268333899,
 "licence": "Data (c) OpenStreetMap contributors, ODbL 1.0. https://osm.org/copyright",
 "osm_type": "node",
 "osm_id": 6600036324,
 "lat": "51.4510296",
 "lon": "11.3051494",
 "display_name": "Ionity Sangerhausen, A 38, Oberröblingen, Sangerhausen, 06526, Deutschland",
 "address":
  {"address29": "Ionity Sangerhausen",
   "road": "A 38",
   "suburb": "Oberröblingen",
   "town": "Sangerhausen",
   "county": "Mansfeld-Südharz",
   "state": "Sachsen-Anhalt",
   "postcode": "06526",
   "country": "Deutschland",
   "country_code": "de"},
 "boundingbox": ["51.4509296", "51.4511296", "11.3050494", "11.3052494"]}
"""


def _dt() -> datetime:
    return datetime(2026, 1, 1, 8, 0, tzinfo=UTC)


# ------------------------------------------------------------------
# TelemetrySample
# ------------------------------------------------------------------


class TestTelemetrySample:
    @pytest.mark.parametrize(
        ("mode", "brake", "expected"),
        [
            ("ac", True, VehicleState.CHARGING_AC),
            ("dc", False, VehicleState.CHARGING_DC),
            ("off", True, VehicleState.PARKING),
            ("off", False, VehicleState.DRIVING),
        ],
    )
    def test_state_derivation(self, mode: str, brake: bool, expected: VehicleState) -> None:
        sample = TelemetrySample(odometer_km=100, soc_percent=50, charging_mode=mode, parking_brake_active=brake)
        assert sample.state() == expected

    def test_charging_mode_is_case_insensitive(self) -> None:
        sample = TelemetrySample(odometer_km=100, soc_percent=50, charging_mode="DC")
        assert sample.charging_mode == ChargingMode.DC
        assert sample.state().is_charging

    def test_unknown_charging_mode_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TelemetrySample(odometer_km=100, soc_percent=50, charging_mode="wireless")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"soc_percent": 101},
            {"soc_percent": -1},
            {"odometer_km": -5},
            {"speed_kmh": 301},
            {"outside_temperature_c": -31.0},
            {"charging_power_w": 400_000},
            {"latitude": 91.0, "longitude": 11.0},
            {"latitude": 48.0, "longitude": 181.0},
        ],
    )
    def test_out_of_range_readings_rejected(self, kwargs: dict) -> None:
        values = {"odometer_km": 100, "soc_percent": 50, **kwargs}
        with pytest.raises(ValidationError):
            TelemetrySample(**values)

    def test_position_requires_both_coordinates(self) -> None:
        with pytest.raises(ValidationError):
            TelemetrySample(odometer_km=100, soc_percent=50, latitude=48.1)

    def test_naive_timestamps_become_utc(self) -> None:
        sample = TelemetrySample(
            captured_at=datetime(2026, 1, 1, 8, 0),
            vehicle_contact_at=datetime(2026, 1, 1, 7, 55),
            odometer_km=100,
            soc_percent=50,
        )
        assert sample.captured_at.tzinfo is UTC
        assert sample.observed_at == datetime(2026, 1, 1, 7, 55, tzinfo=UTC)

    def test_observed_at_falls_back_to_capture_time(self) -> None:
        sample = TelemetrySample(captured_at=_dt(), odometer_km=100, soc_percent=50)
        assert sample.observed_at == _dt()

    def test_samples_are_immutable(self) -> None:
        sample = TelemetrySample(odometer_km=100, soc_percent=50)
        with pytest.raises(ValidationError):
            sample.soc_percent = 10  # type: ignore[misc]

    def test_same_readings_ignores_capture_time(self) -> None:
        first = TelemetrySample(captured_at=_dt(), odometer_km=100, soc_percent=50, latitude=48.1, longitude=11.5)
        second = first.model_copy(update={"captured_at": _dt() + timedelta(minutes=5)})
        third = first.model_copy(update={"soc_percent": 49})

        assert first.same_readings(second)
        assert not first.same_readings(third)

    def test_position(self) -> None:
        sample = TelemetrySample(odometer_km=100, soc_percent=50, latitude=48.1, longitude=11.5)
        assert sample.position is not None
        assert sample.position.latitude == 48.1
        assert TelemetrySample(odometer_km=100, soc_percent=50).position is None


# ------------------------------------------------------------------
# Episodes
# ------------------------------------------------------------------


class TestEpisodes:
    def test_ride_properties(self) -> None:
        ride = Ride(
            started_at=_dt(),
            ended_at=_dt() + timedelta(minutes=62, seconds=5),
            start_odometer_km=1000,
            end_odometer_km=1250,
            start_soc=80,
            end_soc=60,
            energy_consumed_kwh=15.4,
        )
        assert ride.distance_km == 250
        assert format_duration(ride.duration.total_seconds()) == "1:02:05"

    def test_ride_rejects_soc_increase(self) -> None:
        with pytest.raises(ValidationError):
            Ride(
                started_at=_dt(),
                ended_at=_dt(),
                start_odometer_km=1000,
                end_odometer_km=1010,
                start_soc=50,
                end_soc=55,
                energy_consumed_kwh=0.0,
            )

    def test_ride_rejects_negative_energy(self) -> None:
        with pytest.raises(ValidationError):
            Ride(
                started_at=_dt(),
                ended_at=_dt(),
                start_odometer_km=1000,
                end_odometer_km=1010,
                start_soc=50,
                end_soc=50,
                energy_consumed_kwh=-1.0,
            )

    def test_charge_requires_charging_mode(self) -> None:
        with pytest.raises(ValidationError):
            Charge(
                started_at=_dt(),
                ended_at=_dt(),
                start_soc=20,
                end_soc=80,
                energy_added_kwh=46.2,
                mode=ChargingMode.OFF,
            )

    def test_charge_rejects_reversed_interval(self) -> None:
        with pytest.raises(ValidationError):
            Charge(
                started_at=_dt(),
                ended_at=_dt() - timedelta(minutes=1),
                start_soc=20,
                end_soc=80,
                energy_added_kwh=46.2,
                mode=ChargingMode.AC,
            )

    def test_format_duration(self) -> None:
        assert format_duration(0) == "0:00:00"
        assert format_duration(59) == "0:00:59"
        assert format_duration(36_000) == "10:00:00"


# ------------------------------------------------------------------
# GeoGridEntry
# ------------------------------------------------------------------


class TestGeoGridEntry:
    def test_from_nominatim_string(self) -> None:
        entry = GeoGridEntry.from_nominatim(NOMINATIM_RESPONSE)

        assert entry.latitude == pytest.approx(51.4510296, abs=0.001)
        assert entry.longitude == pytest.approx(11.3051494, abs=0.001)
        assert entry.country == "Deutschland"
        assert entry.postal_code == "06526"
        assert entry.city == "Sangerhausen"
        assert entry.street == "A 38"
        assert entry.house_number == ""

    def test_from_nominatim_prefers_city(self) -> None:
        entry = GeoGridEntry.from_nominatim(
            {
                "lat": "48.1205",
                "lon": "11.5138",
                "address": {
                    "road": "Preßburger Straße",
                    "house_number": "5",
                    "city": "München",
                    "village": "Irrelevant",
                    "postcode": "81671",
                    "country": "Deutschland",
                },
            }
        )
        assert entry.city == "München"
        assert entry.label == "Preßburger Straße 5, 81671 München"

    @pytest.mark.parametrize(
        "payload",
        [
            "not json",
            {"lon": "11.0", "address": {}},
            {"lat": "48.0", "address": {}},
            {"lat": "95.0", "lon": "11.0", "address": {}},
            {"lat": "48.0", "lon": "11.0"},
            {"error": "Unable to geocode"},
        ],
    )
    def test_from_nominatim_rejects_unusable_payloads(self, payload) -> None:
        with pytest.raises(GeocodeResponseError):
            GeoGridEntry.from_nominatim(payload)

    def test_response_error_is_geocode_unavailable(self) -> None:
        assert issubclass(GeocodeResponseError, GeocodeUnavailable)
