"""Episode segmentation.

The segmenter turns a vehicle's append-only sample log into rides and
charging sessions. Polls are sparse, so a whole ride or charge can
happen between two samples without a single sample showing the
driving or charging state. Besides explicit state flips, odometer and
SoC progress across samples that claim the same state is therefore
treated as a transition too.

For every new sample ``r0`` (at index ``i``) with predecessor ``r1``:

1. If nothing changed between ``r1`` and ``r0`` there is no boundary.
2. Otherwise scan backwards from ``i - 2`` for the first sample that
   clearly is *not* in ``r1``'s block. The sample after it, ``r2``, is
   the first sample of that block.
3. Mileage between ``r2`` and ``r0`` means a ride ``[r2, r0]``; a SoC
   increase outside of charging states means an unobserved charge
   ``[r2, r0]``; an ending charging block means a charge ``[r2, r1]``.

The segmenter keeps no state of its own, so replaying a log index by
index always yields the same episodes as :meth:`EpisodeSegmenter.analyze_all`.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from cartrack._constants import SOC_NOISE_PERCENT
from cartrack.config import TrackerConfig
from cartrack.exceptions import CarTrackConfigError
from cartrack.models.episodes import Charge, Episode, Ride
from cartrack.models.telemetry import ChargingMode, TelemetrySample, VehicleState

_logger = logging.getLogger(__name__)

DiagnosticSink = logging.Logger | logging.LoggerAdapter


def state_changed(earlier: TelemetrySample, later: TelemetrySample) -> bool:
    """Whether *later* is not in the same state block as *earlier*.

    Besides a different :meth:`~TelemetrySample.state`, mileage gained while
    *later* claims not to be driving, or SoC gained while it claims not to
    be charging, also counts as a change.
    """
    later_state = later.state()
    if earlier.state() != later_state:
        return True
    if later_state != VehicleState.DRIVING and earlier.odometer_km < later.odometer_km:
        return True
    return not later_state.is_charging and earlier.soc_percent < later.soc_percent


def find_block_start(samples: Sequence[TelemetrySample], index: int) -> int:
    """Index of the first sample of the block that ends at ``index - 1``.

    Walks back from ``index - 2`` until a sample is found that is clearly
    not in the block of ``samples[index - 1]``. If the walk reaches the
    start of the log, the whole prefix belongs to the block.
    """
    block_sample = samples[index - 1]
    j = index - 2
    while j >= 0:
        if state_changed(samples[j], block_sample):
            return j + 1
        j -= 1
    return 0


class EpisodeSegmenter:
    """Derive :class:`Ride` and :class:`Charge` episodes from a sample log."""

    def __init__(self, config: TrackerConfig, *, logger: DiagnosticSink | None = None) -> None:
        if config.battery_capacity_kwh is None or config.battery_capacity_kwh <= 0:
            raise CarTrackConfigError("battery_capacity_kwh must be configured")
        self._capacity_kwh = float(config.battery_capacity_kwh)
        self._log: DiagnosticSink = logger if logger is not None else _logger

    def soc_to_energy(self, soc_percent: float) -> float:
        """Convert a SoC delta in percent points to kWh."""
        return self._capacity_kwh * soc_percent / 100.0

    def analyze(self, samples: Sequence[TelemetrySample], index: int | None = None) -> Episode | None:
        """Check whether the sample at *index* closes an episode.

        *index* defaults to the newest sample. Only ``samples[:index + 1]`` is
        looked at, so the result does not depend on later samples.
        """
        if index is None:
            index = len(samples) - 1
        if index < 2:
            return None

        r0 = samples[index]
        r1 = samples[index - 1]
        if not state_changed(r1, r0):
            return None

        r2 = samples[find_block_start(samples, index)]
        self._log.debug(
            "Boundary at sample %d: %s -> %s, block started with %s at %s",
            index,
            r1.state(),
            r0.state(),
            r2.state(),
            r2.observed_at.isoformat(),
        )

        # Mileage wins over a simultaneous SoC increase.
        if r0.odometer_km > r2.odometer_km:
            return self._build_ride(r2, r0)

        if (
            r0.soc_percent - r2.soc_percent > SOC_NOISE_PERCENT
            and not r2.state().is_charging
            and not r0.state().is_charging
        ):
            return self._build_charge(r2, r0, ChargingMode.AC, position_sample=r2)

        r1_state = r1.state()
        if r1_state.is_charging:
            mode = ChargingMode.DC if r1_state == VehicleState.CHARGING_DC else ChargingMode.AC
            return self._build_charge(r2, r1, mode, position_sample=r1)

        return None

    def analyze_all(self, samples: Sequence[TelemetrySample]) -> list[Episode]:
        """Re-derive every episode of a complete log."""
        episodes: list[Episode] = []
        for index in range(2, len(samples)):
            episode = self.analyze(samples, index)
            if episode is not None:
                episodes.append(episode)
        return episodes

    def _build_ride(self, start: TelemetrySample, end: TelemetrySample) -> Ride:
        # A ride never charges the battery; an apparent increase is noise.
        start_soc = max(start.soc_percent, end.soc_percent)
        started_at = start.observed_at
        ride = Ride(
            started_at=started_at,
            ended_at=max(started_at, end.observed_at),
            start_odometer_km=start.odometer_km,
            end_odometer_km=end.odometer_km,
            start_soc=start_soc,
            end_soc=end.soc_percent,
            start_position=start.position,
            end_position=end.position,
            start_temperature_c=start.outside_temperature_c,
            end_temperature_c=end.outside_temperature_c,
            energy_consumed_kwh=max(0.0, self.soc_to_energy(start_soc - end.soc_percent)),
        )
        self._log.info(
            "Ride %s: %d km, SoC %d%% -> %d%%",
            ride.started_at.isoformat(),
            ride.distance_km,
            ride.start_soc,
            ride.end_soc,
        )
        return ride

    def _build_charge(
        self,
        start: TelemetrySample,
        end: TelemetrySample,
        mode: ChargingMode,
        *,
        position_sample: TelemetrySample,
    ) -> Charge:
        started_at = start.observed_at
        charge = Charge(
            started_at=started_at,
            ended_at=max(started_at, end.observed_at),
            start_soc=start.soc_percent,
            end_soc=end.soc_percent,
            energy_added_kwh=max(0.0, self.soc_to_energy(end.soc_percent - start.soc_percent)),
            mode=mode,
            position=position_sample.position or start.position or end.position,
            odometer_km=position_sample.odometer_km,
        )
        self._log.info(
            "Charge (%s) %s: SoC %d%% -> %d%%",
            charge.mode,
            charge.started_at.isoformat(),
            charge.start_soc,
            charge.end_soc,
        )
        return charge
