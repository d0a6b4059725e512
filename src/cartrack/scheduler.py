"""Adaptive poll scheduling.

The vendor API is strongly rate limited. After every poll the scheduler
decides when the vehicle may be polled again: shortly after a poll that
brought news, then with a growing backoff while nothing changes. The
backoff ceiling depends on the wall-clock hour, so quiet nights are
polled rarely while commute hours stay responsive.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, tzinfo

from cartrack._constants import (
    BACKOFF_FACTOR,
    DC_CHARGING_BACKOFF_MINUTES,
    DEFAULT_BACKOFF_MINUTES,
    MAX_BACKOFF_BY_HOUR,
)
from cartrack.models._base import ensure_utc, utcnow
from cartrack.models.poll import PollState
from cartrack.models.telemetry import VehicleState

_logger = logging.getLogger(__name__)


class PollScheduler:
    """Compute the next permitted poll time for one vehicle.

    Parameters
    ----------
    state : PollState or None
        Persisted scheduling state to continue from.
    time_zone : tzinfo or None
        Zone of the wall-clock hour that selects the backoff ceiling.
        Defaults to the zone of the clock's timestamps.
    clock : callable
        Returns the current time; injectable for tests.
    max_backoff_by_hour : sequence of int
        24 backoff ceilings in minutes, indexed by hour.
    """

    def __init__(
        self,
        state: PollState | None = None,
        *,
        time_zone: tzinfo | None = None,
        clock: Callable[[], datetime] = utcnow,
        max_backoff_by_hour: Sequence[int] = MAX_BACKOFF_BY_HOUR,
    ) -> None:
        if len(max_backoff_by_hour) != 24:
            raise ValueError(f"max_backoff_by_hour needs 24 entries, got {len(max_backoff_by_hour)}")
        if min(max_backoff_by_hour) < 1:
            raise ValueError("backoff ceilings must be at least one minute")
        self._state = state if state is not None else PollState()
        self._time_zone = time_zone
        self._clock = clock
        self._max_backoff_by_hour = tuple(max_backoff_by_hour)

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def next_poll_at(self) -> datetime | None:
        return self._state.next_poll_at

    def _now(self) -> datetime:
        now = self._clock()
        if self._time_zone is not None:
            now = now.astimezone(self._time_zone)
        return now

    def max_backoff_minutes(self, now: datetime | None = None) -> int:
        """Backoff ceiling for the wall-clock hour of *now* (default: current time)."""
        if now is None:
            now = self._now()
        elif self._time_zone is not None:
            now = ensure_utc(now).astimezone(self._time_zone)
        return self._max_backoff_by_hour[now.hour]

    def _schedule(self, now: datetime, backoff_minutes: int) -> datetime:
        next_poll_at = now + timedelta(minutes=backoff_minutes)
        self._state.current_backoff_minutes = backoff_minutes
        self._state.next_poll_at = next_poll_at
        return next_poll_at

    def on_state_observed(self, state: VehicleState) -> datetime:
        """Reset the backoff after a poll that brought new data."""
        backoff = DC_CHARGING_BACKOFF_MINUTES if state == VehicleState.CHARGING_DC else DEFAULT_BACKOFF_MINUTES
        return self._schedule(self._now(), backoff)

    def on_no_change(self) -> datetime:
        """Widen the backoff after a poll that failed or brought nothing new."""
        now = self._now()
        ceiling = self.max_backoff_minutes(now)
        backoff = int(self._state.current_backoff_minutes * BACKOFF_FACTOR)
        backoff = max(1, min(backoff, ceiling))
        _logger.debug("No change, backing off to %d min (ceiling %d)", backoff, ceiling)
        return self._schedule(now, backoff)

    def may_poll(self, now: datetime | None = None) -> bool:
        """Whether a poll is allowed at *now* (default: current time)."""
        next_poll_at = self._state.next_poll_at
        if next_poll_at is None:
            return True
        if now is None:
            now = self._clock()
        return ensure_utc(now) >= next_poll_at
