"""Per-vehicle poll scheduling state."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from cartrack._constants import DEFAULT_BACKOFF_MINUTES
from cartrack.models._base import AwareDatetime


class PollState(BaseModel):
    """When a vehicle may be polled next, and the backoff that led there.

    Mutated only by :class:`cartrack.scheduler.PollScheduler`.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    next_poll_at: AwareDatetime | None = None
    current_backoff_minutes: int = Field(default=DEFAULT_BACKOFF_MINUTES, ge=1)
