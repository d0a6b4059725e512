"""Base model, enums and timestamp helpers shared by all cartrack models.

Every record model inherits from :class:`CarTrackBaseModel` which is
frozen: once a sample or episode passed validation it never changes.
Timestamps are normalised to timezone-aware datetimes; naive values are
taken to be UTC.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict


def ensure_utc(value: Any) -> Any:
    """Attach UTC to naive datetimes, pass everything else through."""
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def utcnow() -> datetime:
    return datetime.now(UTC)


AwareDatetime = Annotated[datetime, AfterValidator(ensure_utc)]
"""Datetime that is always timezone-aware after validation."""


class CarTrackBaseModel(BaseModel):
    """Base for immutable cartrack records."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
    )
