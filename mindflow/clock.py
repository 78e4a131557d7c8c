from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, field_validator


def isoformat_z(value: datetime) -> str:
    """Render a timezone-aware datetime as UTC ISO 8601 with millisecond precision and a Z suffix."""
    utc = value.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(BaseModel, frozen=True):
    """Clock pinned to one instant, for deterministic exports and tests."""

    fixed: datetime

    @field_validator("fixed")
    @classmethod
    def fixed_must_be_timezone_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("FixedClock value must be timezone-aware")
        return value

    def now(self) -> datetime:
        return self.fixed
