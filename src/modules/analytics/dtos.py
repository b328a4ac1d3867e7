from __future__ import annotations

from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict, field_validator

from modules.analytics.constants import DEFAULT_RANGE, RANGE_DAYS


class ReportRangeDTO(BaseModel):
    """A reporting window ending now, compared with the window just before it."""

    model_config = ConfigDict(frozen=True)

    range: str = DEFAULT_RANGE

    @field_validator("range", mode="before")
    @classmethod
    def known_range(cls, v):
        if v in (None, ""):
            return DEFAULT_RANGE
        if v not in RANGE_DAYS:
            raise ValueError(f"Range must be one of {', '.join(RANGE_DAYS)}.")
        return v

    @property
    def days(self) -> int:
        return RANGE_DAYS[self.range]

    def bounds(self, now: datetime) -> tuple[datetime, datetime, datetime]:
        """``(previous_start, start, now)``"""
        start = now - timedelta(days=self.days)
        return start - timedelta(days=self.days), start, now
