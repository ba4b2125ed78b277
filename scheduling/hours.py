"""
Business hours configuration shared by every scheduling component.
"""

from datetime import time
from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field

MINUTES_PER_DAY = 24 * 60


def parse_clock(value: str) -> time:
    """
    Parse a strict "HH:MM" configuration value.

    Raises:
        ValueError: If the value is not a valid clock time
    """
    try:
        hours, minutes = value.split(":")
        return time(int(hours), int(minutes))
    except (AttributeError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid clock time: {value!r}") from e


def to_minutes(value: time) -> int:
    """Minutes since midnight."""
    return value.hour * 60 + value.minute


def minutes_to_clock(minutes: int) -> str:
    """Format minutes since midnight as "HH:MM", wrapping past midnight."""
    minutes %= MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


class BusinessHours(BaseModel):
    """Opening hours and booking policy of the spa."""

    model_config = ConfigDict(frozen=True)

    open_time: time = time(9, 0)
    close_time: time = time(19, 0)
    slot_minutes: int = Field(default=15, gt=0)
    buffer_minutes: int = Field(default=15, ge=0)
    last_booking_offset_minutes: int = Field(default=60, ge=0)
    max_advance_days: int = Field(default=30, ge=0)
    min_notice_hours: int = Field(default=2, ge=0)
    same_day_warning_minutes: int = Field(default=60, ge=0)
    on_call_default_notice_hours: int = Field(default=2, ge=0)
    reduced_staffing_days: Tuple[int, ...] = (0, 2, 4)

    @property
    def open_minutes(self) -> int:
        return to_minutes(self.open_time)

    @property
    def close_minutes(self) -> int:
        return to_minutes(self.close_time)

    @property
    def last_booking_minutes(self) -> int:
        """Latest start allowed by the last-booking offset."""
        return self.close_minutes - self.last_booking_offset_minutes

    @property
    def open_label(self) -> str:
        return minutes_to_clock(self.open_minutes)

    @property
    def close_label(self) -> str:
        return minutes_to_clock(self.close_minutes)


DEFAULT_BUSINESS_HOURS = BusinessHours()
