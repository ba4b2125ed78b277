"""Schedule block models for staff time off."""

from datetime import date, datetime, time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class BlockType(str, Enum):
    """Extent of a schedule block."""

    FULL_DAY = "full_day"
    TIME_RANGE = "time_range"


class ScheduleBlockCreate(BaseModel):
    """Schedule block creation model."""

    staff_id: str
    block_type: BlockType
    start_date: date
    end_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    reason: Optional[str] = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def check_window(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")

        if self.block_type == BlockType.TIME_RANGE:
            if self.start_time is None or self.end_time is None:
                raise ValueError("Time range blocks require start and end times")
            if self.end_time <= self.start_time:
                raise ValueError("end_time must be after start_time")
        else:
            # Full-day blocks never carry a time window
            self.start_time = None
            self.end_time = None

        return self

    @property
    def last_date(self) -> date:
        return self.end_date or self.start_date

    def covers(self, target_date: date) -> bool:
        """True if target_date falls in the inclusive date range."""
        return self.start_date <= target_date <= self.last_date


class ScheduleBlock(ScheduleBlockCreate):
    """Persisted schedule block."""

    id: str
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "id": "uuid-here",
                "staff_id": "tanisha",
                "block_type": "time_range",
                "start_date": "2026-03-10",
                "start_time": "12:00",
                "end_time": "14:00",
                "reason": "Dentist appointment",
            }
        }
