"""Staff models for spa therapists."""

from datetime import time
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .service import ServiceCategory


class StaffStatus(str, Enum):
    """Current availability status set from the admin console."""

    WORKING = "working"
    ON_CALL = "on_call"
    OFF = "off"


class WorkHours(BaseModel):
    """Working window for one weekday."""

    start_time: time
    end_time: time

    @model_validator(mode="after")
    def check_order(self) -> "WorkHours":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class Staff(BaseModel):
    """Staff member model."""

    id: str
    name: str
    capabilities: List[ServiceCategory] = Field(default_factory=list)
    work_days: List[int] = Field(
        default_factory=list, description="Weekdays worked, Sunday=0 ... Saturday=6"
    )
    work_hours: Dict[int, WorkHours] = Field(
        default_factory=dict,
        description="Per-weekday hours; business hours apply when a day is missing",
    )
    default_room_id: Optional[int] = None
    is_active: bool = True
    current_status: StaffStatus = StaffStatus.WORKING
    default_advance_notice_hours: Optional[int] = Field(default=None, ge=0)

    class Config:
        json_schema_extra = {
            "example": {
                "id": "selma",
                "name": "Selma Villaver",
                "capabilities": ["facial"],
                "work_days": [0, 1, 3, 5, 6],
                "default_room_id": 1,
                "current_status": "working",
            }
        }

    @field_validator("work_days")
    @classmethod
    def validate_work_days(cls, v: List[int]) -> List[int]:
        """Weekdays must be 0-6; duplicates are dropped."""
        for day in v:
            if not 0 <= day <= 6:
                raise ValueError(f"Invalid weekday {day}: expected 0 (Sunday) to 6")
        return sorted(set(v))

    def can_perform(self, category: ServiceCategory) -> bool:
        return category in self.capabilities
