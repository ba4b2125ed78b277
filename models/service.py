"""Service models for spa treatments."""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ServiceCategory(str, Enum):
    """Service categories offered by the spa."""

    FACIAL = "facial"
    MASSAGE = "massage"
    BODY_TREATMENT = "body_treatment"
    BODY_SCRUB = "body_scrub"
    WAXING = "waxing"
    PACKAGE = "package"
    MEMBERSHIP = "membership"
    CONSULTATION = "consultation"


class Service(BaseModel):
    """Service model."""

    id: str
    name: str
    description: Optional[str] = None
    category: ServiceCategory
    duration: int = Field(..., gt=0, description="Duration in minutes")
    price: Decimal = Field(..., ge=0)
    requires_room_3: bool = Field(
        default=False, description="Needs the room with body scrub equipment"
    )
    is_couples_service: bool = False
    is_active: bool = True

    class Config:
        json_schema_extra = {
            "example": {
                "id": "svc-salt-scrub",
                "name": "Salt Body Scrub",
                "category": "body_scrub",
                "duration": 30,
                "price": "65.00",
                "requires_room_3": True,
                "is_couples_service": False,
            }
        }

    @property
    def needs_body_scrub_room(self) -> bool:
        return self.requires_room_3 or self.category == ServiceCategory.BODY_SCRUB
