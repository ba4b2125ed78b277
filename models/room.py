"""Room models for treatment rooms."""

from typing import List

from pydantic import BaseModel, Field

from .service import ServiceCategory


class Room(BaseModel):
    """Treatment room model."""

    id: int
    name: str
    capacity: int = Field(default=1, ge=1)
    capabilities: List[ServiceCategory] = Field(
        default_factory=list,
        description="Supported categories; an empty list accepts any category",
    )
    has_body_scrub_equipment: bool = False
    is_active: bool = True

    class Config:
        json_schema_extra = {
            "example": {
                "id": 3,
                "name": "Room 3",
                "capacity": 2,
                "capabilities": ["facial", "massage", "body_scrub"],
                "has_body_scrub_equipment": True,
            }
        }

    @property
    def is_couples_capable(self) -> bool:
        return self.capacity >= 2

    def supports(self, category: ServiceCategory) -> bool:
        return not self.capabilities or category in self.capabilities
