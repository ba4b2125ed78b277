"""
Room assignment resolver.

Rules are applied in a fixed order and the first applicable rule wins:

1. Body scrub services go to the body scrub room, with no fallback.
2. Couples services need a room for two; the body scrub room is preferred
   as the premium couples room.
3. Single services use the preferred staff member's default room when the
   staff member can perform the service.
4. Otherwise the smallest active room that supports the category.
"""

import logging
from enum import Enum
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from models.room import Room
from models.service import Service, ServiceCategory
from models.staff import Staff

from .staff_availability import can_staff_perform_service

logger = logging.getLogger(__name__)


class RoomRule(str, Enum):
    BODY_SCRUB = "body_scrub"
    COUPLES = "couples"
    STANDARD = "standard"


class RoomAssignment(BaseModel):
    """Chosen room with its justification; room is None on failure."""

    room: Optional[Room] = None
    reason: str
    errors: List[str] = Field(default_factory=list)


def room_rule_for(service: Service) -> RoomRule:
    """Which placement rule governs a service."""
    if service.needs_body_scrub_room:
        return RoomRule.BODY_SCRUB
    if service.is_couples_service:
        return RoomRule.COUPLES
    return RoomRule.STANDARD


def _assign_body_scrub_room(service: Service, rooms: Sequence[Room]) -> RoomAssignment:
    scrub_rooms = [room for room in rooms if room.has_body_scrub_equipment]
    active = [room for room in scrub_rooms if room.is_active]

    if active:
        room = active[0]
        if service.is_couples_service and not room.is_couples_capable:
            return RoomAssignment(
                room=None,
                reason="Couples body scrub needs a body scrub room for 2 people",
                errors=[
                    f"Couples services cannot be performed in {room.name} "
                    f"(single occupancy only)"
                ],
            )
        return RoomAssignment(
            room=room,
            reason=f"Body scrub service requires {room.name} with specialized equipment",
        )

    if scrub_rooms:
        error = (
            f"{scrub_rooms[0].name} is required for body scrub services "
            f"but is currently unavailable"
        )
    else:
        error = "No room with body scrub equipment found in the system"

    return RoomAssignment(
        room=None,
        reason="Body scrub services can only be performed in the body scrub room",
        errors=[error],
    )


def _assign_couples_room(rooms: Sequence[Room]) -> RoomAssignment:
    couples_rooms = [room for room in rooms if room.is_couples_capable and room.is_active]

    for room in couples_rooms:
        if room.has_body_scrub_equipment:
            return RoomAssignment(
                room=room,
                reason=f"Couples service assigned to {room.name} (premium couples room)",
            )

    if couples_rooms:
        room = couples_rooms[0]
        return RoomAssignment(
            room=room, reason=f"Couples service assigned to {room.name} (couples room)"
        )

    errors = [
        f"Couples services cannot be performed in {room.name} (single occupancy only)"
        for room in rooms
        if room.capacity == 1
    ]
    if not errors:
        errors.append("No couples rooms available for this time slot")

    return RoomAssignment(
        room=None,
        reason="Couples services require rooms with capacity for 2 people",
        errors=errors,
    )


def _assign_standard_room(
    service: Service, preferred_staff: Optional[Staff], rooms: Sequence[Room]
) -> RoomAssignment:
    if preferred_staff and preferred_staff.default_room_id is not None:
        default_room = next(
            (
                room
                for room in rooms
                if room.id == preferred_staff.default_room_id and room.is_active
            ),
            None,
        )
        if default_room:
            if can_staff_perform_service(preferred_staff, service):
                return RoomAssignment(
                    room=default_room,
                    reason=f"Assigned to {preferred_staff.name}'s default room",
                )
            logger.debug(
                f"{preferred_staff.name} cannot perform {service.category.value}; "
                f"ignoring default room {default_room.name}"
            )

    suitable = [room for room in rooms if room.is_active and room.supports(service.category)]
    if not suitable:
        category = service.category.value
        return RoomAssignment(
            room=None,
            reason=f"No suitable rooms found for {category} services",
            errors=[f"No rooms available that can accommodate {category} services"],
        )

    # Smallest room first keeps couples rooms free; sorted() is stable
    room = sorted(suitable, key=lambda r: r.capacity)[0]
    return RoomAssignment(room=room, reason=f"Assigned to available {room.name}")


def get_optimal_room(
    service: Optional[Service],
    preferred_staff: Optional[Staff] = None,
    available_rooms: Sequence[Room] = (),
) -> RoomAssignment:
    """
    Determine the room a service should use.

    Args:
        service: Service being booked
        preferred_staff: Staff member whose default room may be used
        available_rooms: Candidate rooms

    Returns:
        RoomAssignment; reason is always set, errors is non-empty when no
        room could be chosen under a hard rule
    """
    if not service:
        return RoomAssignment(
            room=None, reason="Invalid service provided", errors=["Service is required"]
        )

    rule = room_rule_for(service)
    if rule == RoomRule.BODY_SCRUB:
        assignment = _assign_body_scrub_room(service, available_rooms)
    elif rule == RoomRule.COUPLES:
        assignment = _assign_couples_room(available_rooms)
    else:
        assignment = _assign_standard_room(service, preferred_staff, available_rooms)

    logger.debug(f"Room rule {rule.value} for {service.name}: {assignment.reason}")
    return assignment


def get_room_utilization_info(room: Room) -> dict:
    """Describe what a room is suitable for (admin room overview)."""
    special_features = []
    suitable_for = []

    if room.has_body_scrub_equipment:
        special_features.append("Body Scrub Equipment")
        suitable_for.append("Body scrub services (exclusive)")

    if room.is_couples_capable:
        special_features.append("Couples Setup")
        suitable_for.append("Individual and couples treatments")
    else:
        suitable_for.append("Individual treatments only")

    capabilities = room.capabilities or list(ServiceCategory)
    return {
        "capabilities": [category.value for category in capabilities],
        "special_features": special_features,
        "suitable_for": suitable_for,
    }
