"""Scheduling and availability engine."""

from .conflicts import (
    BookingCandidate,
    check_booking_conflicts,
    find_bookings_affected_by_block,
    intervals_conflict,
)
from .hours import DEFAULT_BUSINESS_HOURS, BusinessHours
from .room_assignment import RoomAssignment, get_optimal_room, get_room_utilization_info
from .staff_availability import (
    PrefetchedBlockStore,
    ScheduleBlockStore,
    can_staff_perform_service,
    get_staff_day_availability,
    is_staff_available_at_time,
    validate_staff_capability,
)
from .time_slots import (
    calculate_end_time,
    can_accommodate_service,
    generate_time_slots,
    parse_end_time,
)
from .validator import (
    ValidationResult,
    generate_available_time_slots,
    validate_booking_request,
    validate_booking_time,
)

__all__ = [
    "BookingCandidate",
    "BusinessHours",
    "DEFAULT_BUSINESS_HOURS",
    "PrefetchedBlockStore",
    "RoomAssignment",
    "ScheduleBlockStore",
    "ValidationResult",
    "calculate_end_time",
    "can_accommodate_service",
    "can_staff_perform_service",
    "check_booking_conflicts",
    "find_bookings_affected_by_block",
    "generate_available_time_slots",
    "generate_time_slots",
    "get_optimal_room",
    "get_room_utilization_info",
    "get_staff_day_availability",
    "intervals_conflict",
    "is_staff_available_at_time",
    "parse_end_time",
    "validate_booking_request",
    "validate_booking_time",
    "validate_staff_capability",
]
