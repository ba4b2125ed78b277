"""Pydantic models for data validation and serialization."""

from .booking import (
    Booking,
    BookingConflict,
    BookingCreate,
    BookingRequest,
    BookingStatus,
    BookingType,
    ConflictType,
    CouplesBookingRequest,
    RescheduleRequest,
    StaffReassignmentRequest,
    WalkInRequest,
)
from .customer import Customer, CustomerCreate
from .room import Room
from .schedule_block import BlockType, ScheduleBlock, ScheduleBlockCreate
from .service import Service, ServiceCategory
from .staff import Staff, StaffStatus, WorkHours

__all__ = [
    "BlockType",
    "Booking",
    "BookingConflict",
    "BookingCreate",
    "BookingRequest",
    "BookingStatus",
    "BookingType",
    "ConflictType",
    "CouplesBookingRequest",
    "Customer",
    "CustomerCreate",
    "RescheduleRequest",
    "Room",
    "ScheduleBlock",
    "ScheduleBlockCreate",
    "Service",
    "ServiceCategory",
    "Staff",
    "StaffReassignmentRequest",
    "StaffStatus",
    "WalkInRequest",
    "WorkHours",
]
