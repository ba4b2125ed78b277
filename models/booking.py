"""Booking models for appointments."""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class BookingStatus(str, Enum):
    """Booking status."""

    CONFIRMED = "confirmed"
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    IN_PROGRESS = "in_progress"


class BookingType(str, Enum):
    """How the booking entered the schedule."""

    SINGLE = "single"
    COUPLE = "couple"
    BUFFER = "buffer"
    WALK_IN = "walk_in"


class Booking(BaseModel):
    """Booking model."""

    id: Optional[str] = None
    customer_id: Optional[str] = None
    service_id: Optional[str] = None
    staff_id: str
    room_id: int
    appointment_date: date
    start_time: time
    end_time: time
    status: BookingStatus = BookingStatus.CONFIRMED
    booking_type: BookingType = BookingType.SINGLE
    booking_group_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "staff_id": "robyn",
                "room_id": 1,
                "appointment_date": "2026-03-11",
                "start_time": "10:00",
                "end_time": "10:30",
                "status": "confirmed",
            }
        }


class BookingCreate(BaseModel):
    """Booking creation model (the row handed to the database commit)."""

    customer_id: Optional[str] = None
    service_id: str
    staff_id: str
    room_id: int
    appointment_date: date
    start_time: time
    end_time: time
    duration: int = Field(..., gt=0)
    total_price: Decimal = Field(..., ge=0)
    status: BookingStatus = BookingStatus.CONFIRMED
    booking_type: BookingType = BookingType.SINGLE
    booking_group_id: Optional[str] = None
    notes: Optional[str] = None


class BookingRequest(BaseModel):
    """Customer or admin request to book a service."""

    service_id: str
    staff_id: str
    room_id: Optional[int] = None
    appointment_date: date
    start_time: str
    customer_id: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=1000)
    booking_type: BookingType = BookingType.SINGLE


class ConflictType(str, Enum):
    """What a conflicting booking collides on."""

    STAFF = "staff"
    ROOM = "room"


class BookingConflict(BaseModel):
    """One staff or room overlap with an existing booking."""

    type: ConflictType
    message: str
    conflicting_booking: Optional[Booking] = None


class CouplesBookingRequest(BaseModel):
    """Two guests booked side by side in one room."""

    service_id: str
    staff_id: str
    partner_staff_id: str
    partner_service_id: Optional[str] = None
    appointment_date: date
    start_time: str
    customer_id: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=1000)


class RescheduleRequest(BaseModel):
    """Admin request to move a booking to another date and time."""

    new_date: date
    new_start_time: str
    reason: Optional[str] = Field(default=None, max_length=500)


class StaffReassignmentRequest(BaseModel):
    new_staff_id: str
    reason: Optional[str] = Field(default=None, max_length=500)


class WalkInRequest(BaseModel):
    """
    Front-desk booking for a guest who arrived without an appointment.

    The appointment is always today; without a start time the next slot
    boundary is used.
    """

    service_id: str
    staff_id: str
    room_id: Optional[int] = None
    start_time: Optional[str] = None
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "service_id": "basic-facial",
                "staff_id": "selma",
                "customer_name": "Maria Santos",
                "customer_phone": "+1 671 555 0142",
            }
        }
