"""
Booking request validator.

Runs every scheduling check against a proposed booking and collects the
results. Errors block the booking; warnings are shown but never affect
validity. Only missing arguments stop the checks early.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field, computed_field

from models.booking import Booking, BookingConflict
from models.room import Room
from models.service import Service
from models.staff import Staff
from utils.datetime_utils import parse_time_string, weekday_index, weekday_name

from .conflicts import BookingCandidate, check_booking_conflicts
from .hours import DEFAULT_BUSINESS_HOURS, BusinessHours, minutes_to_clock, to_minutes
from .room_assignment import get_optimal_room
from .staff_availability import (
    PrefetchedBlockStore,
    ScheduleBlockStore,
    is_staff_available_at_time,
    validate_staff_capability,
)
from .time_slots import can_accommodate_service, generate_time_slots, parse_end_time

logger = logging.getLogger(__name__)


class TimeValidation(BaseModel):
    """Outcome of the date/time policy checks."""

    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @computed_field
    @property
    def is_valid(self) -> bool:
        return not self.errors


class ValidationResult(BaseModel):
    """Validator verdict consumed by the booking UI."""

    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    conflicts: List[BookingConflict] = Field(default_factory=list)
    end_time: Optional[str] = None

    @computed_field
    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add_errors(self, messages: Iterable[str]) -> None:
        for message in messages:
            if message not in self.errors:
                self.errors.append(message)

    def add_warning(self, message: str) -> None:
        if message not in self.warnings:
            self.warnings.append(message)


class SlotAvailability(BaseModel):
    time: str
    available: bool
    reason: Optional[str] = None


def _business_hours_error(start_minutes: int, duration: int, hours: BusinessHours) -> str:
    end_minutes = start_minutes + duration

    if start_minutes < hours.open_minutes:
        return f"Appointment cannot start before business hours ({hours.open_label})"
    if end_minutes > hours.close_minutes:
        return f"Appointment would end after business hours ({hours.close_label})"
    if start_minutes > hours.last_booking_minutes:
        return (
            f"Last appointment must start by {minutes_to_clock(hours.last_booking_minutes)} "
            f"to allow completion before closing"
        )
    return (
        f"Appointment and {hours.buffer_minutes}-minute cleaning buffer would end "
        f"after business hours ({hours.close_label})"
    )


def validate_booking_time(
    target_date: date,
    start_time: str,
    duration: int,
    now: Optional[datetime] = None,
    hours: Optional[BusinessHours] = None,
) -> TimeValidation:
    """
    Check a date and start time against the booking policy.

    Past dates and times are rejected, as are dates beyond the advance
    window and starts that do not fit the business day. Same-day bookings
    close to now and reduced-staffing weekdays only produce warnings.

    Args:
        target_date: Appointment date
        start_time: "HH:MM" start
        duration: Service length in minutes
        now: Current business-local time (defaults to the system clock)
        hours: Business hours configuration

    Returns:
        TimeValidation with errors and warnings
    """
    hours = hours or DEFAULT_BUSINESS_HOURS
    now = now or datetime.now()
    today = now.date()
    result = TimeValidation()

    start = parse_time_string(start_time)
    if start is None:
        result.errors.append(f"Invalid start time: {start_time!r}")
        return result

    if target_date < today:
        result.errors.append("Cannot book appointments for past dates")
    elif target_date == today:
        requested = datetime.combine(target_date, start)
        if requested < now:
            result.errors.append(
                "Cannot book appointments for times that have already passed today"
            )
        elif requested < now + timedelta(minutes=hours.same_day_warning_minutes):
            result.warnings.append(
                "Booking is less than 1 hour from now - please ensure adequate "
                "preparation time"
            )

    if target_date > today + timedelta(days=hours.max_advance_days):
        result.errors.append(
            f"Cannot book more than {hours.max_advance_days} days in advance"
        )

    if not can_accommodate_service(start_time, duration, target_date, hours=hours):
        result.errors.append(_business_hours_error(to_minutes(start), duration, hours))

    if weekday_index(target_date) in hours.reduced_staffing_days:
        result.warnings.append(
            f"Limited staff availability on {weekday_name(target_date)}s"
        )

    return result


async def validate_booking_request(
    service: Optional[Service],
    staff: Optional[Staff],
    room: Optional[Room],
    target_date: Optional[date],
    start_time: Optional[str],
    existing_bookings: Iterable[Booking] = (),
    *,
    block_store: Optional[ScheduleBlockStore] = None,
    now: Optional[datetime] = None,
    hours: Optional[BusinessHours] = None,
) -> ValidationResult:
    """
    Validate a booking request.

    Args:
        service: Service being booked
        staff: Staff member performing it
        room: Proposed room
        target_date: Appointment date
        start_time: "HH:MM" start
        existing_bookings: Snapshot of bookings to check conflicts against
        block_store: Source of schedule blocks
        now: Current business-local time
        hours: Business hours configuration

    Returns:
        ValidationResult; is_valid is True exactly when errors is empty
    """
    hours = hours or DEFAULT_BUSINESS_HOURS
    result = ValidationResult()

    missing = [
        message
        for value, message in (
            (service, "Service is required"),
            (staff, "Staff member is required"),
            (room, "Room is required"),
            (target_date, "Date is required"),
            (start_time, "Start time is required"),
        )
        if not value
    ]
    if missing:
        result.add_errors(missing)
        return result

    end = parse_end_time(start_time, service.duration)
    if end.ok:
        result.end_time = end.value
    else:
        result.add_errors([f"Could not calculate end time: {end.error}"])

    time_check = validate_booking_time(
        target_date, start_time, service.duration, now=now, hours=hours
    )
    result.add_errors(time_check.errors)
    for warning in time_check.warnings:
        result.add_warning(warning)

    capability = validate_staff_capability(staff, service)
    result.add_errors(capability.reasons)

    if end.ok:
        availability = await is_staff_available_at_time(
            staff,
            target_date,
            start_time,
            service.duration,
            block_store=block_store,
            now=now,
            hours=hours,
        )
        result.add_errors(availability.reasons)

    assignment = get_optimal_room(service, staff, [room])
    if assignment.room is None or assignment.room.id != room.id:
        if assignment.errors:
            result.add_errors(assignment.errors)
        else:
            result.add_warning(
                f"{room.name} may not be optimal for this service: {assignment.reason}"
            )

    if end.ok:
        candidate = BookingCandidate(
            staff_id=staff.id,
            room_id=room.id,
            appointment_date=target_date,
            start_time=parse_time_string(start_time),
            end_time=parse_time_string(end.value),
            service_id=service.id,
        )
        result.conflicts = check_booking_conflicts(
            candidate, existing_bookings, hours=hours
        )
        # One error per conflicting booking, even when two read the same
        result.errors.extend(conflict.message for conflict in result.conflicts)

    if not result.is_valid:
        logger.debug(
            f"Booking request {service.name} with {staff.name} in {room.name} "
            f"on {target_date} {start_time} rejected: {result.errors}"
        )

    return result


async def generate_available_time_slots(
    target_date: date,
    service: Service,
    staff: Optional[Staff] = None,
    room: Optional[Room] = None,
    existing_bookings: Iterable[Booking] = (),
    *,
    block_store: Optional[ScheduleBlockStore] = None,
    now: Optional[datetime] = None,
    hours: Optional[BusinessHours] = None,
) -> List[SlotAvailability]:
    """
    Generate the day's slots with a validity verdict for each one.

    Without both a staff member and a room every generated slot is reported
    available. Schedule blocks are fetched once for the whole day.
    """
    hours = hours or DEFAULT_BUSINESS_HOURS
    slots = generate_time_slots(target_date, service.duration, now=now, hours=hours)

    if not (staff and room):
        return [SlotAvailability(time=slot, available=True) for slot in slots]

    existing_bookings = list(existing_bookings)
    if block_store is not None:
        blocks = await block_store.get_schedule_blocks(staff.id, target_date)
        block_store = PrefetchedBlockStore(blocks)

    results = []
    for slot in slots:
        validation = await validate_booking_request(
            service,
            staff,
            room,
            target_date,
            slot,
            existing_bookings,
            block_store=block_store,
            now=now,
            hours=hours,
        )
        reasons = validation.errors or validation.warnings
        results.append(
            SlotAvailability(
                time=slot,
                available=validation.is_valid,
                reason=reasons[0] if reasons else None,
            )
        )

    return results
