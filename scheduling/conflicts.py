"""
Conflict detection between a candidate booking and existing bookings.

This is a fast, informative pre-check for the booking UI. Two requests can
both pass it before either is written; the database exclusion constraint on
bookings is what finally rejects an overlapping commit.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, NamedTuple, Optional

from pydantic import BaseModel

from models.booking import Booking, BookingConflict, BookingStatus, ConflictType
from models.schedule_block import BlockType, ScheduleBlock

from .hours import DEFAULT_BUSINESS_HOURS, BusinessHours

logger = logging.getLogger(__name__)


class BookingCandidate(BaseModel):
    """The booking being checked."""

    staff_id: str
    room_id: int
    appointment_date: date
    start_time: time
    end_time: time
    service_id: Optional[str] = None


class Interval(NamedTuple):
    start: datetime
    end: datetime

    def widen(self, minutes: int) -> "Interval":
        delta = timedelta(minutes=minutes)
        return Interval(self.start - delta, self.end + delta)


def booking_interval(appointment_date: date, start: time, end: time) -> Interval:
    return Interval(
        datetime.combine(appointment_date, start),
        datetime.combine(appointment_date, end),
    )


def intervals_conflict(a: Interval, b: Interval, buffer_minutes: int = 0) -> bool:
    """
    Check two intervals for a conflict after widening both by the buffer.

    Strict overlap conflicts, and so do intervals that start or end at the
    same instant. The check is symmetric in a and b.
    """
    if buffer_minutes:
        a = a.widen(buffer_minutes)
        b = b.widen(buffer_minutes)

    return (
        (a.start < b.end and a.end > b.start)
        or a.start == b.start
        or a.end == b.end
    )


def check_booking_conflicts(
    candidate: BookingCandidate,
    existing_bookings: Iterable[Booking],
    include_buffer: bool = True,
    hours: Optional[BusinessHours] = None,
) -> List[BookingConflict]:
    """
    Find staff and room double-bookings for a candidate booking.

    Cancelled bookings are ignored. A single existing booking produces a
    staff conflict and a room conflict when it shares both.

    Args:
        candidate: Booking being checked
        existing_bookings: Snapshot of bookings to check against
        include_buffer: Widen both sides by the cleaning buffer
        hours: Business hours configuration (buffer length)

    Returns:
        List of conflicts, in existing-booking order
    """
    hours = hours or DEFAULT_BUSINESS_HOURS
    buffer_minutes = hours.buffer_minutes if include_buffer else 0

    new_interval = booking_interval(
        candidate.appointment_date, candidate.start_time, candidate.end_time
    )

    conflicts = []
    for booking in existing_bookings:
        if booking.status == BookingStatus.CANCELLED:
            continue

        existing_interval = booking_interval(
            booking.appointment_date, booking.start_time, booking.end_time
        )
        if not intervals_conflict(new_interval, existing_interval, buffer_minutes):
            continue

        booked_range = (
            f"{booking.start_time.strftime('%H:%M')} to "
            f"{booking.end_time.strftime('%H:%M')}"
        )

        if booking.staff_id == candidate.staff_id:
            suffix = f" (including {buffer_minutes}-minute buffer time)" if buffer_minutes else ""
            conflicts.append(
                BookingConflict(
                    type=ConflictType.STAFF,
                    message=f"Staff member is already booked from {booked_range}{suffix}",
                    conflicting_booking=booking,
                )
            )

        if booking.room_id == candidate.room_id:
            suffix = f" (including {buffer_minutes}-minute cleaning buffer)" if buffer_minutes else ""
            conflicts.append(
                BookingConflict(
                    type=ConflictType.ROOM,
                    message=f"Room is already booked from {booked_range}{suffix}",
                    conflicting_booking=booking,
                )
            )

    if conflicts:
        logger.debug(
            f"{len(conflicts)} conflict(s) for staff {candidate.staff_id} / "
            f"room {candidate.room_id} on {candidate.appointment_date}"
        )

    return conflicts


def find_bookings_affected_by_block(
    block: ScheduleBlock, bookings: Iterable[Booking]
) -> List[Booking]:
    """
    Bookings of the blocked staff member that a new schedule block would cut into.

    Full-day blocks affect every booking in the date range; time-range blocks
    affect bookings overlapping the window (same start or end counts).
    """
    affected = []
    for booking in bookings:
        if booking.status == BookingStatus.CANCELLED:
            continue
        if booking.staff_id != block.staff_id or not block.covers(booking.appointment_date):
            continue

        if block.block_type == BlockType.FULL_DAY:
            affected.append(booking)
            continue

        block_interval = booking_interval(
            booking.appointment_date, block.start_time, block.end_time
        )
        existing = booking_interval(
            booking.appointment_date, booking.start_time, booking.end_time
        )
        if intervals_conflict(block_interval, existing):
            affected.append(booking)

    return affected
