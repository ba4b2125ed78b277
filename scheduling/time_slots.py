"""
Time and slot arithmetic for the booking calendar.

Everything here is pure: callers pass the business hours and, where the
minimum-notice rule matters, the current time. Malformed clock strings never
raise; they produce a safe False or the unchanged input.
"""

import logging
from datetime import date, datetime, timedelta
from typing import List, NamedTuple, Optional

from pydantic import BaseModel

from utils.datetime_utils import parse_time_string
from utils.exceptions import TimeParseError

from .hours import DEFAULT_BUSINESS_HOURS, BusinessHours, minutes_to_clock, to_minutes

logger = logging.getLogger(__name__)


class TimeResult(NamedTuple):
    """Outcome of a clock computation: either a value or the reason it failed."""

    value: Optional[str]
    error: Optional[TimeParseError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AccommodationDetails(BaseModel):
    """Why a start time does or does not fit into the business day."""

    can_accommodate: bool
    end_time: str
    business_end: str
    minutes_until_close: int
    reason: Optional[str] = None


def parse_end_time(start_time: str, duration: int) -> TimeResult:
    """
    Compute start + duration as "HH:MM", wrapping past midnight.

    Args:
        start_time: "HH:MM" or "HH:MM:SS"
        duration: Duration in minutes (must be positive)

    Returns:
        TimeResult with the end time, or with an error explaining the failure
    """
    start = parse_time_string(start_time)
    if start is None:
        return TimeResult(None, TimeParseError(f"Invalid start time format: {start_time!r}"))

    if not isinstance(duration, int) or isinstance(duration, bool) or duration <= 0:
        return TimeResult(None, TimeParseError(f"Duration must be positive, got {duration!r}"))

    return TimeResult(minutes_to_clock(to_minutes(start) + duration))


def calculate_end_time(start_time: str, duration: int) -> str:
    """
    Calculate end time based on service duration.

    Fails soft: an unparseable start or non-positive duration returns the
    start time unchanged. Callers must treat an unchanged value as a failure.
    """
    result = parse_end_time(start_time, duration)
    if not result.ok:
        logger.warning(f"Error calculating end time: {result.error}")
        return start_time
    return result.value


def is_time_slot_bookable(
    target_date: date,
    slot_time: str,
    now: datetime,
    notice_hours: Optional[int] = None,
    hours: Optional[BusinessHours] = None,
) -> bool:
    """
    Check the minimum advance notice rule.

    The slot must start strictly later than now + notice_hours
    (defaults to the business minimum notice).
    """
    hours = hours or DEFAULT_BUSINESS_HOURS
    start = parse_time_string(slot_time)
    if start is None:
        return False

    if notice_hours is None:
        notice_hours = hours.min_notice_hours

    slot_dt = datetime.combine(target_date, start)
    return slot_dt > now + timedelta(hours=notice_hours)


def generate_time_slots(
    target_date: date,
    service_duration: Optional[int] = None,
    consider_last_booking: bool = True,
    now: Optional[datetime] = None,
    hours: Optional[BusinessHours] = None,
) -> List[str]:
    """
    Generate candidate start times for a day.

    Slots run from opening time up to and including the latest legal start:
    close - (duration + buffer) when a duration is given, otherwise
    close - last booking offset. When ``now`` is given, slots inside the
    minimum notice window are dropped.

    Args:
        target_date: Day to generate slots for
        service_duration: Service length in minutes
        consider_last_booking: Use the duration-based cutoff when possible
        now: Current business-local time for the notice rule
        hours: Business hours configuration

    Returns:
        Ordered list of "HH:MM" strings
    """
    hours = hours or DEFAULT_BUSINESS_HOURS

    if consider_last_booking and service_duration:
        latest_start = hours.close_minutes - (service_duration + hours.buffer_minutes)
    else:
        latest_start = hours.last_booking_minutes

    slots = []
    current = hours.open_minutes

    while current <= latest_start:
        slot_time = minutes_to_clock(current)
        if now is None or is_time_slot_bookable(target_date, slot_time, now, hours=hours):
            slots.append(slot_time)
        current += hours.slot_minutes

    return slots


def can_accommodate_service(
    start_time: str,
    service_duration: int,
    target_date: date,
    include_buffer: bool = True,
    hours: Optional[BusinessHours] = None,
) -> bool:
    """
    Check if a start time can fit a service inside business hours.

    True iff start >= open, start <= close - last booking offset and
    start + duration (+ buffer) <= close. Business hours are the same every
    day, so target_date only identifies the day being checked.
    """
    hours = hours or DEFAULT_BUSINESS_HOURS
    start = parse_time_string(start_time)
    if start is None or not isinstance(service_duration, int) or service_duration <= 0:
        return False

    start_minutes = to_minutes(start)
    if start_minutes < hours.open_minutes:
        return False

    total = service_duration + (hours.buffer_minutes if include_buffer else 0)
    if start_minutes + total > hours.close_minutes:
        return False

    if start_minutes > hours.last_booking_minutes:
        return False

    return True


def get_accommodation_details(
    start_time: str,
    service_duration: int,
    target_date: date,
    hours: Optional[BusinessHours] = None,
) -> AccommodationDetails:
    """Explain whether a start time fits, with the minutes left before closing."""
    hours = hours or DEFAULT_BUSINESS_HOURS
    start = parse_time_string(start_time)

    if start is None:
        return AccommodationDetails(
            can_accommodate=False,
            end_time=start_time,
            business_end=hours.close_label,
            minutes_until_close=0,
            reason="Invalid start time",
        )

    end_minutes = to_minutes(start) + service_duration
    can_accommodate = can_accommodate_service(
        start_time, service_duration, target_date, hours=hours
    )

    reason = None
    if not can_accommodate:
        if to_minutes(start) < hours.open_minutes:
            reason = "Start time is before business hours"
        elif end_minutes > hours.close_minutes:
            reason = "Service would end after business hours"
        else:
            reason = "Too close to closing time"

    return AccommodationDetails(
        can_accommodate=can_accommodate,
        end_time=minutes_to_clock(end_minutes),
        business_end=hours.close_label,
        minutes_until_close=hours.close_minutes - end_minutes,
        reason=reason,
    )


def calculate_next_available_slot(
    last_booking_end_time: str,
    buffer_minutes: Optional[int] = None,
    hours: Optional[BusinessHours] = None,
) -> str:
    """Earliest start after a booking ends, once the cleaning buffer has passed."""
    hours = hours or DEFAULT_BUSINESS_HOURS
    end = parse_time_string(last_booking_end_time)
    if end is None:
        return last_booking_end_time

    if buffer_minutes is None:
        buffer_minutes = hours.buffer_minutes
    return minutes_to_clock(to_minutes(end) + buffer_minutes)


def next_slot_start(now: datetime, hours: Optional[BusinessHours] = None) -> str:
    """First slot boundary at or after now, e.g. 10:07 -> "10:15"."""
    hours = hours or DEFAULT_BUSINESS_HOURS
    minutes = now.hour * 60 + now.minute
    if now.second or now.microsecond:
        minutes += 1

    slot = hours.slot_minutes
    return minutes_to_clock(-(-minutes // slot) * slot)


def get_total_appointment_duration(
    service_duration: int,
    include_buffer: bool = True,
    hours: Optional[BusinessHours] = None,
) -> int:
    hours = hours or DEFAULT_BUSINESS_HOURS
    return service_duration + (hours.buffer_minutes if include_buffer else 0)


def format_duration(minutes: int) -> str:
    """Format a duration for display ("1 hr 30 min")."""
    if minutes < 60:
        return f"{minutes} min"

    hours, remaining = divmod(minutes, 60)
    if remaining == 0:
        return f"{hours} hr"

    return f"{hours} hr {remaining} min"
