"""
Staff availability evaluator.

Decides whether a staff member can take an appointment on a given day and
time window. The decision is layered and short-circuits at the first layer
that rules the staff member out:

1. inactive staff / staff marked "off"
2. weekday not in work_days
3. requested window outside the staff member's hours for that day
4. on-call staff without enough advance notice
5. schedule blocks (full day or overlapping time range)
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional, Protocol, Sequence

from pydantic import BaseModel, Field

from models.schedule_block import BlockType, ScheduleBlock
from models.service import Service
from models.staff import Staff, StaffStatus
from utils.datetime_utils import WEEKDAY_NAMES, parse_time_string, weekday_index, weekday_name

from .hours import DEFAULT_BUSINESS_HOURS, BusinessHours, minutes_to_clock, to_minutes

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_REASON = "Scheduled time off"


class ScheduleBlockStore(Protocol):
    """Read access to persisted schedule blocks."""

    async def get_schedule_blocks(
        self, staff_id: str, target_date: date
    ) -> List[ScheduleBlock]: ...


class PrefetchedBlockStore:
    """
    Schedule block store over an already fetched list.

    Used when many slots of the same day are evaluated, so the database is
    queried once instead of once per slot.
    """

    def __init__(self, blocks: Iterable[ScheduleBlock]):
        self._blocks = list(blocks)

    async def get_schedule_blocks(
        self, staff_id: str, target_date: date
    ) -> List[ScheduleBlock]:
        return [
            block
            for block in self._blocks
            if block.staff_id == staff_id and block.covers(target_date)
        ]


class DayAvailability(BaseModel):
    """Whether a staff member works on a given day, and when."""

    is_available: bool
    work_start: Optional[str] = None
    work_end: Optional[str] = None
    reasons: List[str] = Field(default_factory=list)
    day_name: str = ""


class StaffAvailability(BaseModel):
    """Availability verdict for a concrete time window."""

    available: bool
    reasons: List[str] = Field(default_factory=list)


class CapabilityCheck(BaseModel):
    can_perform: bool
    reasons: List[str] = Field(default_factory=list)


def can_staff_perform_service(staff: Optional[Staff], service: Optional[Service]) -> bool:
    """Check if an active staff member is qualified for the service category."""
    if not staff or not service:
        return False

    if not staff.is_active:
        return False

    return staff.can_perform(service.category)


def validate_staff_capability(
    staff: Optional[Staff], service: Optional[Service]
) -> CapabilityCheck:
    """Capability check with human-readable reasons."""
    if not staff:
        return CapabilityCheck(can_perform=False, reasons=["No staff member specified"])

    if not service:
        return CapabilityCheck(can_perform=False, reasons=["No service specified"])

    if not staff.is_active:
        return CapabilityCheck(
            can_perform=False, reasons=[f"{staff.name} is currently inactive"]
        )

    if not staff.can_perform(service.category):
        return CapabilityCheck(
            can_perform=False,
            reasons=[
                f"{staff.name} is not qualified to perform "
                f"{service.category.value} services"
            ],
        )

    return CapabilityCheck(can_perform=True)


def _plural_day_list(days: Sequence[int]) -> str:
    names = [f"{WEEKDAY_NAMES[day]}s" for day in days]
    if len(names) == 1:
        return names[0]
    return ", ".join(names[:-1]) + f" and {names[-1]}"


def describe_off_day(staff: Staff) -> str:
    """Explain which weekdays a staff member does not work."""
    if not staff.work_days:
        return f"{staff.name} has no working days configured"

    if len(staff.work_days) == 1:
        return f"{staff.name} only works on {WEEKDAY_NAMES[staff.work_days[0]]}s"

    off_days = [day for day in range(7) if day not in staff.work_days]
    return f"{staff.name} is off on {_plural_day_list(off_days)}"


def get_staff_day_availability(
    staff: Optional[Staff],
    target_date: date,
    hours: Optional[BusinessHours] = None,
) -> DayAvailability:
    """
    Get a staff member's availability for a whole day.

    Working hours come from staff.work_hours for that weekday, falling back
    to business hours when none are stored.
    """
    hours = hours or DEFAULT_BUSINESS_HOURS

    if not staff:
        return DayAvailability(is_available=False, reasons=["No staff member provided"])

    if not staff.is_active:
        return DayAvailability(
            is_available=False, reasons=[f"{staff.name} is currently inactive"]
        )

    day_name = weekday_name(target_date)

    if staff.current_status == StaffStatus.OFF:
        return DayAvailability(
            is_available=False,
            reasons=[f"{staff.name} is marked as off and not taking bookings"],
            day_name=day_name,
        )

    weekday = weekday_index(target_date)
    if weekday not in staff.work_days:
        return DayAvailability(
            is_available=False,
            reasons=[describe_off_day(staff)],
            day_name=day_name,
        )

    day_hours = staff.work_hours.get(weekday)
    if day_hours:
        work_start, work_end = day_hours.start_time, day_hours.end_time
    else:
        work_start, work_end = hours.open_time, hours.close_time

    return DayAvailability(
        is_available=True,
        work_start=work_start.strftime("%H:%M"),
        work_end=work_end.strftime("%H:%M"),
        day_name=day_name,
    )


def block_overlaps(block: ScheduleBlock, start: time, end: time) -> bool:
    """
    Check a time-range block against a requested window.

    Touching edges count as an overlap.
    """
    if block.block_type == BlockType.FULL_DAY:
        return True

    return block.start_time <= end and block.end_time >= start


def _notice_reason(
    staff: Staff,
    slot_dt: datetime,
    now: datetime,
    hours: BusinessHours,
) -> Optional[str]:
    if staff.current_status != StaffStatus.ON_CALL:
        return None

    notice_hours = staff.default_advance_notice_hours
    if notice_hours is None:
        notice_hours = hours.on_call_default_notice_hours

    if slot_dt < now + timedelta(hours=notice_hours):
        return f"{staff.name} is on call and needs {notice_hours} hours advance notice"
    return None


async def is_staff_available_at_time(
    staff: Optional[Staff],
    target_date: date,
    start_time: str,
    duration: int,
    block_store: Optional[ScheduleBlockStore] = None,
    now: Optional[datetime] = None,
    hours: Optional[BusinessHours] = None,
) -> StaffAvailability:
    """
    Check if a staff member is available for a specific time window.

    Args:
        staff: Staff member to check
        target_date: Appointment date
        start_time: "HH:MM" start
        duration: Appointment length in minutes
        block_store: Source of schedule blocks (skipped when None)
        now: Current business-local time, for on-call notice
        hours: Business hours configuration

    Returns:
        StaffAvailability with at least one reason whenever unavailable
    """
    hours = hours or DEFAULT_BUSINESS_HOURS

    day = get_staff_day_availability(staff, target_date, hours=hours)
    if not day.is_available:
        return StaffAvailability(available=False, reasons=day.reasons)

    start = parse_time_string(start_time)
    if start is None:
        return StaffAvailability(
            available=False, reasons=[f"Invalid start time: {start_time!r}"]
        )

    start_minutes = to_minutes(start)
    end_minutes = start_minutes + duration
    end_label = minutes_to_clock(end_minutes)

    work_start = to_minutes(parse_time_string(day.work_start))
    work_end = to_minutes(parse_time_string(day.work_end))
    if start_minutes < work_start or end_minutes > work_end:
        return StaffAvailability(
            available=False,
            reasons=[
                f"{staff.name} works {day.work_start}-{day.work_end}, "
                f"but service time is {minutes_to_clock(start_minutes)}-{end_label}"
            ],
        )

    if now is not None:
        reason = _notice_reason(staff, datetime.combine(target_date, start), now, hours)
        if reason:
            return StaffAvailability(available=False, reasons=[reason])

    if block_store is None:
        return StaffAvailability(available=True)

    end = parse_time_string(end_label)
    blocks = await block_store.get_schedule_blocks(staff.id, target_date)

    for block in blocks:
        if block.staff_id != staff.id or not block.covers(target_date):
            continue

        if block_overlaps(block, start, end):
            logger.debug(
                f"Schedule block {block.id} removes {staff.name} on {target_date}"
            )
            return StaffAvailability(
                available=False, reasons=[block.reason or DEFAULT_BLOCK_REASON]
            )

    return StaffAvailability(available=True)
