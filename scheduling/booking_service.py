"""
Booking service: validate against a fresh snapshot, then commit.

The validator runs on the bookings read at request time; the database
constraint on the bookings table is the final arbiter and may still reject
the commit with BookingConflictError.
"""

import uuid
from datetime import date, datetime
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from config import settings
from db.supabase_client import ConflictCheckCriteria, SupabaseClient
from models.booking import (
    Booking,
    BookingCreate,
    BookingRequest,
    BookingStatus,
    BookingType,
    ConflictType,
    CouplesBookingRequest,
    WalkInRequest,
)
from models.customer import Customer, CustomerCreate
from models.room import Room
from models.service import Service
from models.staff import Staff
from utils.constants import MAX_WALK_IN_NOTES_LENGTH
from utils.datetime_utils import business_now, format_time, parse_time_string
from utils.exceptions import (
    BookingConflictError,
    RoomNotFoundError,
    ServiceNotFoundError,
    StaffNotFoundError,
)
from utils.logging_config import setup_logging
from utils.validation import validate_email, validate_phone

from .conflicts import BookingCandidate, check_booking_conflicts
from .hours import BusinessHours
from .room_assignment import get_optimal_room
from .staff_availability import (
    PrefetchedBlockStore,
    can_staff_perform_service,
    is_staff_available_at_time,
    validate_staff_capability,
)
from .time_slots import calculate_end_time, generate_time_slots, next_slot_start
from .validator import (
    SlotAvailability,
    ValidationResult,
    generate_available_time_slots,
    validate_booking_request,
)

logger = setup_logging(
    name=__name__, log_level="INFO", log_file="bookings.log", log_dir="logs"
)


class BookingOutcome(BaseModel):
    """Result of a booking attempt."""

    success: bool
    bookings: List[Booking] = Field(default_factory=list)
    validation: Optional[ValidationResult] = None
    error: Optional[str] = None

    @property
    def booking(self) -> Optional[Booking]:
        return self.bookings[0] if self.bookings else None


class RescheduleSlot(BaseModel):
    time: str
    staff_available: bool
    room_available: bool
    reason: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.staff_available and self.room_available


class StaffOption(BaseModel):
    """A staff member considered for taking over a booking."""

    staff_id: str
    staff_name: str
    can_perform: bool
    is_available: bool
    conflict_reason: Optional[str] = None


_FINAL_STATUSES = (
    BookingStatus.CANCELLED,
    BookingStatus.COMPLETED,
    BookingStatus.NO_SHOW,
    BookingStatus.IN_PROGRESS,
)


def _failure(error: str) -> BookingOutcome:
    return BookingOutcome(
        success=False, validation=ValidationResult(errors=[error]), error=error
    )


def _rejected(validation: ValidationResult) -> BookingOutcome:
    return BookingOutcome(success=False, validation=validation, error=validation.errors[0])


def _merge_validation(target: ValidationResult, result: ValidationResult) -> None:
    target.add_errors(result.errors)
    for warning in result.warnings:
        target.add_warning(warning)
    target.conflicts.extend(result.conflicts)


def _resolve_hours(hours: Optional[BusinessHours]) -> BusinessHours:
    return hours or settings.business_hours()


def _resolve_now(now: Optional[datetime]) -> datetime:
    return now or business_now(settings.timezone)


async def _load_service(db: SupabaseClient, service_id: str) -> Service:
    service = await db.get_service(service_id)
    if not service or not service.is_active:
        raise ServiceNotFoundError(f"Service {service_id} not found")
    return service


async def _load_staff(db: SupabaseClient, staff_id: str) -> Staff:
    staff = await db.get_staff(staff_id)
    if not staff:
        raise StaffNotFoundError(f"Staff member {staff_id} not found")
    return staff


async def _resolve_room(
    db: SupabaseClient,
    service: Service,
    staff: Staff,
    room_id: Optional[int],
) -> Tuple[Optional[Room], List[str]]:
    """Return (room, errors); the room is None when no room could be chosen."""
    if room_id is not None:
        room = await db.get_room(room_id)
        if not room:
            raise RoomNotFoundError(f"Room {room_id} not found")
        return room, []

    assignment = get_optimal_room(service, staff, await db.get_active_rooms())
    logger.info(f"Room for {service.name}: {assignment.reason}")
    return assignment.room, assignment.errors


def _booking_row(
    service: Service,
    staff: Staff,
    room: Room,
    target_date: date,
    start_time: str,
    end_time: str,
    customer_id: Optional[str],
    notes: Optional[str],
    booking_type: BookingType = BookingType.SINGLE,
    booking_group_id: Optional[str] = None,
) -> BookingCreate:
    return BookingCreate(
        customer_id=customer_id,
        service_id=service.id,
        staff_id=staff.id,
        room_id=room.id,
        appointment_date=target_date,
        start_time=parse_time_string(start_time),
        end_time=parse_time_string(end_time),
        duration=service.duration,
        total_price=service.price,
        booking_type=booking_type,
        booking_group_id=booking_group_id,
        notes=notes,
    )


async def _check_request(
    request: BookingRequest,
    db: SupabaseClient,
    now: datetime,
    hours: BusinessHours,
) -> Tuple[Service, Staff, Optional[Room], ValidationResult]:
    service = await _load_service(db, request.service_id)
    staff = await _load_staff(db, request.staff_id)
    room, room_errors = await _resolve_room(db, service, staff, request.room_id)

    if room is None:
        return service, staff, None, ValidationResult(errors=room_errors)

    existing = await db.get_bookings_for_conflict_check(
        ConflictCheckCriteria(
            appointment_date=request.appointment_date,
            staff_id=staff.id,
            room_id=room.id,
        )
    )

    validation = await validate_booking_request(
        service,
        staff,
        room,
        request.appointment_date,
        request.start_time,
        existing,
        block_store=db,
        now=now,
        hours=hours,
    )
    return service, staff, room, validation


async def validate_request(
    request: BookingRequest,
    db: SupabaseClient,
    now: Optional[datetime] = None,
    hours: Optional[BusinessHours] = None,
) -> ValidationResult:
    """
    Validate a booking request against the current schedule without committing.

    Raises:
        ServiceNotFoundError, StaffNotFoundError, RoomNotFoundError
    """
    _, _, _, validation = await _check_request(
        request, db, _resolve_now(now), _resolve_hours(hours)
    )
    return validation


async def create_booking(
    request: BookingRequest,
    db: SupabaseClient,
    now: Optional[datetime] = None,
    hours: Optional[BusinessHours] = None,
) -> BookingOutcome:
    """
    Validate and commit a single booking.

    Returns:
        BookingOutcome; success is False when validation failed or the
        database rejected the commit as overlapping
    """
    service, staff, room, validation = await _check_request(
        request, db, _resolve_now(now), _resolve_hours(hours)
    )

    if not validation.is_valid:
        logger.info(
            f"Booking rejected for {staff.name} on {request.appointment_date} "
            f"{request.start_time}: {validation.errors[0]}"
        )
        return _rejected(validation)

    return await _commit_single(service, staff, room, request, validation, db)


async def _commit_single(
    service: Service,
    staff: Staff,
    room: Room,
    request: BookingRequest,
    validation: ValidationResult,
    db: SupabaseClient,
) -> BookingOutcome:
    row = _booking_row(
        service,
        staff,
        room,
        request.appointment_date,
        request.start_time,
        validation.end_time,
        request.customer_id,
        request.notes,
        booking_type=request.booking_type,
    )

    try:
        booking = await db.create_booking(row)
    except BookingConflictError as e:
        return BookingOutcome(success=False, validation=validation, error=str(e))

    logger.info(
        f"Booking {booking.id} created: {service.name} with {staff.name} in "
        f"{room.name} on {booking.appointment_date} {request.start_time}"
    )
    return BookingOutcome(success=True, bookings=[booking], validation=validation)


async def create_couples_booking(
    request: CouplesBookingRequest,
    db: SupabaseClient,
    now: Optional[datetime] = None,
    hours: Optional[BusinessHours] = None,
) -> BookingOutcome:
    """
    Validate and commit a couples appointment.

    Both guests share one couples room and a booking_group_id. Each staff
    member is validated against that room; the two rows are committed
    together.
    """
    hours = _resolve_hours(hours)
    now = _resolve_now(now)

    if request.staff_id == request.partner_staff_id:
        return _failure("Couples bookings need two different staff members")

    service = await _load_service(db, request.service_id)
    partner_service = service
    if request.partner_service_id and request.partner_service_id != service.id:
        partner_service = await _load_service(db, request.partner_service_id)

    staff = await _load_staff(db, request.staff_id)
    partner = await _load_staff(db, request.partner_staff_id)

    # The room has to hold both guests even when the services themselves are single
    couples_service = service.model_copy(update={"is_couples_service": True})
    partner_couples_service = partner_service.model_copy(update={"is_couples_service": True})
    assignment = get_optimal_room(couples_service, staff, await db.get_active_rooms())
    if assignment.room is None:
        return _rejected(ValidationResult(errors=assignment.errors))
    room = assignment.room

    validation = ValidationResult()
    end_times = []
    for guest_service, guest_staff in (
        (couples_service, staff),
        (partner_couples_service, partner),
    ):
        existing = await db.get_bookings_for_conflict_check(
            ConflictCheckCriteria(
                appointment_date=request.appointment_date, staff_id=guest_staff.id
            )
        )
        result = await validate_booking_request(
            guest_service,
            guest_staff,
            room,
            request.appointment_date,
            request.start_time,
            existing,
            block_store=db,
            now=now,
            hours=hours,
        )
        _merge_validation(validation, result)
        end_times.append(result.end_time)

    # The shared room must be free for the longer of the two treatments
    room_bookings = await db.get_bookings_for_conflict_check(
        ConflictCheckCriteria(appointment_date=request.appointment_date, room_id=room.id)
    )
    if validation.is_valid:
        candidate = BookingCandidate(
            staff_id="",
            room_id=room.id,
            appointment_date=request.appointment_date,
            start_time=parse_time_string(request.start_time),
            end_time=parse_time_string(max(end_times)),
        )
        room_conflicts = check_booking_conflicts(candidate, room_bookings, hours=hours)
        validation.conflicts.extend(room_conflicts)
        validation.errors.extend(conflict.message for conflict in room_conflicts)

    if not validation.is_valid:
        return _rejected(validation)

    group_id = str(uuid.uuid4())
    rows = [
        _booking_row(
            guest_service,
            guest_staff,
            room,
            request.appointment_date,
            request.start_time,
            end_time,
            request.customer_id,
            request.notes,
            booking_type=BookingType.COUPLE,
            booking_group_id=group_id,
        )
        for (guest_service, guest_staff), end_time in zip(
            ((service, staff), (partner_service, partner)), end_times
        )
    ]

    try:
        bookings = await db.create_booking_group(rows)
    except BookingConflictError as e:
        return BookingOutcome(success=False, validation=validation, error=str(e))

    logger.info(
        f"Couples booking {group_id} created in {room.name} for "
        f"{staff.name} and {partner.name} on {request.appointment_date}"
    )
    return BookingOutcome(success=True, bookings=bookings, validation=validation)


async def get_available_slots(
    service_id: str,
    target_date: date,
    db: SupabaseClient,
    staff_id: Optional[str] = None,
    room_id: Optional[int] = None,
    now: Optional[datetime] = None,
    hours: Optional[BusinessHours] = None,
) -> List[SlotAvailability]:
    """
    Slots of a day for a service, validated for a staff member when one is given.

    Without a room the resolver picks one for the staff member.
    """
    hours = _resolve_hours(hours)
    now = _resolve_now(now)

    service = await _load_service(db, service_id)
    if not staff_id:
        return await generate_available_time_slots(target_date, service, now=now, hours=hours)

    staff = await _load_staff(db, staff_id)
    room, room_errors = await _resolve_room(db, service, staff, room_id)
    if room is None:
        return [
            SlotAvailability(time=slot, available=False, reason=room_errors[0])
            for slot in generate_time_slots(target_date, service.duration, now=now, hours=hours)
        ]

    existing = await db.get_bookings_for_conflict_check(
        ConflictCheckCriteria(appointment_date=target_date, staff_id=staff.id, room_id=room.id)
    )
    return await generate_available_time_slots(
        target_date,
        service,
        staff,
        room,
        existing,
        block_store=db,
        now=now,
        hours=hours,
    )


async def get_reschedule_slots(
    booking: Booking,
    target_date: date,
    db: SupabaseClient,
    now: Optional[datetime] = None,
    hours: Optional[BusinessHours] = None,
) -> List[RescheduleSlot]:
    """
    Slots on target_date the booking could move to, keeping staff and room.

    The booking itself is excluded from the conflict snapshot so it never
    blocks its own move.
    """
    hours = _resolve_hours(hours)
    now = _resolve_now(now)

    service = await _load_service(db, booking.service_id)
    staff = await _load_staff(db, booking.staff_id)

    existing = await db.get_bookings_for_conflict_check(
        ConflictCheckCriteria(
            appointment_date=target_date,
            staff_id=booking.staff_id,
            room_id=booking.room_id,
            exclude_booking_id=booking.id,
        )
    )
    block_store = PrefetchedBlockStore(
        await db.get_schedule_blocks(staff.id, target_date)
    )

    slots = []
    for slot in generate_time_slots(target_date, service.duration, now=now, hours=hours):
        availability = await is_staff_available_at_time(
            staff,
            target_date,
            slot,
            service.duration,
            block_store=block_store,
            now=now,
            hours=hours,
        )
        candidate = BookingCandidate(
            staff_id=staff.id,
            room_id=booking.room_id,
            appointment_date=target_date,
            start_time=parse_time_string(slot),
            end_time=parse_time_string(calculate_end_time(slot, service.duration)),
            service_id=service.id,
        )
        conflicts = check_booking_conflicts(candidate, existing, hours=hours)

        staff_conflicts = [c for c in conflicts if c.type == ConflictType.STAFF]
        room_conflicts = [c for c in conflicts if c.type == ConflictType.ROOM]
        reasons = availability.reasons + [c.message for c in conflicts]

        slots.append(
            RescheduleSlot(
                time=slot,
                staff_available=availability.available and not staff_conflicts,
                room_available=not room_conflicts,
                reason=reasons[0] if reasons else None,
            )
        )

    return slots


async def get_available_staff_for_reassignment(
    booking: Booking,
    db: SupabaseClient,
    hours: Optional[BusinessHours] = None,
) -> List[StaffOption]:
    """List every active staff member with whether they could take the booking."""
    hours = _resolve_hours(hours)

    service = await _load_service(db, booking.service_id)
    start_label = format_time(booking.start_time)

    options = []
    for staff in await db.get_active_staff():
        can_perform = can_staff_perform_service(staff, service)

        availability = await is_staff_available_at_time(
            staff,
            booking.appointment_date,
            start_label,
            service.duration,
            block_store=db,
            hours=hours,
        )
        conflict_reason = availability.reasons[0] if availability.reasons else None

        if availability.available:
            existing = await db.get_bookings_for_conflict_check(
                ConflictCheckCriteria(
                    appointment_date=booking.appointment_date,
                    staff_id=staff.id,
                    exclude_booking_id=booking.id,
                )
            )
            candidate = BookingCandidate(
                staff_id=staff.id,
                room_id=booking.room_id,
                appointment_date=booking.appointment_date,
                start_time=booking.start_time,
                end_time=booking.end_time,
            )
            staff_conflicts = [
                c
                for c in check_booking_conflicts(candidate, existing, hours=hours)
                if c.type == ConflictType.STAFF
            ]
            if staff_conflicts:
                conflict_reason = staff_conflicts[0].message

        options.append(
            StaffOption(
                staff_id=staff.id,
                staff_name=staff.name,
                can_perform=can_perform,
                is_available=conflict_reason is None,
                conflict_reason=conflict_reason,
            )
        )

    return options


def check_reschedule_eligibility(booking: Booking, now: datetime) -> Optional[str]:
    """Reason a booking can no longer be moved or reassigned, or None."""
    if booking.status in _FINAL_STATUSES:
        return f"Cannot change a {booking.status.value.replace('_', ' ')} booking"

    if datetime.combine(booking.appointment_date, booking.start_time) <= now:
        return "Cannot change a booking that has already started"

    return None


async def _booking_with_partners(booking: Booking, db: SupabaseClient) -> List[Booking]:
    if booking.booking_type != BookingType.COUPLE or not booking.booking_group_id:
        return [booking]

    group = await db.get_bookings_by_group(booking.booking_group_id)
    return [booking] + [member for member in group if member.id != booking.id]


async def reschedule_booking(
    booking: Booking,
    new_date: date,
    new_start_time: str,
    db: SupabaseClient,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
    hours: Optional[BusinessHours] = None,
) -> BookingOutcome:
    """
    Move a booking to a new date and time, keeping its staff and room.

    A couples booking moves together with its partner. Every moved booking
    is validated like a new one, against the schedule without the group's
    own bookings.

    Returns:
        BookingOutcome with the updated bookings
    """
    hours = _resolve_hours(hours)
    now = _resolve_now(now)

    ineligible = check_reschedule_eligibility(booking, now)
    if ineligible:
        return _failure(ineligible)

    room = await db.get_room(booking.room_id)
    if not room:
        raise RoomNotFoundError(f"Room {booking.room_id} not found")

    members = await _booking_with_partners(booking, db)
    group_ids = {member.id for member in members}

    validation = ValidationResult()
    end_times = []
    for member in members:
        service = await _load_service(db, member.service_id)
        if member.booking_type == BookingType.COUPLE:
            service = service.model_copy(update={"is_couples_service": True})
        staff = await _load_staff(db, member.staff_id)

        existing = await db.get_bookings_for_conflict_check(
            ConflictCheckCriteria(
                appointment_date=new_date,
                staff_id=staff.id,
                room_id=room.id,
                exclude_booking_id=member.id,
            )
        )
        result = await validate_booking_request(
            service,
            staff,
            room,
            new_date,
            new_start_time,
            [b for b in existing if b.id not in group_ids],
            block_store=db,
            now=now,
            hours=hours,
        )
        _merge_validation(validation, result)
        end_times.append(result.end_time)

    if not validation.is_valid:
        return _rejected(validation)

    moved = []
    try:
        for member, end_time in zip(members, end_times):
            moved.append(
                await db.reschedule_booking(
                    member.id,
                    new_date,
                    parse_time_string(new_start_time),
                    parse_time_string(end_time),
                )
            )
    except BookingConflictError as e:
        return BookingOutcome(
            success=False, bookings=moved, validation=validation, error=str(e)
        )

    logger.info(
        f"Booking {booking.id} moved from {booking.appointment_date} "
        f"{format_time(booking.start_time)} to {new_date} {new_start_time}"
        + (f": {reason}" if reason else "")
    )
    return BookingOutcome(success=True, bookings=moved, validation=validation)


async def reassign_staff(
    booking: Booking,
    new_staff_id: str,
    db: SupabaseClient,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
    hours: Optional[BusinessHours] = None,
) -> BookingOutcome:
    """
    Hand a booking over to another staff member at the same time and room.

    The new staff member must be qualified, working and free; partners in a
    couples session keep two different staff members.
    """
    hours = _resolve_hours(hours)
    now = _resolve_now(now)

    if new_staff_id == booking.staff_id:
        return _failure("New staff is the same as current staff")

    ineligible = check_reschedule_eligibility(booking, now)
    if ineligible:
        return _failure(ineligible)

    partners = (await _booking_with_partners(booking, db))[1:]
    if any(partner.staff_id == new_staff_id for partner in partners):
        return _failure("Cannot assign same staff to both bookings in a couples session")

    service = await _load_service(db, booking.service_id)
    staff = await _load_staff(db, new_staff_id)

    validation = ValidationResult()
    validation.add_errors(validate_staff_capability(staff, service).reasons)

    availability = await is_staff_available_at_time(
        staff,
        booking.appointment_date,
        format_time(booking.start_time),
        service.duration,
        block_store=db,
        now=now,
        hours=hours,
    )
    validation.add_errors(availability.reasons)

    existing = await db.get_bookings_for_conflict_check(
        ConflictCheckCriteria(
            appointment_date=booking.appointment_date,
            staff_id=staff.id,
            exclude_booking_id=booking.id,
        )
    )
    candidate = BookingCandidate(
        staff_id=staff.id,
        room_id=booking.room_id,
        appointment_date=booking.appointment_date,
        start_time=booking.start_time,
        end_time=booking.end_time,
        service_id=service.id,
    )
    validation.conflicts = [
        c
        for c in check_booking_conflicts(candidate, existing, hours=hours)
        if c.type == ConflictType.STAFF
    ]
    validation.errors.extend(conflict.message for conflict in validation.conflicts)

    if not validation.is_valid:
        return _rejected(validation)

    try:
        updated = await db.reassign_booking_staff(booking.id, staff.id)
    except BookingConflictError as e:
        return BookingOutcome(success=False, validation=validation, error=str(e))

    logger.info(
        f"Booking {booking.id} reassigned from {booking.staff_id} to {staff.name}"
        + (f": {reason}" if reason else "")
    )
    return BookingOutcome(success=True, bookings=[updated], validation=validation)


def validate_walk_in(request: WalkInRequest) -> Optional[str]:
    """First problem with a walk-in guest's details, or None."""
    if not request.customer_name.strip():
        return "Customer name is required"
    if not request.customer_phone.strip():
        return "Customer phone is required"
    if not validate_phone(request.customer_phone.strip()):
        return "Please enter a valid phone number"

    email = (request.customer_email or "").strip()
    if email and not validate_email(email):
        return "Please enter a valid email address"

    if request.notes and len(request.notes) > MAX_WALK_IN_NOTES_LENGTH:
        return f"Notes must be less than {MAX_WALK_IN_NOTES_LENGTH} characters"

    return None


async def _find_or_create_customer(request: WalkInRequest, db: SupabaseClient) -> Customer:
    email = (request.customer_email or "").strip() or None
    phone = request.customer_phone.strip()

    customer = await db.get_customer_by_email(email) if email else None
    if customer is None:
        customer = await db.get_customer_by_phone(phone)
    if customer is None:
        customer = await db.create_customer(
            CustomerCreate.from_full_name(request.customer_name, phone=phone, email=email)
        )
    return customer


async def create_walk_in_booking(
    request: WalkInRequest,
    db: SupabaseClient,
    now: Optional[datetime] = None,
    hours: Optional[BusinessHours] = None,
) -> BookingOutcome:
    """
    Book a walk-in guest for today.

    The booking goes through the same validation as any other. The guest is
    matched to an existing customer by email, then phone, and only created
    once the booking itself is known to fit.
    """
    hours = _resolve_hours(hours)
    now = _resolve_now(now)

    error = validate_walk_in(request)
    if error:
        return _failure(error)

    booking_request = BookingRequest(
        service_id=request.service_id,
        staff_id=request.staff_id,
        room_id=request.room_id,
        appointment_date=now.date(),
        start_time=request.start_time or next_slot_start(now, hours),
        notes=request.notes,
        booking_type=BookingType.WALK_IN,
    )
    service, staff, room, validation = await _check_request(booking_request, db, now, hours)

    if not validation.is_valid:
        logger.info(f"Walk-in rejected for {staff.name}: {validation.errors[0]}")
        return _rejected(validation)

    customer = await _find_or_create_customer(request, db)
    booking_request = booking_request.model_copy(update={"customer_id": customer.id})

    return await _commit_single(service, staff, room, booking_request, validation, db)
