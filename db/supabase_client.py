"""
Supabase database client for the spa schedule.
Handles services, staff, rooms, customers, bookings and schedule blocks.

Double-booking guard:
=====================
The scheduling validator is an advisory pre-check run against a snapshot of
bookings. Two requests can pass it at the same time, so the bookings table
must reject overlapping commits itself. The insert error is mapped to
BookingConflictError.

Example constraint (SQL):
-------------------------
CREATE EXTENSION IF NOT EXISTS btree_gist;

ALTER TABLE bookings ADD CONSTRAINT bookings_no_staff_overlap
EXCLUDE USING gist (
    staff_id WITH =,
    appointment_date WITH =,
    tsrange(
        appointment_date + start_time - interval '15 minutes',
        appointment_date + end_time + interval '15 minutes'
    ) WITH &&
) WHERE (status <> 'cancelled');

-- Same constraint with room_id for room double-bookings
"""

from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel
from supabase import Client as SupabaseClientType
from supabase import create_client

from config import settings
from models.booking import Booking, BookingCreate, BookingStatus
from models.customer import Customer, CustomerCreate
from models.room import Room
from models.schedule_block import ScheduleBlock, ScheduleBlockCreate
from models.service import Service
from models.staff import Staff
from utils.constants import (
    BOOKING_CONFLICT_ERROR_CODES,
    REFERENCE_CACHE_TTL_MINUTES,
    SCHEDULE_BLOCKS_LIST_LIMIT,
)
from utils.datetime_utils import parse_iso_datetime, to_iso_string, utc_now
from utils.exceptions import (
    BookingConflictError,
    BookingCreationError,
    BookingNotFoundError,
    DatabaseError,
    ScheduleBlockNotFoundError,
)
from utils.logging_config import get_logger

logger = get_logger(__name__)


class ConflictCheckCriteria(BaseModel):
    """Which bookings to load for a conflict check."""

    appointment_date: date
    staff_id: Optional[str] = None
    room_id: Optional[int] = None
    exclude_booking_id: Optional[str] = None


def _is_conflict_error(error: Exception) -> bool:
    code = getattr(error, "code", None)
    if code in BOOKING_CONFLICT_ERROR_CODES:
        return True
    return any(code in str(error) for code in BOOKING_CONFLICT_ERROR_CODES)


def _conflict_error(error: Exception) -> BookingConflictError:
    logger.warning(f"Booking commit rejected as overlapping: {error}")
    return BookingConflictError(
        "This time slot was just booked. Please choose another time."
    )


class SupabaseClient:
    """
    Supabase database client wrapper.

    Uses the service_role key, which bypasses RLS; the API is only exposed to
    the spa's own booking UI and admin console.

    Reference data (services, staff, rooms) and customer lookups are cached
    in memory for a few minutes; creating a customer invalidates its entries.
    Bookings and schedule blocks are always read fresh.
    """

    def __init__(self):
        self.client: SupabaseClientType = create_client(
            settings.supabase_url, settings.supabase_key
        )

        # Format: {cache_key: (data, expiry_time)}
        self._cache: Dict[str, Tuple[Any, datetime]] = {}
        self._cache_ttl = timedelta(minutes=REFERENCE_CACHE_TTL_MINUTES)

    # ========== Cache Helpers ==========

    def _get_from_cache(self, key: str) -> Optional[Any]:
        """Get value from cache if not expired."""
        if key not in self._cache:
            return None

        data, expiry = self._cache[key]
        if utc_now() > expiry:
            del self._cache[key]
            return None

        return data

    def _set_cache(self, key: str, value: Any) -> None:
        expiry = utc_now() + self._cache_ttl
        self._cache[key] = (value, expiry)

    def _clear_cache(self, pattern: Optional[str] = None) -> None:
        """Clear cache entries matching pattern, or all if pattern is None."""
        if pattern is None:
            self._cache.clear()
        else:
            for key in [k for k in self._cache if pattern in k]:
                del self._cache[key]

    # ========== Reference Data ==========

    async def get_service(self, service_id: str) -> Optional[Service]:
        """Get an active or inactive service by ID."""
        cache_key = f"service:{service_id}"
        cached = self._get_from_cache(cache_key)
        if cached is not None:
            return cached

        try:
            response = (
                self.client.table("services").select("*").eq("id", service_id).execute()
            )

            if response.data:
                service = Service(**response.data[0])
                self._set_cache(cache_key, service)
                return service
            return None
        except Exception as e:
            raise DatabaseError(f"Failed to get service: {e}") from e

    async def get_staff(self, staff_id: str) -> Optional[Staff]:
        """Get staff member by ID."""
        cache_key = f"staff:{staff_id}"
        cached = self._get_from_cache(cache_key)
        if cached is not None:
            return cached

        try:
            response = (
                self.client.table("staff").select("*").eq("id", staff_id).execute()
            )

            if response.data:
                staff = Staff(**response.data[0])
                self._set_cache(cache_key, staff)
                return staff
            return None
        except Exception as e:
            raise DatabaseError(f"Failed to get staff member: {e}") from e

    async def get_active_staff(self) -> List[Staff]:
        """Get all active staff members ordered by name."""
        cached = self._get_from_cache("staff:active")
        if cached is not None:
            return cached

        try:
            response = (
                self.client.table("staff")
                .select("*")
                .eq("is_active", True)
                .order("name", desc=False)
                .execute()
            )

            staff = [Staff(**item) for item in response.data]
            self._set_cache("staff:active", staff)
            return staff
        except Exception as e:
            raise DatabaseError(f"Failed to get active staff: {e}") from e

    async def get_room(self, room_id: int) -> Optional[Room]:
        """Get room by ID."""
        cache_key = f"room:{room_id}"
        cached = self._get_from_cache(cache_key)
        if cached is not None:
            return cached

        try:
            response = self.client.table("rooms").select("*").eq("id", room_id).execute()

            if response.data:
                room = Room(**response.data[0])
                self._set_cache(cache_key, room)
                return room
            return None
        except Exception as e:
            raise DatabaseError(f"Failed to get room: {e}") from e

    async def get_active_rooms(self) -> List[Room]:
        """Get all active rooms ordered by ID."""
        cached = self._get_from_cache("room:active")
        if cached is not None:
            return cached

        try:
            response = (
                self.client.table("rooms")
                .select("*")
                .eq("is_active", True)
                .order("id", desc=False)
                .execute()
            )

            rooms = [Room(**item) for item in response.data]
            self._set_cache("room:active", rooms)
            return rooms
        except Exception as e:
            raise DatabaseError(f"Failed to get active rooms: {e}") from e

    # ========== Schedule Block Operations ==========

    async def get_schedule_blocks(
        self, staff_id: str, target_date: date
    ) -> List[ScheduleBlock]:
        """
        Get a staff member's schedule blocks covering a date.

        Blocks are stored with an inclusive start_date/end_date range; a
        missing end_date means a single-day block.
        """
        try:
            response = (
                self.client.table("schedule_blocks")
                .select("*")
                .eq("staff_id", staff_id)
                .lte("start_date", target_date.isoformat())
                .execute()
            )

            blocks = [self._parse_schedule_block(item) for item in response.data]
            return [block for block in blocks if block.covers(target_date)]
        except Exception as e:
            raise DatabaseError(f"Failed to get schedule blocks: {e}") from e

    async def list_schedule_blocks(
        self, staff_id: Optional[str] = None, limit: int = SCHEDULE_BLOCKS_LIST_LIMIT
    ) -> List[ScheduleBlock]:
        """
        List schedule blocks, newest start date first (admin operation).

        Args:
            staff_id: Only blocks of this staff member
            limit: Maximum number of blocks to return
        """
        try:
            query = self.client.table("schedule_blocks").select("*")

            if staff_id:
                query = query.eq("staff_id", staff_id)

            query = query.order("start_date", desc=True).limit(limit)
            response = query.execute()

            return [self._parse_schedule_block(item) for item in response.data]
        except Exception as e:
            raise DatabaseError(f"Failed to list schedule blocks: {e}") from e

    async def create_schedule_block(
        self, block_data: ScheduleBlockCreate, created_by: Optional[str] = None
    ) -> ScheduleBlock:
        """Create a schedule block."""
        try:
            data = block_data.model_dump(mode="json")
            if created_by:
                data["created_by"] = created_by

            response = self.client.table("schedule_blocks").insert(data).execute()

            if not response.data:
                raise ValueError("no data returned")

            block = self._parse_schedule_block(response.data[0])
            logger.info(
                f"Schedule block {block.id} created for staff {block.staff_id} "
                f"from {block.start_date} to {block.last_date}"
            )
            return block
        except Exception as e:
            raise DatabaseError(f"Failed to create schedule block: {e}") from e

    async def update_schedule_block(
        self, block_id: str, block_data: ScheduleBlockCreate
    ) -> ScheduleBlock:
        """
        Replace a schedule block's window and reason.

        Raises:
            ScheduleBlockNotFoundError: If no block has this ID
        """
        try:
            data = block_data.model_dump(mode="json")
            data["updated_at"] = to_iso_string(utc_now())

            response = (
                self.client.table("schedule_blocks")
                .update(data)
                .eq("id", block_id)
                .execute()
            )
        except Exception as e:
            raise DatabaseError(f"Failed to update schedule block: {e}") from e

        if not response.data:
            raise ScheduleBlockNotFoundError(f"Schedule block {block_id} not found")

        return self._parse_schedule_block(response.data[0])

    async def delete_schedule_block(self, block_id: str) -> bool:
        """
        Delete a schedule block.

        Returns:
            True if deleted, False if no block had this ID
        """
        try:
            response = (
                self.client.table("schedule_blocks").delete().eq("id", block_id).execute()
            )
            return len(response.data) > 0
        except Exception as e:
            raise DatabaseError(f"Failed to delete schedule block: {e}") from e

    # ========== Booking Operations ==========

    async def get_bookings_for_conflict_check(
        self, criteria: ConflictCheckCriteria
    ) -> List[Booking]:
        """
        Get the non-cancelled bookings a candidate could collide with.

        With both staff_id and room_id set, bookings matching either are
        returned, since both staff and room double-bookings are reported.
        """
        try:
            query = (
                self.client.table("bookings")
                .select("*")
                .eq("appointment_date", criteria.appointment_date.isoformat())
                .neq("status", BookingStatus.CANCELLED.value)
            )

            if criteria.staff_id and criteria.room_id is not None:
                query = query.or_(
                    f"staff_id.eq.{criteria.staff_id},room_id.eq.{criteria.room_id}"
                )
            elif criteria.staff_id:
                query = query.eq("staff_id", criteria.staff_id)
            elif criteria.room_id is not None:
                query = query.eq("room_id", criteria.room_id)

            if criteria.exclude_booking_id:
                query = query.neq("id", criteria.exclude_booking_id)

            response = query.order("start_time", desc=False).execute()

            return [self._parse_booking(item) for item in response.data]
        except Exception as e:
            raise DatabaseError(f"Failed to get bookings for conflict check: {e}") from e

    async def get_bookings_in_range(
        self, staff_id: str, start_date: date, end_date: date
    ) -> List[Booking]:
        """Non-cancelled bookings of a staff member between two dates (inclusive)."""
        try:
            response = (
                self.client.table("bookings")
                .select("*")
                .eq("staff_id", staff_id)
                .gte("appointment_date", start_date.isoformat())
                .lte("appointment_date", end_date.isoformat())
                .neq("status", BookingStatus.CANCELLED.value)
                .execute()
            )

            return [self._parse_booking(item) for item in response.data]
        except Exception as e:
            raise DatabaseError(f"Failed to get bookings: {e}") from e

    async def get_booking_by_id(self, booking_id: str) -> Optional[Booking]:
        """Get booking by ID."""
        try:
            response = (
                self.client.table("bookings").select("*").eq("id", booking_id).execute()
            )

            if response.data:
                return self._parse_booking(response.data[0])
            return None
        except Exception as e:
            raise DatabaseError(f"Failed to get booking: {e}") from e

    async def create_booking(self, booking_data: BookingCreate) -> Booking:
        """
        Commit a booking.

        Raises:
            BookingConflictError: If the database rejected an overlapping booking
            BookingCreationError: If the insert failed for any other reason
        """
        bookings = await self._insert_bookings([booking_data])
        return bookings[0]

    async def create_booking_group(
        self, bookings_data: List[BookingCreate]
    ) -> List[Booking]:
        """
        Commit the linked bookings of a couples appointment in one insert.

        Either every row is written or none is.
        """
        if not bookings_data:
            return []
        return await self._insert_bookings(bookings_data)

    async def update_booking_status(
        self, booking_id: str, status: BookingStatus
    ) -> Booking:
        """
        Update booking status.

        Raises:
            BookingNotFoundError: If no booking has this ID
        """
        try:
            update_data = {
                "status": status.value,
                "updated_at": to_iso_string(utc_now()),
            }

            response = (
                self.client.table("bookings")
                .update(update_data)
                .eq("id", booking_id)
                .execute()
            )
        except Exception as e:
            raise DatabaseError(f"Failed to update booking status: {e}") from e

        if not response.data:
            raise BookingNotFoundError(f"Booking {booking_id} not found")

        return self._parse_booking(response.data[0])

    async def get_bookings_by_group(self, booking_group_id: str) -> List[Booking]:
        """Non-cancelled bookings sharing a booking_group_id (couples sessions)."""
        try:
            response = (
                self.client.table("bookings")
                .select("*")
                .eq("booking_group_id", booking_group_id)
                .neq("status", BookingStatus.CANCELLED.value)
                .execute()
            )

            return [self._parse_booking(item) for item in response.data]
        except Exception as e:
            raise DatabaseError(f"Failed to get booking group: {e}") from e

    async def reschedule_booking(
        self,
        booking_id: str,
        appointment_date: date,
        start_time: time,
        end_time: time,
    ) -> Booking:
        """
        Move a booking to a new date and time, keeping staff and room.

        Raises:
            BookingConflictError: If the database rejected the new time as overlapping
            BookingNotFoundError: If no booking has this ID
        """
        return await self._update_booking(
            booking_id,
            {
                "appointment_date": appointment_date.isoformat(),
                "start_time": start_time.strftime("%H:%M:%S"),
                "end_time": end_time.strftime("%H:%M:%S"),
            },
        )

    async def reassign_booking_staff(self, booking_id: str, staff_id: str) -> Booking:
        """Hand a booking over to another staff member."""
        return await self._update_booking(booking_id, {"staff_id": staff_id})

    # ========== Customer Operations ==========

    async def get_customer_by_phone(self, phone: str) -> Optional[Customer]:
        """
        Get customer by phone number.

        Uses cache since walk-ins of the same guest repeat within a visit.
        """
        return await self._get_customer_by("phone", phone)

    async def get_customer_by_email(self, email: str) -> Optional[Customer]:
        return await self._get_customer_by("email", email)

    async def create_customer(self, customer_data: CustomerCreate) -> Customer:
        """Create a new customer."""
        try:
            data = customer_data.model_dump(exclude_none=True)
            response = self.client.table("customers").insert(data).execute()

            if not response.data:
                raise ValueError("no data returned")

            customer = Customer(**response.data[0])
        except Exception as e:
            raise DatabaseError(f"Failed to create customer: {e}") from e

        # Invalidate cached lookups for this customer
        if customer.phone:
            self._clear_cache(f"customer:phone:{customer.phone}")
        if customer.email:
            self._clear_cache(f"customer:email:{customer.email}")

        logger.info(f"Customer {customer.id} created")
        return customer

    # ========== Helper Methods ==========

    async def _get_customer_by(self, field: str, value: str) -> Optional[Customer]:
        cache_key = f"customer:{field}:{value}"
        cached = self._get_from_cache(cache_key)
        if cached is not None:
            return cached

        try:
            response = (
                self.client.table("customers").select("*").eq(field, value).execute()
            )

            if response.data:
                customer = Customer(**response.data[0])
                self._set_cache(cache_key, customer)
                return customer
            return None
        except Exception as e:
            raise DatabaseError(f"Failed to get customer: {e}") from e

    async def _update_booking(self, booking_id: str, changes: Dict[str, Any]) -> Booking:
        update_data = {**changes, "updated_at": to_iso_string(utc_now())}

        try:
            response = (
                self.client.table("bookings")
                .update(update_data)
                .eq("id", booking_id)
                .execute()
            )
        except Exception as e:
            if _is_conflict_error(e):
                raise _conflict_error(e) from e
            raise DatabaseError(f"Failed to update booking: {e}") from e

        if not response.data:
            raise BookingNotFoundError(f"Booking {booking_id} not found")

        return self._parse_booking(response.data[0])

    async def _insert_bookings(self, bookings_data: List[BookingCreate]) -> List[Booking]:
        rows = [booking.model_dump(mode="json", exclude_none=True) for booking in bookings_data]

        try:
            response = self.client.table("bookings").insert(rows).execute()
        except Exception as e:
            if _is_conflict_error(e):
                raise _conflict_error(e) from e
            raise BookingCreationError(f"Failed to create booking: {e}") from e

        if not response.data:
            raise BookingCreationError("Failed to create booking: no data returned")

        return [self._parse_booking(item) for item in response.data]

    def _parse_booking(self, item: dict) -> Booking:
        """
        Parse booking data from database response.

        Args:
            item: Raw booking row

        Returns:
            Parsed Booking object
        """
        item = item.copy()
        for field in ["created_at", "updated_at"]:
            if item.get(field):
                item[field] = parse_iso_datetime(item[field])
        return Booking(**item)

    def _parse_schedule_block(self, item: dict) -> ScheduleBlock:
        item = item.copy()
        for field in ["created_at", "updated_at"]:
            if item.get(field):
                item[field] = parse_iso_datetime(item[field])
        return ScheduleBlock(**item)


# Global database client instance
_db_client: Optional[SupabaseClient] = None


def get_db_client() -> SupabaseClient:
    """Get or create database client instance."""
    global _db_client
    if _db_client is None:
        _db_client = SupabaseClient()
    return _db_client
