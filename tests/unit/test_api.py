"""
Unit tests for the scheduling HTTP API.
"""

import json
from datetime import date, time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from aiohttp import web
from aiohttp.test_utils import make_mocked_request
from pydantic import ValidationError as PydanticValidationError

from api import (
    available_staff_handler,
    create_app,
    create_booking_handler,
    create_schedule_block_handler,
    create_walk_in_handler,
    delete_schedule_block_handler,
    error_middleware,
    health_check,
    reassign_staff_handler,
    reschedule_booking_handler,
    reschedule_slots_handler,
    security_headers_middleware,
    slots_handler,
    update_booking_status_handler,
    validate_booking_handler,
)
from models.booking import Booking, BookingStatus, BookingType
from models.schedule_block import ScheduleBlock
from scheduling.booking_service import BookingOutcome, RescheduleSlot, StaffOption
from scheduling.validator import SlotAvailability, ValidationResult
from utils.exceptions import (
    BookingNotFoundError,
    DatabaseError,
    ScheduleBlockNotFoundError,
    ValidationError,
)

BOOKING_PAYLOAD = {
    "service_id": "basic-facial",
    "staff_id": "selma",
    "appointment_date": "2026-03-11",
    "start_time": "10:00",
    "customer_id": "customer-1",
}


def _json_request(method, path, payload, **kwargs):
    request = make_mocked_request(method, path, **kwargs)
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    request.read = AsyncMock(return_value=body)
    return request


def _booking(**kwargs):
    defaults = dict(
        id="booking-1",
        service_id="basic-facial",
        staff_id="selma",
        room_id=1,
        appointment_date=date(2026, 3, 11),
        start_time=time(10, 0),
        end_time=time(10, 30),
    )
    defaults.update(kwargs)
    return Booking(**defaults)


@pytest.fixture
def mock_db():
    db = MagicMock()
    with patch("api.get_db_client", return_value=db):
        yield db


class TestHealthCheck:
    """Test health check endpoint."""

    @pytest.mark.asyncio
    async def test_health_check(self):
        """Test health check returns OK."""
        request = make_mocked_request("GET", "/health")
        response = await health_check(request)

        assert response.status == 200
        data = json.loads(response.text)
        assert data["status"] == "ok"
        assert data["configuration"]["business_hours"] == "09:00-19:00"


class TestBookingHandlers:
    """Test booking endpoints."""

    @pytest.mark.asyncio
    async def test_validate(self, mock_db):
        validation = ValidationResult(
            errors=["Selma Villaver is off on Tuesdays and Thursdays"],
            warnings=["Limited staff availability on Tuesdays"],
        )
        with patch(
            "api.booking_service.validate_request", new_callable=AsyncMock
        ) as mock_validate:
            mock_validate.return_value = validation

            request = _json_request("POST", "/api/bookings/validate", BOOKING_PAYLOAD)
            response = await validate_booking_handler(request)

        assert response.status == 200
        data = json.loads(response.text)
        assert data["is_valid"] is False
        assert data["errors"] == ["Selma Villaver is off on Tuesdays and Thursdays"]
        assert data["warnings"] == ["Limited staff availability on Tuesdays"]
        assert mock_validate.await_args.args[0].staff_id == "selma"

    @pytest.mark.asyncio
    async def test_create_success(self, mock_db):
        outcome = BookingOutcome(
            success=True, bookings=[_booking()], validation=ValidationResult(end_time="10:30")
        )
        with patch(
            "api.booking_service.create_booking", new_callable=AsyncMock
        ) as mock_create:
            mock_create.return_value = outcome

            payload = dict(BOOKING_PAYLOAD, notes="  Sensitive skin\x00  ")
            request = _json_request("POST", "/api/bookings", payload)
            response = await create_booking_handler(request)

        assert response.status == 201
        data = json.loads(response.text)
        assert data["success"] is True
        assert data["bookings"][0]["id"] == "booking-1"
        assert mock_create.await_args.args[0].notes == "Sensitive skin"

    @pytest.mark.asyncio
    async def test_create_rejected(self, mock_db):
        error = "Staff member is already booked from 10:00 to 10:30"
        outcome = BookingOutcome(
            success=False, validation=ValidationResult(errors=[error]), error=error
        )
        with patch(
            "api.booking_service.create_booking", new_callable=AsyncMock, return_value=outcome
        ):
            request = _json_request("POST", "/api/bookings", BOOKING_PAYLOAD)
            response = await create_booking_handler(request)

        assert response.status == 409
        data = json.loads(response.text)
        assert data["success"] is False
        assert data["validation"]["errors"] == [error]

    @pytest.mark.asyncio
    async def test_invalid_json(self, mock_db):
        request = _json_request("POST", "/api/bookings", b"{not json")

        with pytest.raises(ValidationError, match="Invalid JSON"):
            await create_booking_handler(request)

    @pytest.mark.asyncio
    async def test_non_object_payload(self, mock_db):
        request = _json_request("POST", "/api/bookings", [BOOKING_PAYLOAD])

        with pytest.raises(ValidationError, match="JSON object"):
            await create_booking_handler(request)

    @pytest.mark.asyncio
    async def test_oversized_body(self, mock_db):
        request = _json_request("POST", "/api/bookings", b"x" * (64 * 1024 + 1))

        with pytest.raises(ValidationError, match="maximum size"):
            await create_booking_handler(request)

    @pytest.mark.asyncio
    async def test_update_status(self, mock_db):
        mock_db.update_booking_status = AsyncMock(
            return_value=_booking(status=BookingStatus.CANCELLED)
        )
        request = _json_request(
            "PATCH",
            "/api/bookings/booking-1/status",
            {"status": "cancelled"},
            match_info={"booking_id": "booking-1"},
        )

        response = await update_booking_status_handler(request)

        data = json.loads(response.text)
        assert data["booking"]["status"] == "cancelled"
        mock_db.update_booking_status.assert_awaited_once_with(
            "booking-1", BookingStatus.CANCELLED
        )

    @pytest.mark.asyncio
    async def test_update_status_invalid(self, mock_db):
        request = _json_request(
            "PATCH",
            "/api/bookings/booking-1/status",
            {"status": "postponed"},
            match_info={"booking_id": "booking-1"},
        )

        with pytest.raises(ValidationError, match="Invalid booking status"):
            await update_booking_status_handler(request)


class TestSlotHandlers:
    """Test slot listing endpoints."""

    @pytest.mark.asyncio
    async def test_slots(self, mock_db):
        slots = [
            SlotAvailability(time="09:00", available=True),
            SlotAvailability(
                time="09:15", available=False, reason="Staff member is already booked"
            ),
        ]
        with patch(
            "api.booking_service.get_available_slots", new_callable=AsyncMock
        ) as mock_slots:
            mock_slots.return_value = slots

            request = make_mocked_request(
                "GET", "/api/slots?service_id=basic-facial&date=2026-03-11&staff_id=selma&room_id=1"
            )
            response = await slots_handler(request)

        data = json.loads(response.text)
        assert data["date"] == "2026-03-11"
        assert [slot["available"] for slot in data["slots"]] == [True, False]
        assert mock_slots.await_args.kwargs["staff_id"] == "selma"
        assert mock_slots.await_args.kwargs["room_id"] == 1

    @pytest.mark.asyncio
    async def test_slots_requires_service(self, mock_db):
        request = make_mocked_request("GET", "/api/slots?date=2026-03-11")

        with pytest.raises(ValidationError, match="service_id"):
            await slots_handler(request)

    @pytest.mark.asyncio
    async def test_slots_invalid_date(self, mock_db):
        request = make_mocked_request("GET", "/api/slots?service_id=basic-facial&date=soon")

        with pytest.raises(ValidationError, match="Invalid date"):
            await slots_handler(request)

    @pytest.mark.asyncio
    async def test_slots_invalid_room(self, mock_db):
        request = make_mocked_request(
            "GET", "/api/slots?service_id=basic-facial&date=2026-03-11&room_id=0"
        )

        with pytest.raises(ValidationError, match="room_id"):
            await slots_handler(request)

    @pytest.mark.asyncio
    async def test_reschedule_slots(self, mock_db):
        mock_db.get_booking_by_id = AsyncMock(return_value=_booking())
        slots = [
            RescheduleSlot(
                time="13:00",
                staff_available=True,
                room_available=False,
                reason="Room is already booked from 13:00 to 13:30",
            )
        ]
        with patch(
            "api.booking_service.get_reschedule_slots", new_callable=AsyncMock, return_value=slots
        ):
            request = make_mocked_request(
                "GET",
                "/api/bookings/booking-1/reschedule-slots?date=2026-03-12",
                match_info={"booking_id": "booking-1"},
            )
            response = await reschedule_slots_handler(request)

        data = json.loads(response.text)
        assert data["booking_id"] == "booking-1"
        assert data["slots"][0]["available"] is False
        assert data["slots"][0]["staff_available"] is True

    @pytest.mark.asyncio
    async def test_reschedule_unknown_booking(self, mock_db):
        mock_db.get_booking_by_id = AsyncMock(return_value=None)
        request = make_mocked_request(
            "GET",
            "/api/bookings/missing/reschedule-slots?date=2026-03-12",
            match_info={"booking_id": "missing"},
        )

        with pytest.raises(BookingNotFoundError):
            await reschedule_slots_handler(request)

    @pytest.mark.asyncio
    async def test_available_staff(self, mock_db):
        mock_db.get_booking_by_id = AsyncMock(return_value=_booking())
        options = [
            StaffOption(
                staff_id="tanisha", staff_name="Tanisha Harris", can_perform=True, is_available=True
            )
        ]
        with patch(
            "api.booking_service.get_available_staff_for_reassignment",
            new_callable=AsyncMock,
            return_value=options,
        ):
            request = make_mocked_request(
                "GET",
                "/api/bookings/booking-1/available-staff",
                match_info={"booking_id": "booking-1"},
            )
            response = await available_staff_handler(request)

        data = json.loads(response.text)
        assert data["staff"][0]["staff_id"] == "tanisha"


class TestAdminBookingChanges:
    """Test reschedule, staff reassignment and walk-in endpoints."""

    @pytest.mark.asyncio
    async def test_reschedule(self, mock_db):
        mock_db.get_booking_by_id = AsyncMock(return_value=_booking())
        moved = _booking(
            appointment_date=date(2026, 3, 13), start_time=time(14, 0), end_time=time(14, 30)
        )
        outcome = BookingOutcome(success=True, bookings=[moved], validation=ValidationResult())
        with patch(
            "api.booking_service.reschedule_booking", new_callable=AsyncMock
        ) as mock_reschedule:
            mock_reschedule.return_value = outcome

            request = _json_request(
                "POST",
                "/api/bookings/booking-1/reschedule",
                {
                    "new_date": "2026-03-13",
                    "new_start_time": "14:00",
                    "reason": " Guest asked\x07 ",
                },
                match_info={"booking_id": "booking-1"},
            )
            response = await reschedule_booking_handler(request)

        assert response.status == 200
        data = json.loads(response.text)
        assert data["bookings"][0]["appointment_date"] == "2026-03-13"
        args = mock_reschedule.await_args
        assert args.args[0].id == "booking-1"
        assert args.args[1] == date(2026, 3, 13)
        assert args.args[2] == "14:00"
        assert args.kwargs["reason"] == "Guest asked"

    @pytest.mark.asyncio
    async def test_reschedule_rejected(self, mock_db):
        mock_db.get_booking_by_id = AsyncMock(return_value=_booking())
        error = "Cannot change a cancelled booking"
        outcome = BookingOutcome(
            success=False, validation=ValidationResult(errors=[error]), error=error
        )
        with patch(
            "api.booking_service.reschedule_booking", new_callable=AsyncMock, return_value=outcome
        ):
            request = _json_request(
                "POST",
                "/api/bookings/booking-1/reschedule",
                {"new_date": "2026-03-13", "new_start_time": "14:00"},
                match_info={"booking_id": "booking-1"},
            )
            response = await reschedule_booking_handler(request)

        assert response.status == 409
        assert json.loads(response.text)["error"] == error

    @pytest.mark.asyncio
    async def test_reschedule_unknown_booking(self, mock_db):
        mock_db.get_booking_by_id = AsyncMock(return_value=None)
        request = _json_request(
            "POST",
            "/api/bookings/missing/reschedule",
            {"new_date": "2026-03-13", "new_start_time": "14:00"},
            match_info={"booking_id": "missing"},
        )

        with pytest.raises(BookingNotFoundError):
            await reschedule_booking_handler(request)

    @pytest.mark.asyncio
    async def test_reassign_staff(self, mock_db):
        mock_db.get_booking_by_id = AsyncMock(return_value=_booking())
        outcome = BookingOutcome(
            success=True, bookings=[_booking(staff_id="tanisha")], validation=ValidationResult()
        )
        with patch(
            "api.booking_service.reassign_staff", new_callable=AsyncMock
        ) as mock_reassign:
            mock_reassign.return_value = outcome

            request = _json_request(
                "POST",
                "/api/bookings/booking-1/reassign-staff",
                {"new_staff_id": "tanisha"},
                match_info={"booking_id": "booking-1"},
            )
            response = await reassign_staff_handler(request)

        assert response.status == 200
        assert json.loads(response.text)["bookings"][0]["staff_id"] == "tanisha"
        assert mock_reassign.await_args.args[1] == "tanisha"
        assert mock_reassign.await_args.kwargs["reason"] is None

    @pytest.mark.asyncio
    async def test_reassign_requires_staff(self, mock_db):
        mock_db.get_booking_by_id = AsyncMock(return_value=_booking())
        request = _json_request(
            "POST",
            "/api/bookings/booking-1/reassign-staff",
            {"reason": "Therapist sick"},
            match_info={"booking_id": "booking-1"},
        )

        with pytest.raises(PydanticValidationError):
            await reassign_staff_handler(request)

    @pytest.mark.asyncio
    async def test_walk_in(self, mock_db):
        walk_in = _booking(booking_type=BookingType.WALK_IN)
        outcome = BookingOutcome(success=True, bookings=[walk_in], validation=ValidationResult())
        with patch(
            "api.booking_service.create_walk_in_booking", new_callable=AsyncMock
        ) as mock_walk_in:
            mock_walk_in.return_value = outcome

            payload = {
                "service_id": "basic-facial",
                "staff_id": "selma",
                "customer_name": "Maria Santos",
                "customer_phone": "+1 671 555 0142",
            }
            request = _json_request("POST", "/api/walk-ins", payload)
            response = await create_walk_in_handler(request)

        assert response.status == 201
        assert json.loads(response.text)["bookings"][0]["booking_type"] == "walk_in"
        assert mock_walk_in.await_args.args[0].customer_name == "Maria Santos"

    @pytest.mark.asyncio
    async def test_walk_in_invalid_phone(self, mock_db):
        with patch(
            "api.booking_service.create_walk_in_booking", new_callable=AsyncMock
        ) as mock_walk_in:
            payload = {
                "service_id": "basic-facial",
                "staff_id": "selma",
                "customer_name": "Maria Santos",
                "customer_phone": "call me",
            }
            request = _json_request("POST", "/api/walk-ins", payload)

            with pytest.raises(ValidationError, match="valid phone number"):
                await create_walk_in_handler(request)

        mock_walk_in.assert_not_awaited()


class TestScheduleBlockHandlers:
    """Test schedule block admin endpoints."""

    @pytest.mark.asyncio
    async def test_create_reports_affected_bookings(self, mock_db):
        block = ScheduleBlock(
            id="block-1",
            staff_id="selma",
            block_type="time_range",
            start_date=date(2026, 3, 11),
            start_time=time(9, 0),
            end_time=time(12, 0),
            reason="Dentist appointment",
        )
        mock_db.create_schedule_block = AsyncMock(return_value=block)
        mock_db.get_bookings_in_range = AsyncMock(
            return_value=[
                _booking(),
                _booking(id="booking-2", start_time=time(14, 0), end_time=time(14, 30)),
            ]
        )

        payload = {
            "staff_id": "selma",
            "block_type": "time_range",
            "start_date": "2026-03-11",
            "start_time": "09:00",
            "end_time": "12:00",
            "reason": "Dentist appointment",
        }
        request = _json_request("POST", "/api/schedule-blocks", payload)
        response = await create_schedule_block_handler(request)

        assert response.status == 201
        data = json.loads(response.text)
        assert data["block"]["id"] == "block-1"
        assert [b["id"] for b in data["affected_bookings"]] == ["booking-1"]

    @pytest.mark.asyncio
    async def test_delete_missing_block(self, mock_db):
        mock_db.delete_schedule_block = AsyncMock(return_value=False)
        request = make_mocked_request(
            "DELETE", "/api/schedule-blocks/missing", match_info={"block_id": "missing"}
        )

        with pytest.raises(ScheduleBlockNotFoundError):
            await delete_schedule_block_handler(request)


class TestMiddleware:
    """Test error mapping and response headers."""

    @pytest.mark.asyncio
    async def test_validation_error(self):
        request = make_mocked_request("POST", "/api/bookings")
        handler = AsyncMock(side_effect=ValidationError("Empty payload"))

        response = await error_middleware(request, handler)

        assert response.status == 400
        data = json.loads(response.text)
        assert data["error"] == "validation_failed"
        assert data["message"] == "Empty payload"

    @pytest.mark.asyncio
    async def test_pydantic_validation_error(self, mock_db):
        payload = {k: v for k, v in BOOKING_PAYLOAD.items() if k != "staff_id"}
        request = _json_request("POST", "/api/bookings", payload)

        response = await error_middleware(request, create_booking_handler)

        assert response.status == 400
        data = json.loads(response.text)
        assert data["message"][0]["field"] == "staff_id"

    @pytest.mark.asyncio
    async def test_not_found(self):
        request = make_mocked_request("GET", "/api/bookings/x/available-staff")
        handler = AsyncMock(side_effect=BookingNotFoundError("Booking x not found"))

        response = await error_middleware(request, handler)

        assert response.status == 404
        assert json.loads(response.text)["message"] == "Booking x not found"

    @pytest.mark.asyncio
    async def test_database_error_hides_details(self):
        request = make_mocked_request("GET", "/api/slots")
        handler = AsyncMock(side_effect=DatabaseError("password authentication failed"))

        response = await error_middleware(request, handler)

        assert response.status == 500
        data = json.loads(response.text)
        assert data["error"] == "database_error"
        assert "password" not in data["message"]

    @pytest.mark.asyncio
    async def test_unexpected_error(self):
        request = make_mocked_request("GET", "/api/slots")
        handler = AsyncMock(side_effect=RuntimeError("boom"))

        response = await error_middleware(request, handler)

        assert response.status == 500
        assert json.loads(response.text)["error"] == "internal_error"

    @pytest.mark.asyncio
    async def test_http_exceptions_pass_through(self):
        request = make_mocked_request("GET", "/missing")
        handler = AsyncMock(side_effect=web.HTTPNotFound())

        with pytest.raises(web.HTTPNotFound):
            await error_middleware(request, handler)

    @pytest.mark.asyncio
    async def test_security_headers(self):
        request = make_mocked_request("GET", "/health")
        handler = AsyncMock(return_value=web.json_response({"status": "ok"}))

        response = await security_headers_middleware(request, handler)

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"


def test_create_app_routes():
    app = create_app()

    paths = {route.resource.canonical for route in app.router.routes()}
    assert "/api/bookings" in paths
    assert "/api/slots" in paths
    assert "/api/schedule-blocks/{block_id}" in paths
    assert "/api/bookings/{booking_id}/reschedule" in paths
    assert "/api/bookings/{booking_id}/reassign-staff" in paths
    assert "/api/walk-ins" in paths
    assert "/health" in paths
