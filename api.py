"""
HTTP API for the booking UI and the admin console.

Endpoints:
- POST /api/bookings/validate        validate without committing
- POST /api/bookings                 validate and commit
- POST /api/bookings/couples         couples booking in one room
- POST /api/walk-ins                 walk-in booking for today
- GET  /api/slots                    slots of a day for a service
- GET  /api/bookings/{id}/reschedule-slots
- GET  /api/bookings/{id}/available-staff
- POST /api/bookings/{id}/reschedule     move a booking
- POST /api/bookings/{id}/reassign-staff hand a booking to another staff member
- PATCH /api/bookings/{id}/status     change a booking's status
- GET/POST /api/schedule-blocks, PUT/DELETE /api/schedule-blocks/{id}
- GET  /health

Validation results are returned as {is_valid, errors, warnings, conflicts};
errors block a booking, warnings are informational.
"""

import json
import time
from datetime import date
from typing import Any, Dict

from aiohttp import web
from aiohttp.web import Request, Response
from pydantic import ValidationError as PydanticValidationError

from config import settings
from db import get_db_client
from models.booking import (
    BookingRequest,
    BookingStatus,
    CouplesBookingRequest,
    RescheduleRequest,
    StaffReassignmentRequest,
    WalkInRequest,
)
from models.schedule_block import ScheduleBlockCreate
from scheduling import booking_service
from scheduling.conflicts import find_bookings_affected_by_block
from utils.constants import (
    MAX_BLOCK_REASON_LENGTH,
    MAX_NOTES_LENGTH,
    MAX_WALK_IN_NOTES_LENGTH,
)
from utils.datetime_utils import parse_date
from utils.exceptions import (
    BookingNotFoundError,
    DatabaseError,
    RoomNotFoundError,
    ScheduleBlockNotFoundError,
    ServiceNotFoundError,
    StaffNotFoundError,
    ValidationError,
)
from utils.logging_config import configure_engine_logging, setup_logging
from utils.validation import parse_room_id, sanitize_text

logger = setup_logging(
    name=__name__, log_level="INFO", log_file="api.log", log_dir="logs"
)

MAX_REQUEST_BODY_SIZE = 64 * 1024  # 64KB is plenty for a booking payload

_NOT_FOUND_ERRORS = (
    BookingNotFoundError,
    RoomNotFoundError,
    ScheduleBlockNotFoundError,
    ServiceNotFoundError,
    StaffNotFoundError,
)

_start_time = time.time()


def _error_response(error: str, message: Any, status: int) -> Response:
    return web.json_response(
        {"status": "error", "error": error, "message": message}, status=status
    )


async def _read_json(request: Request) -> Dict[str, Any]:
    """
    Read a JSON object body.

    Raises:
        ValidationError: If the body is empty, too large or not a JSON object
    """
    raw_body = await request.read()

    if len(raw_body) > MAX_REQUEST_BODY_SIZE:
        raise ValidationError(
            f"Request body exceeds maximum size of {MAX_REQUEST_BODY_SIZE} bytes"
        )
    if not raw_body:
        raise ValidationError("Empty payload")

    try:
        payload = json.loads(raw_body)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON: {e.msg}") from e

    if not isinstance(payload, dict):
        raise ValidationError("Payload must be a JSON object")

    return payload


def _query_date(request: Request, name: str = "date") -> date:
    value = request.query.get(name)
    if not value:
        raise ValidationError(f"Query parameter '{name}' is required")
    try:
        return parse_date(value)
    except ValueError as e:
        raise ValidationError(str(e)) from e


def _clean_notes(payload: Dict[str, Any], field: str, max_length: int) -> None:
    if payload.get(field):
        payload[field] = sanitize_text(payload[field], max_length) or None


@web.middleware
async def security_headers_middleware(request: Request, handler):
    """Add security headers to all responses."""
    response = await handler(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-XSS-Protection"] = "1; mode=block"
    response.headers["Strict-Transport-Security"] = (
        "max-age=31536000; includeSubDomains"
    )

    return response


@web.middleware
async def error_middleware(request: Request, handler):
    """
    Map exceptions raised by handlers to JSON error responses.

    Malformed input is a 400, unknown ids a 404; database failures are
    logged and reported as 500 without internal details.
    """
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except (ValidationError, PydanticValidationError) as e:
        logger.warning(f"Invalid request to {request.path}: {e}")
        if isinstance(e, PydanticValidationError):
            message = [
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
        else:
            message = str(e)
        return _error_response("validation_failed", message, 400)
    except _NOT_FOUND_ERRORS as e:
        return _error_response("not_found", str(e), 404)
    except DatabaseError as e:
        logger.error(f"Database error on {request.path}: {e}", exc_info=True)
        return _error_response("database_error", "Database operation failed", 500)
    except Exception as e:
        logger.error(f"Unexpected error on {request.path}: {e}", exc_info=True)
        return _error_response("internal_error", "Internal server error", 500)


# ========== Bookings ==========


async def validate_booking_handler(request: Request) -> Response:
    """Validate a booking request without committing it."""
    payload = await _read_json(request)
    booking_request = BookingRequest(**payload)

    validation = await booking_service.validate_request(booking_request, get_db_client())

    return web.json_response(validation.model_dump(mode="json"))


async def create_booking_handler(request: Request) -> Response:
    """
    Validate and commit a booking.

    Returns 201 with the booking, or 409 with the validation result when the
    request is rejected or the slot was taken in the meantime.
    """
    payload = await _read_json(request)
    _clean_notes(payload, "notes", MAX_NOTES_LENGTH)
    booking_request = BookingRequest(**payload)

    outcome = await booking_service.create_booking(booking_request, get_db_client())

    if not outcome.success:
        return web.json_response(outcome.model_dump(mode="json"), status=409)

    return web.json_response(outcome.model_dump(mode="json"), status=201)


async def create_couples_booking_handler(request: Request) -> Response:
    payload = await _read_json(request)
    _clean_notes(payload, "notes", MAX_NOTES_LENGTH)
    couples_request = CouplesBookingRequest(**payload)

    outcome = await booking_service.create_couples_booking(couples_request, get_db_client())

    status = 201 if outcome.success else 409
    return web.json_response(outcome.model_dump(mode="json"), status=status)


async def create_walk_in_handler(request: Request) -> Response:
    """
    Book a walk-in guest for today.

    Guest details are checked first (400); a booking that does not fit the
    schedule is a 409 like any other.
    """
    payload = await _read_json(request)
    _clean_notes(payload, "notes", MAX_WALK_IN_NOTES_LENGTH)
    walk_in = WalkInRequest(**payload)

    error = booking_service.validate_walk_in(walk_in)
    if error:
        raise ValidationError(error)

    outcome = await booking_service.create_walk_in_booking(walk_in, get_db_client())

    status = 201 if outcome.success else 409
    return web.json_response(outcome.model_dump(mode="json"), status=status)


async def slots_handler(request: Request) -> Response:
    """
    Slots of a day for a service.

    Query: service_id, date, optional staff_id and room_id. Without staff_id
    every generated slot is listed as available.
    """
    service_id = request.query.get("service_id")
    if not service_id:
        raise ValidationError("Query parameter 'service_id' is required")
    target_date = _query_date(request)

    room_id = None
    if request.query.get("room_id"):
        room_id = parse_room_id(request.query["room_id"])
        if room_id is None:
            raise ValidationError("Query parameter 'room_id' must be a positive integer")

    slots = await booking_service.get_available_slots(
        service_id,
        target_date,
        get_db_client(),
        staff_id=request.query.get("staff_id"),
        room_id=room_id,
    )

    return web.json_response(
        {
            "date": target_date.isoformat(),
            "slots": [slot.model_dump(mode="json") for slot in slots],
        }
    )


async def _get_booking(booking_id: str):
    booking = await get_db_client().get_booking_by_id(booking_id)
    if not booking:
        raise BookingNotFoundError(f"Booking {booking_id} not found")
    return booking


async def update_booking_status_handler(request: Request) -> Response:
    """Set a booking's status, e.g. cancel it or mark it completed."""
    payload = await _read_json(request)
    try:
        status = BookingStatus(payload.get("status"))
    except ValueError as e:
        raise ValidationError(f"Invalid booking status: {payload.get('status')!r}") from e

    booking = await get_db_client().update_booking_status(
        request.match_info["booking_id"], status
    )
    logger.info(f"Booking {booking.id} marked {status.value}")

    return web.json_response({"booking": booking.model_dump(mode="json")})


async def reschedule_slots_handler(request: Request) -> Response:
    booking = await _get_booking(request.match_info["booking_id"])
    target_date = _query_date(request)

    slots = await booking_service.get_reschedule_slots(booking, target_date, get_db_client())

    return web.json_response(
        {
            "booking_id": booking.id,
            "date": target_date.isoformat(),
            "slots": [
                {**slot.model_dump(mode="json"), "available": slot.available}
                for slot in slots
            ],
        }
    )


async def reschedule_booking_handler(request: Request) -> Response:
    """Move a booking; couples bookings move together."""
    booking = await _get_booking(request.match_info["booking_id"])
    payload = await _read_json(request)
    _clean_notes(payload, "reason", MAX_BLOCK_REASON_LENGTH)
    reschedule = RescheduleRequest(**payload)

    outcome = await booking_service.reschedule_booking(
        booking,
        reschedule.new_date,
        reschedule.new_start_time,
        get_db_client(),
        reason=reschedule.reason,
    )

    status = 200 if outcome.success else 409
    return web.json_response(outcome.model_dump(mode="json"), status=status)


async def reassign_staff_handler(request: Request) -> Response:
    booking = await _get_booking(request.match_info["booking_id"])
    payload = await _read_json(request)
    _clean_notes(payload, "reason", MAX_BLOCK_REASON_LENGTH)
    reassignment = StaffReassignmentRequest(**payload)

    outcome = await booking_service.reassign_staff(
        booking, reassignment.new_staff_id, get_db_client(), reason=reassignment.reason
    )

    status = 200 if outcome.success else 409
    return web.json_response(outcome.model_dump(mode="json"), status=status)


async def available_staff_handler(request: Request) -> Response:
    """Staff members who could take over a booking."""
    booking = await _get_booking(request.match_info["booking_id"])

    options = await booking_service.get_available_staff_for_reassignment(
        booking, get_db_client()
    )

    return web.json_response(
        {
            "booking_id": booking.id,
            "staff": [option.model_dump(mode="json") for option in options],
        }
    )


# ========== Schedule Blocks ==========


async def list_schedule_blocks_handler(request: Request) -> Response:
    blocks = await get_db_client().list_schedule_blocks(
        staff_id=request.query.get("staff_id")
    )
    return web.json_response(
        {"blocks": [block.model_dump(mode="json") for block in blocks]}
    )


async def create_schedule_block_handler(request: Request) -> Response:
    """
    Create a schedule block.

    The response lists existing bookings the block cuts into, so the admin
    can move or cancel them; they are not changed here.
    """
    payload = await _read_json(request)
    _clean_notes(payload, "reason", MAX_BLOCK_REASON_LENGTH)
    block_data = ScheduleBlockCreate(**payload)

    db = get_db_client()
    block = await db.create_schedule_block(block_data)

    bookings = await db.get_bookings_in_range(
        block.staff_id, block.start_date, block.last_date
    )
    affected = find_bookings_affected_by_block(block, bookings)
    if affected:
        logger.warning(
            f"Schedule block {block.id} overlaps {len(affected)} existing booking(s)"
        )

    return web.json_response(
        {
            "block": block.model_dump(mode="json"),
            "affected_bookings": [booking.model_dump(mode="json") for booking in affected],
        },
        status=201,
    )


async def update_schedule_block_handler(request: Request) -> Response:
    payload = await _read_json(request)
    _clean_notes(payload, "reason", MAX_BLOCK_REASON_LENGTH)
    block_data = ScheduleBlockCreate(**payload)

    block = await get_db_client().update_schedule_block(
        request.match_info["block_id"], block_data
    )

    return web.json_response({"block": block.model_dump(mode="json")})


async def delete_schedule_block_handler(request: Request) -> Response:
    block_id = request.match_info["block_id"]

    if not await get_db_client().delete_schedule_block(block_id):
        raise ScheduleBlockNotFoundError(f"Schedule block {block_id} not found")

    logger.info(f"Schedule block {block_id} deleted")
    return web.json_response({"status": "success", "block_id": block_id})


async def health_check(request: Request) -> Response:
    """Health check endpoint."""
    hours = settings.business_hours()
    return web.json_response(
        {
            "status": "ok",
            "service": "spa-scheduling-api",
            "timestamp": time.time(),
            "uptime_hours": round((time.time() - _start_time) / 3600, 2),
            "configuration": {
                "environment": settings.environment,
                "timezone": settings.timezone,
                "business_hours": f"{hours.open_label}-{hours.close_label}",
                "slot_minutes": hours.slot_minutes,
                "buffer_minutes": hours.buffer_minutes,
            },
        }
    )


def create_app() -> web.Application:
    """
    Create aiohttp application with middleware and routes.

    Returns:
        Configured web application
    """
    app = web.Application(middlewares=[security_headers_middleware, error_middleware])

    app.router.add_post("/api/bookings/validate", validate_booking_handler)
    app.router.add_post("/api/bookings/couples", create_couples_booking_handler)
    app.router.add_post("/api/bookings", create_booking_handler)
    app.router.add_get(
        "/api/bookings/{booking_id}/reschedule-slots", reschedule_slots_handler
    )
    app.router.add_get(
        "/api/bookings/{booking_id}/available-staff", available_staff_handler
    )
    app.router.add_post(
        "/api/bookings/{booking_id}/reschedule", reschedule_booking_handler
    )
    app.router.add_post(
        "/api/bookings/{booking_id}/reassign-staff", reassign_staff_handler
    )
    app.router.add_patch("/api/bookings/{booking_id}/status", update_booking_status_handler)
    app.router.add_post("/api/walk-ins", create_walk_in_handler)
    app.router.add_get("/api/slots", slots_handler)

    app.router.add_get("/api/schedule-blocks", list_schedule_blocks_handler)
    app.router.add_post("/api/schedule-blocks", create_schedule_block_handler)
    app.router.add_put("/api/schedule-blocks/{block_id}", update_schedule_block_handler)
    app.router.add_delete(
        "/api/schedule-blocks/{block_id}", delete_schedule_block_handler
    )

    app.router.add_get("/health", health_check)

    return app


if __name__ == "__main__":
    settings.validate_all_required()
    configure_engine_logging(settings.log_level, settings.log_dir)
    logger.info(f"Starting scheduling API on {settings.host}:{settings.port}")
    web.run_app(create_app(), host=settings.host, port=settings.port)
