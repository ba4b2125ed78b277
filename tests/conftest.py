"""
Pytest configuration and shared fixtures.

Reference dates: 2026-03-09 is a Monday, 2026-03-10 a Tuesday and
2026-03-15 a Sunday.
"""

from datetime import date, datetime, time
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from models.booking import Booking, BookingStatus
from models.room import Room
from models.service import Service, ServiceCategory
from models.staff import Staff
from scheduling.hours import DEFAULT_BUSINESS_HOURS

NOW = datetime(2026, 3, 9, 8, 0)
MONDAY = date(2026, 3, 9)
TUESDAY = date(2026, 3, 10)
WEDNESDAY = date(2026, 3, 11)
SUNDAY = date(2026, 3, 15)


@pytest.fixture(autouse=True)
def mock_settings():
    """Mock settings for all tests."""
    with patch("config.settings") as mock_settings:
        mock_settings.supabase_url = "https://test.supabase.co"
        mock_settings.supabase_key = "test_key"
        mock_settings.environment = "test"
        mock_settings.host = "0.0.0.0"
        mock_settings.port = 8000
        mock_settings.timezone = "Pacific/Guam"
        mock_settings.log_level = "INFO"
        mock_settings.log_dir = "logs"
        mock_settings.business_hours.return_value = DEFAULT_BUSINESS_HOURS
        yield mock_settings


@pytest.fixture
def mock_supabase_client():
    """Create a mock Supabase client."""
    mock_client = MagicMock()
    mock_table = MagicMock()
    mock_client.table.return_value = mock_table
    return mock_client, mock_table


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def room1():
    return Room(
        id=1,
        name="Room 1",
        capacity=1,
        capabilities=[ServiceCategory.FACIAL, ServiceCategory.WAXING],
    )


@pytest.fixture
def room2():
    return Room(
        id=2,
        name="Room 2",
        capacity=2,
        capabilities=[
            ServiceCategory.FACIAL,
            ServiceCategory.MASSAGE,
            ServiceCategory.BODY_TREATMENT,
            ServiceCategory.WAXING,
        ],
    )


@pytest.fixture
def room3():
    return Room(
        id=3,
        name="Room 3",
        capacity=2,
        capabilities=[],
        has_body_scrub_equipment=True,
    )


@pytest.fixture
def rooms(room1, room2, room3):
    return [room1, room2, room3]


@pytest.fixture
def selma():
    """Facial specialist, off on Tuesdays and Thursdays."""
    return Staff(
        id="selma",
        name="Selma Villaver",
        capabilities=[ServiceCategory.FACIAL],
        work_days=[0, 1, 3, 5, 6],
        default_room_id=1,
    )


@pytest.fixture
def robyn():
    return Staff(
        id="robyn",
        name="Robyn Camacho",
        capabilities=[
            ServiceCategory.FACIAL,
            ServiceCategory.MASSAGE,
            ServiceCategory.BODY_TREATMENT,
            ServiceCategory.BODY_SCRUB,
            ServiceCategory.WAXING,
        ],
        work_days=[0, 1, 2, 3, 4, 5, 6],
        default_room_id=3,
    )


@pytest.fixture
def tanisha():
    return Staff(
        id="tanisha",
        name="Tanisha Harris",
        capabilities=[ServiceCategory.FACIAL, ServiceCategory.WAXING],
        work_days=[0, 1, 3, 5, 6],
        default_room_id=2,
    )


@pytest.fixture
def leonel():
    """Works Sundays only."""
    return Staff(
        id="leonel",
        name="Leonel Sidon",
        capabilities=[ServiceCategory.MASSAGE, ServiceCategory.BODY_TREATMENT],
        work_days=[0],
    )


@pytest.fixture
def inactive_staff():
    return Staff(
        id="former",
        name="Former Therapist",
        capabilities=[ServiceCategory.FACIAL],
        work_days=[0, 1, 2, 3, 4, 5, 6],
        is_active=False,
    )


@pytest.fixture
def facial():
    return Service(
        id="basic-facial",
        name="Basic Facial",
        category=ServiceCategory.FACIAL,
        duration=30,
        price=Decimal("65"),
    )


@pytest.fixture
def massage():
    return Service(
        id="balinese-massage",
        name="Balinese Massage",
        category=ServiceCategory.MASSAGE,
        duration=60,
        price=Decimal("90"),
    )


@pytest.fixture
def body_scrub():
    return Service(
        id="salt-scrub",
        name="Dead Sea Salt Body Scrub",
        category=ServiceCategory.BODY_SCRUB,
        duration=30,
        price=Decimal("65"),
    )


@pytest.fixture
def couples_massage():
    return Service(
        id="couples-massage",
        name="Couples Balinese Massage",
        category=ServiceCategory.MASSAGE,
        duration=60,
        price=Decimal("180"),
        is_couples_service=True,
    )


@pytest.fixture
def make_booking():
    """Factory for existing bookings on the Wednesday reference date."""

    def _make(
        staff_id="robyn",
        room_id=1,
        start=time(10, 0),
        end=time(10, 30),
        status=BookingStatus.CONFIRMED,
        appointment_date=WEDNESDAY,
        booking_id="booking-1",
    ):
        return Booking(
            id=booking_id,
            service_id="basic-facial",
            staff_id=staff_id,
            room_id=room_id,
            appointment_date=appointment_date,
            start_time=start,
            end_time=end,
            status=status,
        )

    return _make
