"""
Unit tests for the room assignment resolver.
"""

from itertools import combinations

from models.room import Room
from scheduling.room_assignment import (
    RoomRule,
    get_optimal_room,
    get_room_utilization_info,
    room_rule_for,
)


def _subsets(rooms):
    for size in range(len(rooms) + 1):
        for subset in combinations(rooms, size):
            yield list(subset)


class TestBodyScrubRoom:
    """Body scrub services only ever go to the body scrub room."""

    def test_assigns_scrub_room(self, body_scrub, room1, room3):
        result = get_optimal_room(body_scrub, None, [room1, room3])

        assert result.room == room3
        assert "Body scrub service requires Room 3" in result.reason
        assert result.errors == []

    def test_requires_room_3_flag(self, facial, rooms, room3):
        flagged = facial.model_copy(update={"requires_room_3": True})
        assert get_optimal_room(flagged, None, rooms).room == room3

    def test_scrub_room_inactive(self, body_scrub, room1, room3):
        room3.is_active = False
        result = get_optimal_room(body_scrub, None, [room1, room3])

        assert result.room is None
        assert result.errors == [
            "Room 3 is required for body scrub services but is currently unavailable"
        ]

    def test_no_scrub_room(self, body_scrub, room1, room2):
        result = get_optimal_room(body_scrub, None, [room1, room2])

        assert result.room is None
        assert result.errors == ["No room with body scrub equipment found in the system"]

    def test_never_falls_back_to_other_room(self, body_scrub, rooms, room3, robyn):
        for subset in _subsets(rooms):
            result = get_optimal_room(body_scrub, robyn, subset)
            if result.room is None:
                assert result.errors
            else:
                assert result.room == room3

    def test_couples_scrub_needs_double_room(self, body_scrub):
        single_scrub_room = Room(
            id=3, name="Room 3", capacity=1, has_body_scrub_equipment=True
        )
        couples_scrub = body_scrub.model_copy(update={"is_couples_service": True})

        result = get_optimal_room(couples_scrub, None, [single_scrub_room])

        assert result.room is None
        assert result.errors == [
            "Couples services cannot be performed in Room 3 (single occupancy only)"
        ]


class TestCouplesRoom:
    """Couples services need a room for two."""

    def test_prefers_scrub_room(self, couples_massage, rooms, room3):
        result = get_optimal_room(couples_massage, None, rooms)

        assert result.room == room3
        assert "premium couples room" in result.reason

    def test_any_couples_room(self, couples_massage, room1, room2):
        result = get_optimal_room(couples_massage, None, [room1, room2])

        assert result.room == room2
        assert result.reason == "Couples service assigned to Room 2 (couples room)"

    def test_single_room_rejected(self, couples_massage, room1):
        result = get_optimal_room(couples_massage, None, [room1])

        assert result.room is None
        assert result.errors == [
            "Couples services cannot be performed in Room 1 (single occupancy only)"
        ]

    def test_no_rooms(self, couples_massage):
        result = get_optimal_room(couples_massage, None, [])

        assert result.room is None
        assert result.errors == ["No couples rooms available for this time slot"]

    def test_inactive_couples_room_skipped(self, couples_massage, room2, room3):
        room3.is_active = False
        assert get_optimal_room(couples_massage, None, [room2, room3]).room == room2

    def test_never_single_occupancy(self, couples_massage, rooms, tanisha):
        for subset in _subsets(rooms):
            result = get_optimal_room(couples_massage, tanisha, subset)
            assert result.room is None or result.room.capacity >= 2


class TestStandardRoom:
    """Single services use the staff default room or the smallest suitable room."""

    def test_staff_default_room(self, facial, selma, rooms, room1):
        result = get_optimal_room(facial, selma, rooms)

        assert result.room == room1
        assert result.reason == "Assigned to Selma Villaver's default room"

    def test_default_room_ignored_when_not_capable(self, massage, selma, rooms, room2):
        selma.default_room_id = 3
        result = get_optimal_room(massage, selma, rooms)

        assert result.room == room2
        assert result.reason == "Assigned to available Room 2"

    def test_default_room_inactive(self, facial, selma, rooms, room1):
        room1.is_active = False
        result = get_optimal_room(facial, selma, rooms)

        # Room 2 and Room 3 both hold two; Room 2 comes first
        assert result.room.id == 2

    def test_smallest_room_without_staff(self, facial, rooms, room1):
        assert get_optimal_room(facial, None, rooms).room == room1

    def test_stable_order_for_equal_capacity(self, massage, room2, room3):
        assert get_optimal_room(massage, None, [room3, room2]).room == room3
        assert get_optimal_room(massage, None, [room2, room3]).room == room2

    def test_no_suitable_room(self, massage, room1):
        result = get_optimal_room(massage, None, [room1])

        assert result.room is None
        assert result.errors == ["No rooms available that can accommodate massage services"]
        assert result.reason

    def test_missing_service(self, rooms):
        result = get_optimal_room(None, None, rooms)

        assert result.room is None
        assert result.errors == ["Service is required"]


def test_room_rule_for(body_scrub, couples_massage, facial):
    assert room_rule_for(body_scrub) == RoomRule.BODY_SCRUB
    assert room_rule_for(couples_massage) == RoomRule.COUPLES
    assert room_rule_for(facial) == RoomRule.STANDARD


def test_room_utilization_info(room1, room3):
    scrub_info = get_room_utilization_info(room3)
    assert "Body Scrub Equipment" in scrub_info["special_features"]
    assert "Couples Setup" in scrub_info["special_features"]
    assert "body_scrub" in scrub_info["capabilities"]

    single_info = get_room_utilization_info(room1)
    assert single_info["suitable_for"] == ["Individual treatments only"]
    assert single_info["capabilities"] == ["facial", "waxing"]
