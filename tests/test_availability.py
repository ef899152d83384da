from datetime import date

from roomdesk.services.availability import (
    LOAD_ERROR_MESSAGE,
    SessionState,
    available_count,
    booked_count,
    booking_for,
    categories,
    is_booked,
    is_initial_load_failure,
    rooms_by_category,
    selected_property,
    snapshot,
    total_count,
)
from tests.fakes import DAY, MAIN_HOUSE, SUITE_A, SUITE_B, booking

JAN_1 = date(2024, 1, 1)


def make_state(**kwargs):
    values = {
        "selected_date": JAN_1,
        "properties": (MAIN_HOUSE,),
        "rooms": (SUITE_A, SUITE_B),
        "bookings": (),
    }
    values.update(kwargs)
    return SessionState(**values)


def test_no_bookings_means_everything_available():
    state = make_state()
    assert available_count(state) == 2
    assert total_count(state) == 2
    assert is_booked(state, 10) is False


def test_booked_iff_row_for_room_exists():
    state = make_state(bookings=(booking(1, 10),))
    assert is_booked(state, 10) is True
    assert is_booked(state, 11) is False
    assert booking_for(state, 10)["id"] == 1
    assert available_count(state) == 1


def test_counts_always_add_up():
    for rows in [(), (booking(1, 10),), (booking(1, 10), booking(2, 11))]:
        state = make_state(bookings=rows)
        assert available_count(state) + booked_count(state) == total_count(state)


def test_bookings_outside_room_set_or_date_are_ignored():
    state = make_state(bookings=(booking(1, 99), booking(2, 11, day="2024-01-02")))
    assert is_booked(state, 11) is False
    assert booked_count(state) == 0
    assert available_count(state) == 2


def test_categories_keep_first_appearance_order():
    rooms = (
        {"id": 1, "property_id": 1, "category": "Suite", "name": "A"},
        {"id": 2, "property_id": 1, "category": "Deluxe", "name": "B"},
        {"id": 3, "property_id": 1, "category": "Suite", "name": "C"},
    )
    state = make_state(rooms=rooms)
    assert categories(state) == ["Suite", "Deluxe"]
    assert [r["name"] for r in rooms_by_category(state, "Suite")] == ["A", "C"]
    assert rooms_by_category(state, "Cabin") == []


def test_selected_property_out_of_range():
    assert selected_property(make_state()) == MAIN_HOUSE
    assert selected_property(make_state(selected_property_index=5)) is None


def test_initial_load_failure_only_without_properties():
    assert is_initial_load_failure(make_state(properties=(), error=LOAD_ERROR_MESSAGE))
    assert not is_initial_load_failure(make_state(error=LOAD_ERROR_MESSAGE))
    assert not is_initial_load_failure(make_state(properties=()))


def test_snapshot_groups_rooms_with_flags():
    state = make_state(bookings=(booking(1, 11),), in_flight=1)
    snap = snapshot(state)
    assert snap["date"] == DAY
    assert snap["property"] == MAIN_HOUSE
    assert (snap["total"], snap["available"], snap["booked"]) == (2, 1, 1)
    assert snap["categories"] == [
        {"name": "Suite", "rooms": [
            {"id": 10, "name": "A", "booked": False},
            {"id": 11, "name": "B", "booked": True},
        ]},
    ]
    assert snap["loading"] is True
    assert snap["blocking_error"] is False
    assert snap["last_refresh"] is None
