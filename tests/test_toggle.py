import asyncio
from dataclasses import replace
from datetime import date

import pytest

from roomdesk.services.availability import SessionState, available_count, is_booked
from roomdesk.services.toggle import (
    OFFLINE_MESSAGE,
    TOGGLE_FAILED_MESSAGE,
    ToggleOutcome,
    apply_toggle,
    toggle_booking,
)
from tests.fakes import DAY, MAIN_HOUSE, SUITE_A, SUITE_B, FakeGateway, booking

JAN_1 = date(2024, 1, 1)


@pytest.fixture
def gateway():
    return FakeGateway(properties=[MAIN_HOUSE], rooms=[SUITE_A, SUITE_B])


@pytest.fixture
def state():
    return SessionState(selected_date=JAN_1, properties=(MAIN_HOUSE,), rooms=(SUITE_A, SUITE_B))


def toggle(gateway, state, room_id):
    result = asyncio.run(toggle_booking(gateway, state, room_id))
    return result, apply_toggle(state, result)


def test_toggle_available_room_inserts_booking(gateway, state):
    result, after = toggle(gateway, state, 10)

    assert result.outcome == ToggleOutcome.BOOKED
    row = gateway.tables["bookings"][0]
    assert {k: row[k] for k in ("room_id", "booking_date", "is_booked")} == {
        "room_id": 10, "booking_date": DAY, "is_booked": True,
    }
    assert is_booked(after, 10) is True
    assert available_count(after) == 1


def test_toggle_twice_restores_booking_membership(gateway, state):
    _, booked = toggle(gateway, state, 10)
    result, released = toggle(gateway, booked, 10)

    assert result.outcome == ToggleOutcome.RELEASED
    assert gateway.tables["bookings"] == []
    assert released.bookings == state.bookings
    assert is_booked(released, 10) is False


def test_offline_toggle_makes_no_call(gateway, state):
    offline = replace(state, online=False)
    result, after = toggle(gateway, offline, 10)

    assert result.outcome == ToggleOutcome.REJECTED_OFFLINE
    assert not result.attempted
    assert gateway.calls == []
    assert after.bookings == offline.bookings
    assert after.notice == OFFLINE_MESSAGE


def test_duplicate_insert_counts_as_already_booked(gateway, state):
    # Another client booked room 10 after our last fetch
    gateway.tables["bookings"].append(booking(5, 10))
    result, after = toggle(gateway, state, 10)

    assert result.outcome == ToggleOutcome.ALREADY_BOOKED
    assert result.needs_resync
    assert result.message is None
    assert after.notice is None


def test_failed_delete_keeps_local_state(gateway, state):
    loaded = replace(state, bookings=(booking(5, 10),))
    gateway.tables["bookings"].append(booking(5, 10))
    gateway.fail("delete", "bookings")
    result, after = toggle(gateway, loaded, 10)

    assert result.outcome == ToggleOutcome.FAILED
    assert result.needs_resync
    assert after.notice == TOGGLE_FAILED_MESSAGE
    assert is_booked(after, 10) is True


def test_unknown_room_is_rejected(gateway, state):
    with pytest.raises(LookupError):
        asyncio.run(toggle_booking(gateway, state, 99))
    assert gateway.calls == []


def test_result_for_previous_date_does_not_touch_bookings(gateway, state):
    result = asyncio.run(toggle_booking(gateway, state, 10))
    moved = replace(state, selected_date=date(2024, 1, 2))
    assert apply_toggle(moved, result).bookings == ()
