"""
Dashboard session state and the availability derived from it.

SessionState is immutable; every synchronization step returns a new one via
dataclasses.replace. The query functions below are pure: a room is booked for
the selected date iff a loaded booking row has its room_id and that date.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

LOAD_ERROR_MESSAGE = "Failed to load data. Check your connection."


@dataclass(frozen=True)
class SessionState:
    selected_date: date = field(default_factory=date.today)
    properties: tuple = ()
    selected_property_index: int = 0
    rooms: tuple = ()
    bookings: tuple = ()
    online: bool = True
    auto_refresh: bool = True
    realtime: bool = False
    # Number of fetches/toggles currently awaiting the gateway
    in_flight: int = 0
    error: Optional[str] = None
    notice: Optional[str] = None
    last_refresh: Optional[datetime] = None

    @property
    def loading(self) -> bool:
        return self.in_flight > 0

    @property
    def room_ids(self) -> frozenset:
        return frozenset(r["id"] for r in self.rooms)


def selected_property(state: SessionState) -> Optional[dict]:
    if 0 <= state.selected_property_index < len(state.properties):
        return state.properties[state.selected_property_index]
    return None


def scope_bookings(rows, room_ids, selected_date: date) -> tuple:
    """Keep only rows for the given rooms on the given date."""
    day = selected_date.isoformat()
    return tuple(
        b for b in rows
        if b.get("room_id") in room_ids and str(b.get("booking_date", ""))[:10] == day
    )


def booking_for(state: SessionState, room_id: int) -> Optional[dict]:
    for b in scope_bookings(state.bookings, state.room_ids, state.selected_date):
        if b["room_id"] == room_id:
            return b
    return None


def is_booked(state: SessionState, room_id: int) -> bool:
    return booking_for(state, room_id) is not None


def total_count(state: SessionState) -> int:
    return len(state.rooms)


def booked_count(state: SessionState) -> int:
    booked = {b["room_id"] for b in scope_bookings(state.bookings, state.room_ids, state.selected_date)}
    return len(booked)


def available_count(state: SessionState) -> int:
    return total_count(state) - booked_count(state)


def categories(state: SessionState) -> list[str]:
    """Distinct room categories in order of first appearance."""
    seen = []
    for room in state.rooms:
        if room.get("category") not in seen:
            seen.append(room.get("category"))
    return seen


def rooms_by_category(state: SessionState, category: str) -> list[dict]:
    return [room for room in state.rooms if room.get("category") == category]


def is_initial_load_failure(state: SessionState) -> bool:
    """No cached data to fall back on: the client should block and offer a retry."""
    return state.error is not None and not state.properties


def snapshot(state: SessionState) -> dict:
    """JSON-ready view of the session for the dashboard client."""
    prop = selected_property(state)
    return {
        "properties": [{"id": p["id"], "name": p.get("name")} for p in state.properties],
        "selected_property_index": state.selected_property_index,
        "property": prop,
        "date": state.selected_date.isoformat(),
        "total": total_count(state),
        "available": available_count(state),
        "booked": booked_count(state),
        "categories": [
            {
                "name": category,
                "rooms": [
                    {"id": room["id"], "name": room.get("name"), "booked": is_booked(state, room["id"])}
                    for room in rooms_by_category(state, category)
                ],
            }
            for category in categories(state)
        ],
        "online": state.online,
        "auto_refresh": state.auto_refresh,
        "realtime": state.realtime,
        "loading": state.loading,
        "error": state.error,
        "blocking_error": is_initial_load_failure(state),
        "notice": state.notice,
        "last_refresh": state.last_refresh.isoformat() if state.last_refresh else None,
    }
