import logging
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Optional

from ..errors import GatewayError, UniqueViolation
from .availability import SessionState, booking_for, scope_bookings

logger = logging.getLogger(__name__)

OFFLINE_MESSAGE = "No internet connection. Please check your connection and try again."
TOGGLE_FAILED_MESSAGE = "Error updating booking. Please try again."


class ToggleOutcome(str, Enum):
    BOOKED = "booked"
    RELEASED = "released"
    ALREADY_BOOKED = "already_booked"
    FAILED = "failed"
    REJECTED_OFFLINE = "rejected_offline"


@dataclass(frozen=True)
class ToggleResult:
    room_id: int
    booking_date: date
    outcome: ToggleOutcome
    removed_id: Optional[int] = None
    added: tuple = ()
    message: Optional[str] = None

    @property
    def attempted(self) -> bool:
        return self.outcome != ToggleOutcome.REJECTED_OFFLINE

    @property
    def needs_resync(self) -> bool:
        """Local bookings may disagree with the store and should be re-fetched now."""
        return self.outcome in (ToggleOutcome.FAILED, ToggleOutcome.ALREADY_BOOKED)


async def toggle_booking(gateway, state: SessionState, room_id: int) -> ToggleResult:
    """
    Flip a room between booked and available for state.selected_date.
    Deletes the existing booking row if one is loaded, otherwise inserts one.
    Gateway failures are reported in the result, never raised.
    """
    day = state.selected_date
    if not state.online:
        logger.info("Toggle for room %s rejected: offline", room_id)
        return ToggleResult(room_id, day, ToggleOutcome.REJECTED_OFFLINE, message=OFFLINE_MESSAGE)
    if room_id not in state.room_ids:
        raise LookupError(f"Room {room_id} is not in the selected property")

    existing = booking_for(state, room_id)
    try:
        if existing:
            logger.info("Removing booking %s (room %s, %s)", existing["id"], room_id, day)
            await gateway.delete("bookings", {"id": existing["id"]})
            return ToggleResult(room_id, day, ToggleOutcome.RELEASED, removed_id=existing["id"])
        logger.info("Adding booking for room %s on %s", room_id, day)
        rows = await gateway.insert(
            "bookings",
            [{"room_id": room_id, "booking_date": day.isoformat(), "is_booked": True}],
        )
        return ToggleResult(room_id, day, ToggleOutcome.BOOKED, added=tuple(rows or ()))
    except UniqueViolation:
        # Someone else booked it first; the re-fetch will show their row
        logger.info("Room %s already booked on %s", room_id, day)
        return ToggleResult(room_id, day, ToggleOutcome.ALREADY_BOOKED)
    except GatewayError as e:
        logger.error("Error toggling booking for room %s: %s", room_id, e)
        return ToggleResult(room_id, day, ToggleOutcome.FAILED, message=TOGGLE_FAILED_MESSAGE)


def apply_toggle(state: SessionState, result: ToggleResult) -> SessionState:
    """Fold a confirmed toggle into state. Results for another date only carry their message."""
    if result.message:
        state = replace(state, notice=result.message)
    if result.booking_date != state.selected_date:
        return state
    bookings = state.bookings
    if result.removed_id is not None:
        bookings = tuple(b for b in bookings if b["id"] != result.removed_id)
    if result.added:
        known = {b["id"] for b in bookings}
        fresh = [b for b in scope_bookings(result.added, state.room_ids, state.selected_date) if b["id"] not in known]
        bookings = bookings + tuple(fresh)
    return replace(state, bookings=bookings)
