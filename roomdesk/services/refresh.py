"""
Refresh orchestration for the dashboard session.

Triggers (mount, property/date change, timer, change feed, connectivity,
visibility/focus, manual) each re-fetch part or all of the remote state into
an immutable SessionState.

Overlapping fetches are fenced: each fetch takes a ticket per resource, and a
response whose ticket is older than the last applied one is dropped. A
confirmed toggle also takes a bookings ticket so it cannot be reverted by a
fetch that was dispatched before the write.
"""
import asyncio
import contextlib
import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Optional, Union

from ..config import settings
from ..errors import GatewayError
from .availability import LOAD_ERROR_MESSAGE, SessionState, scope_bookings, selected_property
from .changefeed import ChangeEvent
from .toggle import ToggleOutcome, ToggleResult, apply_toggle, toggle_booking

logger = logging.getLogger(__name__)

RESOURCES = ("properties", "rooms", "bookings")


class RefreshOrchestrator:
    def __init__(
        self,
        gateway,
        state: Optional[SessionState] = None,
        refresh_interval: Optional[float] = None,
        foreground_delay: Optional[float] = None,
        recheck_delay: Optional[float] = None,
        realtime: Optional[bool] = None,
    ):
        self.gateway = gateway
        self.state = state or SessionState(auto_refresh=settings.AUTO_REFRESH)
        self.refresh_interval = settings.REFRESH_INTERVAL_SECONDS if refresh_interval is None else refresh_interval
        self.foreground_delay = settings.FOREGROUND_REFRESH_DELAY_SECONDS if foreground_delay is None else foreground_delay
        self.recheck_delay = settings.TOGGLE_RECHECK_DELAY_SECONDS if recheck_delay is None else recheck_delay
        self.realtime = settings.REALTIME_ENABLED if realtime is None else realtime

        self._issued = {name: 0 for name in RESOURCES}
        self._applied = {name: 0 for name in RESOURCES}
        self._timer: Optional[asyncio.Task] = None
        self._pending: set[asyncio.Task] = set()
        self._unsubscribe = None
        self._started = False
        # Which step set state.error: "data", "rooms" or "bookings"
        self._error_source: Optional[str] = None

    # ---- lifecycle ----

    async def start(self):
        """Mount: subscribe to changes if possible, load everything, arm the timer."""
        if self._started:
            return
        self._started = True
        if self.realtime:
            self._unsubscribe = self.gateway.subscribe("bookings", self._on_change)
        self.state = replace(self.state, realtime=self._unsubscribe is not None)
        logger.info("Dashboard session starting (realtime=%s)", self.state.realtime)
        await self.refresh_all()
        self._rearm_timer()

    async def stop(self):
        self._started = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        tasks = list(self._pending)
        if self._timer is not None:
            tasks.append(self._timer)
            self._timer = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._pending.clear()
        self.state = replace(self.state, realtime=False)

    @property
    def polling(self) -> bool:
        return self._timer is not None and not self._timer.done()

    # ---- fencing ----

    def _ticket(self, resource: str) -> int:
        self._issued[resource] += 1
        return self._issued[resource]

    def _accept(self, resource: str, ticket: int) -> bool:
        if ticket < self._applied[resource]:
            logger.debug("Discarding stale %s response (ticket %s < %s)", resource, ticket, self._applied[resource])
            return False
        self._applied[resource] = ticket
        return True

    @contextlib.contextmanager
    def _busy(self):
        self.state = replace(self.state, in_flight=self.state.in_flight + 1)
        try:
            yield
        finally:
            self.state = replace(self.state, in_flight=self.state.in_flight - 1)

    def _fail(self, what: str, exc: Exception):
        logger.warning("Error loading %s: %s", what, exc)
        self._error_source = what
        self.state = replace(self.state, error=LOAD_ERROR_MESSAGE)

    def _succeed(self, *sources: str):
        """Record a successful load; clears the error only if one of `sources` raised it."""
        error = self.state.error
        if self._error_source in sources:
            error = None
            self._error_source = None
        self.state = replace(self.state, error=error, last_refresh=datetime.now())

    # ---- fetch steps ----

    async def _load_properties(self):
        ticket = self._ticket("properties")
        rows = tuple(await self.gateway.select("properties", order=["id"]) or ())
        if not self._accept("properties", ticket):
            return
        index = self.state.selected_property_index
        if not 0 <= index < len(rows):
            index = 0
        self.state = replace(self.state, properties=rows, selected_property_index=index)

    async def _load_rooms(self):
        prop = selected_property(self.state)
        if prop is None:
            self.state = replace(self.state, rooms=(), bookings=())
            return
        ticket = self._ticket("rooms")
        logger.debug("Loading rooms for property %s", prop["id"])
        rows = await self.gateway.select("rooms", {"property_id": prop["id"]}, ["category", "name"])
        if not self._accept("rooms", ticket):
            return
        current = selected_property(self.state)
        if current is None or current["id"] != prop["id"]:
            logger.debug("Dropping rooms for property %s: selection changed", prop["id"])
            return
        rooms = tuple(rows or ())
        room_ids = frozenset(r["id"] for r in rooms)
        self.state = replace(
            self.state,
            rooms=rooms,
            bookings=scope_bookings(self.state.bookings, room_ids, self.state.selected_date),
        )

    async def _load_bookings(self):
        room_ids = self.state.room_ids
        day = self.state.selected_date
        if not room_ids:
            self.state = replace(self.state, bookings=())
            return
        ticket = self._ticket("bookings")
        logger.debug("Loading bookings for %s", day)
        rows = await self.gateway.select(
            "bookings", {"room_id": sorted(room_ids), "booking_date": day.isoformat()}
        )
        if not self._accept("bookings", ticket):
            return
        if self.state.selected_date != day or self.state.room_ids != room_ids:
            logger.debug("Dropping bookings for %s: selection changed", day)
            return
        self.state = replace(self.state, bookings=scope_bookings(rows or (), room_ids, day))
        logger.debug("Loaded bookings: %d", len(self.state.bookings))

    # ---- triggers ----

    async def refresh_all(self) -> bool:
        """Full re-fetch: properties, rooms of the selected property, bookings for the date."""
        with self._busy():
            try:
                await self._load_properties()
                await self._load_rooms()
                await self._load_bookings()
            except GatewayError as e:
                self._fail("data", e)
                return False
        self._succeed("data", "rooms", "bookings")
        return True

    async def refresh_bookings(self) -> bool:
        with self._busy():
            try:
                await self._load_bookings()
            except GatewayError as e:
                self._fail("bookings", e)
                return False
        self._succeed("bookings")
        return True

    async def select_property(self, index: int) -> bool:
        if not 0 <= index < len(self.state.properties):
            raise ValueError(f"No property at index {index}")
        self.state = replace(self.state, selected_property_index=index, rooms=(), bookings=())
        with self._busy():
            try:
                await self._load_rooms()
                await self._load_bookings()
            except GatewayError as e:
                self._fail("rooms", e)
                return False
        self._succeed("rooms", "bookings")
        return True

    async def select_date(self, day: Union[date, str]) -> bool:
        if isinstance(day, str):
            day = date.fromisoformat(day)
        if day == self.state.selected_date:
            return await self.refresh_bookings()
        self.state = replace(self.state, selected_date=day, bookings=())
        return await self.refresh_bookings()

    async def manual_refresh(self) -> bool:
        logger.info("Manual refresh triggered")
        return await self.refresh_all()

    async def set_online(self, online: bool) -> bool:
        """Connectivity transition. Returns True when a full refresh ran."""
        regained = online and not self.state.online
        self.state = replace(self.state, online=online)
        self._rearm_timer()
        if regained and self.state.auto_refresh:
            logger.info("Back online, refreshing data...")
            return await self.refresh_all()
        return False

    def on_visibility(self, visible: bool) -> bool:
        """App foregrounded/backgrounded. Returns True when a refresh was scheduled."""
        if not visible:
            return False
        return self._schedule_foreground_refresh("App became visible")

    def on_focus(self) -> bool:
        return self._schedule_foreground_refresh("App gained focus")

    def set_auto_refresh(self, enabled: bool):
        self.state = replace(self.state, auto_refresh=enabled)
        self._rearm_timer()

    def dismiss_notice(self):
        self.state = replace(self.state, notice=None)

    async def toggle_room(self, room_id: int) -> ToggleResult:
        """Toggle a room for the selected date, then reconcile with the store."""
        with self._busy():
            result = await toggle_booking(self.gateway, self.state, room_id)
        if result.outcome in (ToggleOutcome.BOOKED, ToggleOutcome.RELEASED):
            self._accept("bookings", self._ticket("bookings"))
        self.state = apply_toggle(self.state, result)
        if not result.attempted:
            return result
        if result.needs_resync:
            await self.refresh_bookings()
        self._later(self.recheck_delay, self.refresh_bookings)
        return result

    # ---- scheduling ----

    def _schedule_foreground_refresh(self, reason: str) -> bool:
        if not (self.state.online and self.state.auto_refresh):
            return False
        logger.info("%s, refreshing data...", reason)
        self._later(self.foreground_delay, self.refresh_all)
        return True

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        task.add_done_callback(self._log_task_failure)
        return task

    def _log_task_failure(self, task: asyncio.Task):
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background refresh failed", exc_info=exc)

    def _later(self, delay: float, fn) -> asyncio.Task:
        async def run():
            await asyncio.sleep(delay)
            await fn()

        return self._spawn(run())

    def _should_poll(self) -> bool:
        return (
            self._started
            and self.state.online
            and self.state.auto_refresh
            and self._unsubscribe is None
        )

    def _rearm_timer(self):
        if self._should_poll():
            if self._timer is None or self._timer.done():
                self._timer = asyncio.create_task(self._poll())
        elif self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _poll(self):
        while True:
            await asyncio.sleep(self.refresh_interval)
            try:
                await self.refresh_bookings()
            except Exception:
                logger.exception("Scheduled bookings refresh crashed")

    def _on_change(self, event: ChangeEvent):
        if not (self._started and self.state.online and self.state.auto_refresh):
            return
        room_id = event.row.get("room_id")
        if room_id is not None and room_id not in self.state.room_ids:
            return
        logger.debug("Bookings %s notification, refreshing", event.event)
        self._spawn(self.refresh_bookings())
