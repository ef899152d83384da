"""
In-process subscribe/notify channel for table writes.

Writers call publish() from any thread (sync FastAPI routes and SQLAlchemy
calls run in worker threads); each subscriber's callback is scheduled on the
event loop it subscribed from.
"""
import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event: str  # "INSERT" | "DELETE"
    row: dict


Callback = Callable[[ChangeEvent], None]


class ChangeFeed:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: dict[str, list[tuple[asyncio.AbstractEventLoop, Callback]]] = {}

    def subscribe(self, table: str, callback: Callback) -> Callable[[], None]:
        """Register callback for writes to table. Must be called from a running loop."""
        loop = asyncio.get_running_loop()
        entry = (loop, callback)
        with self._lock:
            self._subscribers.setdefault(table, []).append(entry)

        def unsubscribe():
            with self._lock:
                subs = self._subscribers.get(table, [])
                if entry in subs:
                    subs.remove(entry)

        return unsubscribe

    def publish(self, table: str, event: str, row: Optional[dict] = None) -> int:
        """Notify subscribers of table; returns how many were scheduled."""
        change = ChangeEvent(table=table, event=event, row=dict(row or {}))
        with self._lock:
            subs = list(self._subscribers.get(table, []))
        delivered = 0
        for loop, callback in subs:
            if loop.is_closed():
                continue
            try:
                loop.call_soon_threadsafe(callback, change)
                delivered += 1
            except RuntimeError:
                # Loop shut down between the check and the call
                logger.debug("Dropped %s change for closed loop", table)
        return delivered

    def subscriber_count(self, table: str) -> int:
        with self._lock:
            return len(self._subscribers.get(table, []))


# Shared feed for this process: the table API and SqlGateway publish here
feed = ChangeFeed()
