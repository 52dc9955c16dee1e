"""
UpdateNotifier wakes open SSE connections after task store mutations.

Each browser tab holds one subscriber queue. Notifications are a bare
"update" marker, not an event log: a subscriber that already has a wake-up
pending is skipped.
"""

import asyncio
import logging
import threading
from datetime import datetime, timezone
from typing import AsyncGenerator, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

UPDATE_MARKER = "update"


class UpdateNotifier:
    """Registry of SSE subscriber queues.

    notify() may be called from any thread (store mutations run in the
    request thread pool); delivery is scheduled onto each subscriber's loop.
    """

    def __init__(self, keepalive_seconds: float = 30.0):
        self.keepalive_seconds = keepalive_seconds
        # queue -> loop that owns it
        self._subscribers: Dict[asyncio.Queue, asyncio.AbstractEventLoop] = {}
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        """Create and register a queue on the running event loop."""
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        with self._lock:
            self._subscribers[queue] = loop
            total = len(self._subscribers)
        logger.info(f"SSE subscriber added (total: {total})")
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        with self._lock:
            removed = self._subscribers.pop(queue, None) is not None
            total = len(self._subscribers)
        if removed:
            logger.info(f"SSE subscriber removed (total: {total})")

    def notify(self) -> None:
        """Offer an update marker to every subscriber without blocking."""
        with self._lock:
            targets = list(self._subscribers.items())
        for queue, loop in targets:
            try:
                loop.call_soon_threadsafe(_offer, queue)
            except RuntimeError:
                # loop already closed; the generator's finally will unsubscribe
                logger.debug("Skipping SSE subscriber on a closed loop")

    async def event_generator(
        self,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    ) -> AsyncGenerator[str, None]:
        """Subscribe and yield SSE-formatted strings until the client leaves.

        Used directly as the body of a StreamingResponse. The queue is only
        registered once the body starts, so a request dropped before that
        leaves nothing behind.
        """
        queue = self.subscribe()
        try:
            yield ": connected\n\n"
            while True:
                if is_disconnected is not None and await is_disconnected():
                    break
                try:
                    marker = await asyncio.wait_for(queue.get(), timeout=self.keepalive_seconds)
                    yield f"data: {marker}\n\n"
                except asyncio.TimeoutError:
                    yield f": keepalive {datetime.now(timezone.utc).isoformat()}\n\n"
        finally:
            self.unsubscribe(queue)


def _offer(queue: asyncio.Queue) -> None:
    try:
        queue.put_nowait(UPDATE_MARKER)
    except asyncio.QueueFull:
        pass
