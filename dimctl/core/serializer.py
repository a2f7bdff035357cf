"""Bounded FIFO that drains queued payloads one cycle at a time."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable, Mapping
from enum import StrEnum
from typing import Any, Protocol

from dimctl.core.model import QueueItem

LOGGER = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100
DEFAULT_SPACING_S = 0.05

ItemHandler = Callable[[QueueItem], Awaitable[Any] | None]


class Scheduler(Protocol):
    def schedule(self, delay_s: float, callback: Callable[[], None]) -> None:
        """Run ``callback`` once after ``delay_s`` seconds."""

    def cancel_all(self) -> None:
        """Cancel every callback that has not run yet."""


class AsyncioScheduler:
    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._handles: set[asyncio.TimerHandle] = set()

    def schedule(self, delay_s: float, callback: Callable[[], None]) -> None:
        loop = self._loop or asyncio.get_running_loop()
        handle: asyncio.TimerHandle

        def _run() -> None:
            self._handles.discard(handle)
            callback()

        handle = loop.call_later(delay_s, _run)
        self._handles.add(handle)

    def cancel_all(self) -> None:
        for handle in self._handles:
            handle.cancel()
        self._handles.clear()

    @property
    def pending(self) -> int:
        return len(self._handles)


class SerializerState(StrEnum):
    IDLE = "idle"
    DRAINING = "draining"


def drain_delay(now: float, last_start: float, spacing_s: float) -> float:
    """Seconds to wait so drains start at least ``spacing_s`` apart."""
    return max(0.0, spacing_s - (now - last_start))


class EventSerializer:
    """Runs ``handler`` for one queued payload at a time, in arrival order.

    The handler either returns ``None`` (the item was dropped) or an awaitable
    for the item's drain cycle; the next item is not started until that
    awaitable has finished, whatever its outcome.
    """

    def __init__(
        self,
        handler: ItemHandler,
        *,
        capacity: int = DEFAULT_CAPACITY,
        spacing_s: float = DEFAULT_SPACING_S,
        scheduler: Scheduler | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._handler = handler
        self._capacity = capacity
        self._spacing_s = spacing_s
        self._scheduler = scheduler or AsyncioScheduler()
        self._clock = clock
        self._queue: deque[QueueItem] = deque()
        self._state = SerializerState.IDLE
        self._last_start = float("-inf")
        self._in_flight: asyncio.Future[Any] | None = None
        self._idle_waiters: list[asyncio.Future[None]] = []
        self.dropped = 0

    @property
    def state(self) -> SerializerState:
        return self._state

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None

    @property
    def capacity(self) -> int:
        return self._capacity

    def enqueue(self, payload: Mapping[str, Any]) -> bool:
        """Queue ``payload``; must be called from inside the running event loop."""
        # Raises RuntimeError before any state changes when there is no loop.
        asyncio.get_running_loop()
        if len(self._queue) >= self._capacity:
            self.dropped += 1
            LOGGER.warning("Queue full (%s items), dropping event %r", self._capacity, payload)
            return False

        self._queue.append(QueueItem(payload=payload, enqueued_at=self._clock()))
        LOGGER.debug("Queued event, %s pending", len(self._queue))
        if self._state is SerializerState.IDLE:
            self._drain_next()
        return True

    async def wait_idle(self) -> None:
        if self._state is SerializerState.IDLE:
            return
        waiter = asyncio.get_running_loop().create_future()
        self._idle_waiters.append(waiter)
        await waiter

    def cancel_pending(self) -> None:
        """Cancel a scheduled drain; queued items stay queued."""
        self._scheduler.cancel_all()
        if self._in_flight is None:
            self._set_idle()

    def _drain_next(self) -> None:
        if not self._queue:
            self._set_idle()
            return

        self._state = SerializerState.DRAINING
        self._last_start = self._clock()
        item = self._queue.popleft()

        try:
            cycle = self._handler(item)
        except Exception:
            LOGGER.exception("Event handler failed for %r", item.payload)
            cycle = None

        if cycle is None:
            self._schedule_next()
            return

        self._in_flight = asyncio.ensure_future(cycle)
        self._in_flight.add_done_callback(self._on_cycle_done)

    def _on_cycle_done(self, future: asyncio.Future[Any]) -> None:
        self._in_flight = None
        if future.cancelled():
            LOGGER.warning("Drain cycle was cancelled")
        elif future.exception() is not None:
            LOGGER.error("Drain cycle failed", exc_info=future.exception())
        self._schedule_next()

    def _schedule_next(self) -> None:
        delay = drain_delay(self._clock(), self._last_start, self._spacing_s)
        self._scheduler.schedule(delay, self._drain_next)

    def _set_idle(self) -> None:
        self._state = SerializerState.IDLE
        waiters, self._idle_waiters = self._idle_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)
