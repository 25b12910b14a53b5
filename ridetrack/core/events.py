"""
RideTrack Event Bus
===================

Lets displays follow a trip without the recorder knowing about them.

The recorder emits from synchronous code with ``emit_sync``; handlers run
later on the bus task in priority order. A failing handler is logged and
counted, the emitter never sees it.

Usage:
    bus = EventBus()
    bus.subscribe(EventType.TRIP_COMPLETED, show_summary)

    await bus.start()
    bus.emit_sync(EventType.TRIP_COMPLETED, data=summary)
    await bus.stop()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Callable, Coroutine, TypeAlias

from ..domain.models import utc_now

logger = logging.getLogger(__name__)

AsyncHandler: TypeAlias = Callable[["Event"], Coroutine[Any, Any, None]]


class EventType(Enum):
    """Trip and ride log events."""

    # Trip lifecycle
    TRIP_STARTED = auto()
    SAMPLE_ACCEPTED = auto()
    SAMPLE_REJECTED = auto()
    TRIP_COMPLETED = auto()
    TRIP_DISCARDED = auto()

    # Ride log
    RIDE_SAVED = auto()
    RIDE_SAVE_FAILED = auto()


@dataclass
class Event:
    type: EventType
    data: Any = None
    source: str = "system"
    emitted_at: datetime = field(default_factory=utc_now)


@dataclass
class _Subscription:
    handler: AsyncHandler
    priority: int = 100  # lower runs first


class EventBus:
    """Single-queue async event bus."""

    def __init__(self) -> None:
        self._subscriptions: dict[EventType, list[_Subscription]] = {}
        self._queue: asyncio.Queue[Event] = asyncio.Queue()
        self._task: asyncio.Task | None = None
        self.emitted = 0
        self.handler_errors = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None

    def subscribe(self, event_type: EventType, handler: AsyncHandler, priority: int = 100) -> None:
        """Call ``handler`` for every ``event_type`` event; lower priority runs first."""
        subs = self._subscriptions.setdefault(event_type, [])
        subs.append(_Subscription(handler, priority))
        subs.sort(key=lambda s: s.priority)

    def emit_sync(self, event_type: EventType, data: Any = None, source: str = "system") -> Event:
        """Queue an event from synchronous code."""
        event = Event(type=event_type, data=data, source=source)
        self._queue.put_nowait(event)
        self.emitted += 1
        return event

    async def emit(self, event_type: EventType, data: Any = None, source: str = "system") -> Event:
        return self.emit_sync(event_type, data, source)

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())
            logger.debug("Event bus started")

    async def drain(self, timeout: float = 5.0) -> bool:
        """Wait until queued events are handled. Returns False on timeout."""
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except TimeoutError:
            return False
        return True

    async def stop(self, timeout: float = 5.0) -> None:
        """Deliver what is queued, then stop the bus task."""
        if self._task is None:
            return
        if not await self.drain(timeout):
            logger.warning("Event queue not drained after %.1fs, dropping %d events", timeout, self._queue.qsize())
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.debug("Event bus stopped")

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._dispatch(event)
            finally:
                self._queue.task_done()

    async def _dispatch(self, event: Event) -> None:
        for sub in list(self._subscriptions.get(event.type, [])):
            try:
                await sub.handler(event)
            except Exception as e:
                self.handler_errors += 1
                logger.error(
                    "Handler %s failed on %s: %s",
                    getattr(sub.handler, "__name__", repr(sub.handler)),
                    event.type.name,
                    e,
                )
