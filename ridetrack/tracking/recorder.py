"""
Ride Recorder
=============

Connects a location stream, the trip state machine and the ride log.

Samples are handled synchronously in the caller's task; saving a finished
trip runs as a background task so it never holds up sample delivery. A
summary whose save failed stays in ``pending`` until ``retry_pending()``
succeeds.

Usage:
    recorder = RideRecorder(TripTracker(cfg.tracking), RideLogStore(blobs))

    summary = await recorder.record(provider.stream_samples(), stop_event)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from datetime import datetime

from ..core.errors import CorruptData, StoreUnavailable
from ..core.events import EventBus, EventType
from ..domain.models import RawSample, TripSummary
from ..infrastructure.storage.ride_log import RideLogStore
from .trip import TripTracker

logger = logging.getLogger(__name__)


async def _next_or_none(iterator: AsyncIterator[RawSample]) -> RawSample | None:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return None


class RideRecorder:
    """Drive one trip at a time from samples to a saved ride."""

    def __init__(
        self,
        tracker: TripTracker,
        store: RideLogStore,
        bus: EventBus | None = None,
    ) -> None:
        self.tracker = tracker
        self.store = store
        self.bus = bus
        self.pending: list[TripSummary] = []
        self._save_tasks: set[asyncio.Task] = set()
        self._stats = {"samples": 0, "accepted": 0, "rejected": 0, "saved": 0, "save_failures": 0}

    def _emit(self, event_type: EventType, data: object = None) -> None:
        if self.bus is not None:
            self.bus.emit_sync(event_type, data=data, source="recorder")

    def start(self, at: datetime | None = None) -> None:
        self.tracker.start(at)
        self._emit(EventType.TRIP_STARTED, self.tracker.state.started_at)

    def on_sample(self, sample: RawSample) -> bool:
        """Feed one sample. Returns True if it joined the route."""
        accepted = self.tracker.sample(sample)
        self._stats["samples"] += 1
        if accepted:
            self._stats["accepted"] += 1
            self._emit(EventType.SAMPLE_ACCEPTED, self.tracker.state.to_dict())
        else:
            self._stats["rejected"] += 1
            self._emit(EventType.SAMPLE_REJECTED, sample)
        return accepted

    def stop(self, at: datetime | None = None) -> TripSummary:
        """Finish the trip and schedule its save. Needs a running loop."""
        summary = self.tracker.stop(at)
        self._emit(EventType.TRIP_COMPLETED, summary)
        task = asyncio.create_task(self._save(summary))
        self._save_tasks.add(task)
        task.add_done_callback(self._save_tasks.discard)
        return summary

    def discard(self) -> None:
        """Drop the trip in progress without saving."""
        self.tracker.reset()
        self._emit(EventType.TRIP_DISCARDED)

    async def _save(self, summary: TripSummary) -> bool:
        try:
            await self.store.append(summary)
        except (StoreUnavailable, CorruptData) as exc:
            logger.error("Saving ride %s failed, kept for retry: %s", summary.id, exc)
            if summary not in self.pending:
                self.pending.append(summary)
            self._stats["save_failures"] += 1
            self._emit(EventType.RIDE_SAVE_FAILED, summary)
            return False

        if summary in self.pending:
            self.pending.remove(summary)
        self._stats["saved"] += 1
        self._emit(EventType.RIDE_SAVED, summary)
        return True

    async def wait_saved(self) -> None:
        """Wait for scheduled saves to finish."""
        if self._save_tasks:
            await asyncio.gather(*list(self._save_tasks))

    async def retry_pending(self) -> int:
        """Retry failed saves in completion order. Returns how many were saved."""
        saved = 0
        for summary in list(self.pending):
            if await self._save(summary):
                saved += 1
        return saved

    async def record(
        self,
        samples: AsyncIterator[RawSample],
        stop_event: asyncio.Event | None = None,
    ) -> TripSummary:
        """
        Track one trip from ``samples`` and save it.

        Stops when the stream ends or ``stop_event`` is set. Start and stop
        times come from the first and last sample when the stream has any.
        """
        stop_event = stop_event or asyncio.Event()
        iterator = samples.__aiter__()
        first: RawSample | None = None
        last: RawSample | None = None

        try:
            while not stop_event.is_set():
                next_sample = asyncio.ensure_future(_next_or_none(iterator))
                stopper = asyncio.ensure_future(stop_event.wait())
                done, _ = await asyncio.wait({next_sample, stopper}, return_when=asyncio.FIRST_COMPLETED)
                stopper.cancel()
                if next_sample not in done:
                    next_sample.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await next_sample
                    break
                sample = next_sample.result()
                if sample is None:
                    break

                if first is None:
                    first = sample
                    self.start(sample.captured_at)
                self.on_sample(sample)
                last = sample
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

        if first is None:
            self.start()
        summary = self.stop(last.captured_at if last else None)
        await self.wait_saved()
        return summary

    def get_stats(self) -> dict:
        return {**self._stats, "pending": len(self.pending)}
