"""
Ride Log Store
==============

Append-only list of trip summaries kept as one JSON array in a blob store.

Usage:
    log = RideLogStore(SqliteBlobStore("logs/rides.db"))

    await log.append(summary)
    rides = await log.list_all()
    ride = await log.find_by_id(summary.id)
    await log.delete_by_id(summary.id)

Every write is a read-modify-write of the whole array; only one writer
may use a given key at a time.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

from pydantic import ValidationError

from ...core.errors import CorruptData, StoreUnavailable
from ...domain.models import TripSummary
from .blob_store import BACKEND_ERRORS, BlobStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_KEY = "routes"


class RideLogStore:
    """
    Ride log persisted under a single key.

    Raises:
        StoreUnavailable: backend I/O failed or exceeded ``timeout`` seconds
        CorruptData: stored content is not a list of ride records
    """

    def __init__(self, blob_store: BlobStore, key: str = DEFAULT_KEY, timeout: float = 10.0) -> None:
        self.blob_store = blob_store
        self.key = key
        self.timeout = timeout

    async def _call(self, op: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except TimeoutError as exc:
            logger.warning("Ride log %s timed out after %.1fs", op, self.timeout)
            raise StoreUnavailable(f"ride log {op} timed out after {self.timeout:.1f}s") from exc
        except BACKEND_ERRORS as exc:
            logger.warning("Ride log %s failed: %s", op, exc)
            raise StoreUnavailable(f"ride log {op} failed: {exc}") from exc

    async def _load(self) -> list[TripSummary]:
        raw = await self._call("read", self.blob_store.get(self.key))
        if raw is None or not raw.strip():
            return []

        try:
            data: Any = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CorruptData(f"ride log is not valid JSON: {exc}") from exc
        if not isinstance(data, list):
            raise CorruptData(f"ride log must be a JSON array, got {type(data).__name__}")

        rides: list[TripSummary] = []
        for index, item in enumerate(data):
            if not isinstance(item, dict):
                raise CorruptData(f"ride log entry {index} is not an object")
            try:
                rides.append(TripSummary.from_record(item))
            except (ValidationError, ValueError) as exc:
                raise CorruptData(f"ride log entry {index} is invalid: {exc}") from exc
        return rides

    async def _save(self, rides: list[TripSummary]) -> None:
        payload = json.dumps([ride.to_record() for ride in rides], allow_nan=False)
        await self._call("write", self.blob_store.put(self.key, payload))

    async def list_all(self) -> list[TripSummary]:
        """All rides in completion order."""
        return await self._load()

    async def append(self, summary: TripSummary) -> None:
        """Add one ride to the end of the log."""
        rides = await self._load()
        rides.append(summary)
        await self._save(rides)
        logger.info("Ride %s saved (%d rides in log)", summary.id, len(rides))

    async def find_by_id(self, ride_id: str) -> TripSummary | None:
        """Return the ride with ``ride_id``, None when absent."""
        for ride in await self._load():
            if ride.id == ride_id:
                return ride
        return None

    async def delete_by_id(self, ride_id: str) -> bool:
        """
        Remove every ride with ``ride_id``.

        Returns:
            True if something was removed. Absent ids are a no-op.
        """
        rides = await self._load()
        kept = [ride for ride in rides if ride.id != ride_id]
        if len(kept) == len(rides):
            logger.debug("Ride %s not in log, nothing to delete", ride_id)
            return False
        await self._save(kept)
        logger.info("Ride %s deleted", ride_id)
        return True

    async def count(self) -> int:
        return len(await self._load())

    async def close(self) -> None:
        await self.blob_store.close()
