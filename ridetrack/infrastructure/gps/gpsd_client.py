"""Location providers: async gpsd client, file replay and a simulated walk."""

from __future__ import annotations

import asyncio
import json
import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import AsyncIterator, Callable, Optional

from ...config import ProviderConfig
from ...domain.models import RawSample, parse_timestamp, utc_now
from .distance import haversine_km

logger = logging.getLogger(__name__)

SampleCallback = Callable[[RawSample], None]


@dataclass
class GPSState:
    """Internal GPS state tracking."""

    connected: bool = False
    fix_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    last_fix: Optional[datetime] = None


class LocationWatch:
    """Handle for a running :meth:`LocationProvider.watch` subscription."""

    def __init__(self, provider: LocationProvider, task: asyncio.Task) -> None:
        self._provider = provider
        self._task = task

    @property
    def active(self) -> bool:
        return not self._task.done()

    async def wait(self) -> None:
        """Wait until the provider stream ends by itself."""
        await asyncio.shield(self._task)

    async def stop(self) -> None:
        """Stop delivering samples and release the provider."""
        await self._provider.stop()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass


class LocationProvider:
    """
    Base for sample sources.

    Applies the minimum spatial interval between emitted samples; this
    is the source's own setting and independent of the trip filter.
    """

    def __init__(self, distance_interval_m: float = 0.0) -> None:
        self.distance_interval_m = distance_interval_m
        self._running = False
        self._last_emitted: RawSample | None = None
        self._state = GPSState()

    @property
    def state(self) -> GPSState:
        """Get internal state for diagnostics."""
        return self._state

    def _passes_interval(self, sample: RawSample) -> bool:
        last = self._last_emitted
        if last is None or self.distance_interval_m <= 0:
            return True
        return haversine_km(last.coordinate, sample.coordinate) * 1000 >= self.distance_interval_m

    def _emit(self, sample: RawSample) -> bool:
        if not self._passes_interval(sample):
            self._state.skipped_count += 1
            return False
        self._last_emitted = sample
        self._state.fix_count += 1
        self._state.last_fix = sample.captured_at
        return True

    async def _raw_samples(self) -> AsyncIterator[RawSample]:
        raise NotImplementedError
        yield  # pragma: no cover

    async def stream_samples(self) -> AsyncIterator[RawSample]:
        """Yield samples that pass the spatial interval until stopped."""
        self._running = True
        self._last_emitted = None
        async for sample in self._raw_samples():
            if not self._running:
                break
            if self._emit(sample):
                yield sample

    def watch(self, callback: SampleCallback) -> LocationWatch:
        """
        Deliver samples to ``callback`` from a background task.

        Must be called from a running event loop. The returned handle is
        the only way to stop the subscription.
        """

        async def _pump() -> None:
            async for sample in self.stream_samples():
                try:
                    callback(sample)
                except Exception as e:
                    logger.error("Location callback error: %s", e)

        return LocationWatch(self, asyncio.create_task(_pump()))

    async def stop(self) -> None:
        """Stop streaming."""
        self._running = False


class AsyncGPSClient(LocationProvider):
    """
    Async gpsd client with auto-reconnect.

    Usage:
        client = AsyncGPSClient(ProviderConfig(host="localhost"))

        async for sample in client.stream_samples():
            print(sample.coordinate.latitude, sample.coordinate.longitude)
    """

    def __init__(self, config: ProviderConfig | None = None) -> None:
        self.config = config or ProviderConfig()
        super().__init__(distance_interval_m=self.config.distance_interval_m)
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._reconnect_attempts = 0

    @property
    def is_connected(self) -> bool:
        return self._state.connected

    async def connect(self) -> bool:
        """
        Connect to gpsd daemon.

        Returns:
            True if connected successfully, False otherwise.
        """
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.config.host, self.config.port),
                timeout=self.config.timeout,
            )

            # Enable JSON streaming mode
            self._writer.write(b'?WATCH={"enable":true,"json":true}\n')
            await self._writer.drain()

            self._state.connected = True
            self._reconnect_attempts = 0
            logger.info("Connected to gpsd at %s:%d", self.config.host, self.config.port)
            return True

        except TimeoutError:
            logger.warning("GPS connection timeout to %s:%d", self.config.host, self.config.port)
        except ConnectionRefusedError:
            logger.warning("GPS connection refused - is gpsd running?")
        except OSError as e:
            logger.warning("GPS connection failed: %s", e)

        self._state.error_count += 1
        return False

    async def disconnect(self) -> None:
        """Disconnect from gpsd gracefully."""
        if self._writer:
            try:
                self._writer.write(b'?WATCH={"enable":false}\n')
                await self._writer.drain()
                self._writer.close()
                await self._writer.wait_closed()
            except OSError as e:
                logger.debug("GPS disconnect error: %s", e)

        self._reader = None
        self._writer = None
        self._state.connected = False

    async def _raw_samples(self) -> AsyncIterator[RawSample]:
        while self._running:
            if not self._reader:
                if not await self.connect():
                    self._reconnect_attempts += 1
                    if (
                        self.config.max_reconnect_attempts > 0
                        and self._reconnect_attempts >= self.config.max_reconnect_attempts
                    ):
                        logger.error("GPS max reconnect attempts reached, stopping")
                        break
                    await asyncio.sleep(self.config.reconnect_delay)
                    continue

            try:
                line = await asyncio.wait_for(
                    self._reader.readline(),  # type: ignore[union-attr]
                    timeout=self.config.timeout,
                )
                if not line:
                    raise ConnectionError("GPS connection closed by server")

                data = json.loads(line.decode("utf-8"))
                if data.get("class") == "TPV":
                    sample = parse_tpv(data)
                    if sample:
                        yield sample

            except TimeoutError:
                logger.debug("GPS read timeout, connection still alive")

            except json.JSONDecodeError as e:
                logger.warning("GPS JSON parse error: %s", e)

            except (ConnectionError, OSError) as e:
                logger.warning("GPS stream error: %s, reconnecting...", e)
                self._state.error_count += 1
                await self.disconnect()
                await asyncio.sleep(self.config.reconnect_delay)

    async def stop(self) -> None:
        """Stop streaming and disconnect."""
        await super().stop()
        await self.disconnect()


def parse_tpv(data: dict) -> Optional[RawSample]:
    """
    Parse a gpsd TPV (Time-Position-Velocity) message.

    Returns:
        RawSample for a 2D/3D fix with lat/lon, None otherwise
    """
    # Mode: 0=unknown, 1=no fix, 2=2D, 3=3D
    if data.get("mode", 0) < 2 or "lat" not in data or "lon" not in data:
        return None

    try:
        speed = data.get("speed")
        captured_at = parse_timestamp(data["time"]) if data.get("time") else utc_now()
        return RawSample.at(
            float(data["lat"]),
            float(data["lon"]),
            speed_mps=float(speed) if speed is not None else None,
            captured_at=captured_at,
        )
    except (KeyError, ValueError, TypeError) as e:
        logger.error("TPV parse error: %s - data: %s", e, data)
        return None


class ReplayLocationProvider(LocationProvider):
    """Replay recorded samples, optionally paced by ``delay`` seconds."""

    def __init__(
        self,
        samples: Iterable[RawSample],
        delay: float = 0.0,
        distance_interval_m: float = 0.0,
    ) -> None:
        super().__init__(distance_interval_m=distance_interval_m)
        self._samples = list(samples)
        self.delay = delay

    async def _raw_samples(self) -> AsyncIterator[RawSample]:
        for sample in self._samples:
            yield sample
            await asyncio.sleep(self.delay)


class SimulatedLocationProvider(LocationProvider):
    """
    Fake positions walking a circle, for development without a receiver.
    """

    def __init__(
        self,
        start_lat: float = 41.0082,
        start_lon: float = 28.9784,
        speed_mps: float = 8.0,
        interval: float = 1.0,
        radius_deg: float = 0.001,  # ~111 meters
        max_samples: int | None = None,
    ) -> None:
        super().__init__()
        self._start_lat = start_lat
        self._start_lon = start_lon
        self._speed = speed_mps
        self.interval = interval
        self.radius_deg = radius_deg
        self.max_samples = max_samples
        self._step = 0

    async def _raw_samples(self) -> AsyncIterator[RawSample]:
        started = utc_now()
        while self._running:
            if self.max_samples is not None and self._step >= self.max_samples:
                break
            angle = math.radians(self._step * 5)
            yield RawSample.at(
                self._start_lat + self.radius_deg * math.sin(angle),
                self._start_lon + self.radius_deg * math.cos(angle),
                speed_mps=self._speed,
                captured_at=started + timedelta(seconds=self._step * self.interval),
            )
            self._step += 1
            await asyncio.sleep(self.interval)
