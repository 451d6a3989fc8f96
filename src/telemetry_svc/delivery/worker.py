"""Background workers that drain and reclaim the staging queue."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

from ..service import TelemetryService
from .sinks.base import TelemetrySink


logger = logging.getLogger(__name__)


@dataclass
class DeliveryWorker:
    """
    Periodically checks out a batch, sends it, and acknowledges it.

    A batch is acknowledged only after the sink returns. If sending fails
    the entries stay checked out; the reclaim worker makes them available
    again once they go stale, so they are retried on a later pass.
    """
    service: TelemetryService
    sink: TelemetrySink
    interval_seconds: float = 60.0

    # Internal state
    _running: bool = field(default=False, init=False)
    _last_delivery: float = field(default_factory=time.time, init=False)
    _stats: dict = field(default_factory=dict, init=False)

    def __post_init__(self):
        self._stats = {
            "batches_sent": 0,
            "events_sent": 0,
            "send_errors": 0,
        }

    async def deliver_once(self) -> int:
        """
        Deliver one batch.

        Returns the number of events acknowledged (0 if nothing was
        available or the send failed).
        """
        batch = await asyncio.to_thread(self.service.fetch_batch)
        if batch.is_empty:
            return 0

        try:
            await self.sink.send(batch.url, batch.events)
        except Exception as e:
            logger.warning(f"Failed to deliver {len(batch)} telemetry events to {batch.url}: {e}")
            self._stats["send_errors"] += 1
            return 0

        acknowledged = await asyncio.to_thread(self.service.acknowledge, batch.uuids)
        self._last_delivery = time.time()
        self._stats["batches_sent"] += 1
        self._stats["events_sent"] += len(batch)
        logger.info(f"Delivered {len(batch)} telemetry events to {batch.url}")
        return acknowledged

    async def timer_loop(self) -> None:
        """Background loop that delivers on interval until stopped or cancelled."""
        self._running = True
        logger.info(f"Telemetry delivery loop started (interval={self.interval_seconds}s)")

        while self._running:
            try:
                await self.deliver_once()
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                logger.info("Telemetry delivery loop cancelled")
                break
            except Exception as e:
                logger.error(f"Delivery loop error: {e}")
                await asyncio.sleep(self.interval_seconds)

    async def stop(self) -> None:
        """Stop the loop after the current iteration."""
        self._running = False
        logger.info(f"Telemetry delivery worker stopped. Stats: {self._stats}")

    @property
    def stats(self) -> dict:
        """Get delivery statistics."""
        return {
            **self._stats,
            "seconds_since_delivery": time.time() - self._last_delivery,
        }


@dataclass
class ReclaimWorker:
    """Periodically returns stale checkouts to the available pool."""
    service: TelemetryService
    interval_seconds: float = 60.0

    # Internal state
    _running: bool = field(default=False, init=False)
    _stats: dict = field(default_factory=dict, init=False)

    def __post_init__(self):
        self._stats = {
            "runs": 0,
            "reclaimed": 0,
            "errors": 0,
        }

    async def reclaim_once(self) -> int:
        reclaimed = await asyncio.to_thread(self.service.reclaim_stale)
        self._stats["runs"] += 1
        self._stats["reclaimed"] += reclaimed
        return reclaimed

    async def timer_loop(self) -> None:
        self._running = True
        logger.info(f"Telemetry reclaim loop started (interval={self.interval_seconds}s)")

        while self._running:
            try:
                await self.reclaim_once()
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                logger.info("Telemetry reclaim loop cancelled")
                break
            except Exception as e:
                logger.error(f"Reclaim loop error: {e}")
                self._stats["errors"] += 1
                await asyncio.sleep(self.interval_seconds)

    async def stop(self) -> None:
        self._running = False
        logger.info(f"Telemetry reclaim worker stopped. Stats: {self._stats}")

    @property
    def stats(self) -> dict:
        return dict(self._stats)
