"""Periodic flush of the point buffer into the sink."""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum

from services.buffer import PointBuffer
from services.errors import SinkError
from storage.base import Sink

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    idle = "idle"
    flushing = "flushing"


class FlushScheduler:
    """Drains the buffer on a fixed interval and hands each batch to the sink.

    Delivery is at most once: a batch whose write fails is logged and dropped,
    never re-buffered. Flushes run sequentially from a single loop, so at most one
    is in flight at a time.
    """

    def __init__(self, buffer: PointBuffer, sink: Sink, bucket: str, interval: float) -> None:
        if interval <= 0:
            raise ValueError("Flush interval must be positive.")
        self.buffer = buffer
        self.sink = sink
        self.bucket = bucket
        self.interval = interval
        self.state = SchedulerState.idle
        self.flushed_batches = 0
        self.failed_batches = 0

    async def flush_once(self) -> int:
        """Run one flush cycle and return the number of points written."""
        if self.buffer.is_empty():
            return 0

        self.state = SchedulerState.flushing
        start_time = time.perf_counter()
        try:
            points = self.buffer.drain()
            if not points:
                return 0
            try:
                await self.sink.write(self.bucket, points)
            except SinkError as exc:
                self.failed_batches += 1
                logger.error(
                    "Failed to flush buffer to sink: %s",
                    exc,
                    extra={"bucket": self.bucket, "point_count": len(points)},
                )
                return 0
            except Exception as exc:
                self.failed_batches += 1
                logger.exception(
                    "Unexpected error while flushing buffer to sink: %s",
                    exc,
                    extra={"bucket": self.bucket, "point_count": len(points)},
                )
                return 0
            self.flushed_batches += 1
            logger.info(
                "Flushed buffer to sink",
                extra={
                    "bucket": self.bucket,
                    "point_count": len(points),
                    "flush_ms": int((time.perf_counter() - start_time) * 1000),
                },
            )
            return len(points)
        finally:
            self.state = SchedulerState.idle

    async def run(self, stop: asyncio.Event) -> None:
        """Tick every ``interval`` seconds until ``stop`` is set."""
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                await self.flush_once()
