"""Wiring of the ingestion and flush tasks around one shared buffer."""

from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from pathlib import Path
from typing import List

from services.aggregator import Aggregator
from services.buffer import PointBuffer
from services.errors import BrokerError
from services.ingestion import IngestionLoop, WindowPolicy
from services.parser import InputSyntax, TimestampPrecision, clock_for
from services.scheduler import FlushScheduler
from settings import Settings, get_settings
from storage.base import Sink
from storage.influxdb import InfluxDBSink
from storage.memory import InMemorySink
from transport.base import Transport
from transport.replay import ReplayTransport
from transport.serial_device import SerialTransport

logger = logging.getLogger(__name__)


class BrokerService:
    """Owns the buffer and the two long-running tasks sharing it."""

    def __init__(
        self,
        transport: Transport,
        sink: Sink,
        buffer: PointBuffer,
        *,
        bucket: str,
        location: str,
        syntax: InputSyntax = InputSyntax.delimited,
        policy: WindowPolicy = WindowPolicy.windowed,
        window_seconds: float = 60.0,
        flush_interval: float = 60.0,
        poll_interval: float = 1.0,
        precision: TimestampPrecision = TimestampPrecision.ns,
    ) -> None:
        self.transport = transport
        self.sink = sink
        self.buffer = buffer
        self.ingestion = IngestionLoop(
            transport=transport,
            buffer=buffer,
            aggregator=Aggregator(),
            location=location,
            syntax=syntax,
            policy=policy,
            window_seconds=window_seconds,
            poll_interval=poll_interval,
            timestamp_clock=clock_for(precision),
        )
        self.scheduler = FlushScheduler(buffer, sink, bucket, flush_interval)
        self._stop = asyncio.Event()
        self._tasks: List[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def start(self) -> None:
        """Spawn the ingestion and flush tasks on the running event loop."""
        if self._tasks:
            return
        self._stop = asyncio.Event()
        self._tasks = [
            asyncio.create_task(self.ingestion.run(self._stop), name="ingestion"),
            asyncio.create_task(self.scheduler.run(self._stop), name="flush"),
        ]
        for task in self._tasks:
            task.add_done_callback(self._log_task_exit)
        logger.info(
            "Broker started",
            extra={"bucket": self.scheduler.bucket, "location": self.ingestion.location},
        )

    @staticmethod
    def _log_task_exit(task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Task %s stopped: %s", task.get_name(), exc)

    async def shutdown(self) -> None:
        """Let both tasks finish their current iteration, then release collaborators.

        Points still buffered at this stage are discarded.
        """
        self._stop.set()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
            self._tasks = []
        await asyncio.to_thread(self.transport.close)
        await self.sink.close()
        logger.info("Broker stopped", extra={"point_count": len(self.buffer)})

    async def check_health(self) -> bool:
        """Check task liveness and both collaborators; any failure means unhealthy."""
        healthy = True
        if not self._stop.is_set() and any(task.done() for task in self._tasks):
            logger.error("A broker task has stopped unexpectedly")
            healthy = False
        try:
            await asyncio.to_thread(self.transport.health_check)
        except (BrokerError, OSError) as exc:
            logger.error("Transport health check failed: %s", exc)
            healthy = False
        try:
            await self.sink.health_check()
        except (BrokerError, OSError) as exc:
            logger.error("Sink health check failed: %s", exc)
            healthy = False
        return healthy


def build_transport(settings: Settings) -> Transport:
    if settings.transport == "replay":
        if settings.replay_path:
            return ReplayTransport.from_path(Path(settings.replay_path))
        return ReplayTransport([])
    transport = SerialTransport(
        port=settings.serial_port,
        baud_rate=settings.baud_rate,
        timeout_ms=settings.serial_timeout_ms,
        device_name=settings.device_name,
    )
    transport.sync_time()
    return transport


def build_sink(settings: Settings) -> Sink:
    if settings.sink == "memory":
        return InMemorySink()
    return InfluxDBSink(
        url=settings.influxdb_url,
        org=settings.influxdb_org,
        token=settings.influxdb_token,
        timeout=settings.sink_timeout,
        precision=TimestampPrecision(settings.timestamp_precision),
    )


@lru_cache
def build_default_broker() -> BrokerService:
    """Factory that wires the broker from environment settings."""
    settings = get_settings()
    return BrokerService(
        transport=build_transport(settings),
        sink=build_sink(settings),
        buffer=PointBuffer(settings.buffer_capacity),
        bucket=settings.influxdb_bucket,
        location=settings.location,
        syntax=InputSyntax(settings.input_syntax),
        policy=WindowPolicy(settings.window_policy),
        window_seconds=settings.window_seconds,
        flush_interval=settings.flush_interval,
        poll_interval=settings.poll_interval,
        precision=TimestampPrecision(settings.timestamp_precision),
    )
