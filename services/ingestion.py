"""Producer loop feeding parsed device readings into the point buffer."""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Callable, List

from models.records import Reading
from services.aggregator import Aggregator
from services.buffer import PointBuffer
from services.errors import ParseError
from services.parser import Clock, InputSyntax, is_valid_message, parse
from transport.base import Transport

logger = logging.getLogger(__name__)


class WindowPolicy(str, Enum):
    """How readings become points before they are buffered."""

    windowed = "windowed"
    passthrough = "passthrough"


class IngestionLoop:
    """Pulls raw messages from the transport and pushes points into the buffer.

    With ``WindowPolicy.windowed`` readings accumulate until more than
    ``window_seconds`` have passed since the previous aggregation, then one
    averaged point per measurement is pushed. With ``WindowPolicy.passthrough``
    every complete reading is pushed immediately as its own point.
    """

    def __init__(
        self,
        transport: Transport,
        buffer: PointBuffer,
        aggregator: Aggregator,
        location: str,
        syntax: InputSyntax = InputSyntax.delimited,
        policy: WindowPolicy = WindowPolicy.windowed,
        window_seconds: float = 60.0,
        poll_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        timestamp_clock: Clock = time.time_ns,
    ) -> None:
        self.transport = transport
        self.buffer = buffer
        self.aggregator = aggregator
        self.location = location
        self.syntax = syntax
        self.policy = policy
        self.window_seconds = window_seconds
        self.poll_interval = poll_interval
        self._clock = clock
        self._timestamp_clock = timestamp_clock
        self._pending: List[Reading] = []
        self._window_started = clock()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def step(self, raw: str) -> None:
        """Handle one raw message; malformed input is logged and dropped."""
        if not is_valid_message(raw, self.syntax):
            logger.warning("Invalid data format", extra={"raw": raw})
            return
        try:
            readings = parse(raw, self.location, self.syntax, clock=self._timestamp_clock)
        except ParseError as exc:
            logger.warning(
                "Failed to parse sensor data", extra={"raw": raw, "reason": str(exc)}
            )
            return

        if self.policy is WindowPolicy.passthrough:
            self.buffer.push(self.aggregator.passthrough(readings))
            return

        self._pending.extend(readings)
        self.maybe_close_window()

    def maybe_close_window(self) -> None:
        if self.policy is WindowPolicy.windowed and self._window_elapsed():
            self.flush_window()

    def flush_window(self) -> None:
        """Aggregate the readings collected so far and start a new window."""
        readings, self._pending = self._pending, []
        self._window_started = self._clock()
        points = self.aggregator.aggregate(readings)
        if points:
            self.buffer.push(points)
        logger.debug(
            "Closed aggregation window",
            extra={"reading_count": len(readings), "point_count": len(points)},
        )

    def _window_elapsed(self) -> bool:
        return self._clock() - self._window_started > self.window_seconds

    async def run(self, stop: asyncio.Event) -> None:
        """Read until ``stop`` is set. ``TransportError`` propagates to the caller."""
        while not stop.is_set():
            raw = await asyncio.to_thread(self.transport.read_next)
            if raw is None:
                self.maybe_close_window()
                try:
                    await asyncio.wait_for(stop.wait(), timeout=self.poll_interval)
                except asyncio.TimeoutError:
                    pass
                continue
            self.step(raw)
