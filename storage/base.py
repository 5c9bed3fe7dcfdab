"""Contract shared by the time-series sinks."""

from __future__ import annotations

from typing import List, Protocol, runtime_checkable

from models.records import Point


@runtime_checkable
class Sink(Protocol):
    """Durable destination for flushed points."""

    async def write(self, bucket: str, points: List[Point]) -> None:
        """Persist ``points`` into ``bucket`` or raise ``SinkError``."""

    async def health_check(self) -> None:
        """Return quietly when the sink is reachable, raise otherwise."""

    async def close(self) -> None:
        """Release any held connections."""
