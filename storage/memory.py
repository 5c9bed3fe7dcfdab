from __future__ import annotations

from threading import Lock
from typing import Dict, List

from models.records import Point
from services.errors import SinkError


class InMemorySink:
    """Process-local sink used for development and tests."""

    def __init__(self, name: str = "memory") -> None:
        self.name = name
        self._buckets: Dict[str, List[Point]] = {}
        self._batches: List[tuple[str, List[Point]]] = []
        self._lock = Lock()
        self.healthy = True

    async def write(self, bucket: str, points: List[Point]) -> None:
        if not self.healthy:
            raise SinkError(f"Sink {self.name!r} is unavailable.")
        with self._lock:
            self._buckets.setdefault(bucket, []).extend(points)
            self._batches.append((bucket, list(points)))

    async def health_check(self) -> None:
        if not self.healthy:
            raise SinkError(f"Sink {self.name!r} is unavailable.")

    async def close(self) -> None:
        return None

    def points(self, bucket: str) -> List[Point]:
        with self._lock:
            return list(self._buckets.get(bucket, []))

    def batches(self) -> List[tuple[str, List[Point]]]:
        """Return every accepted write in the order it arrived."""

        with self._lock:
            return [(bucket, list(points)) for bucket, points in self._batches]

