"""Bounded in-memory buffer of points awaiting a flush."""

from __future__ import annotations

import logging
from collections import deque
from threading import Lock
from typing import Deque, Iterable, List

from models.records import Point

logger = logging.getLogger(__name__)


class PointBuffer:
    """FIFO store of points that evicts the oldest entries once full.

    ``push`` and ``drain`` hold the same lock, so a drain never observes a
    partially applied push.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("Buffer capacity must be positive.")
        self._capacity = capacity
        self._points: Deque[Point] = deque()
        self._lock = Lock()
        self._evicted = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def evicted(self) -> int:
        """Total number of points dropped to make room since creation."""
        with self._lock:
            return self._evicted

    def push(self, points: Iterable[Point]) -> None:
        batch = list(points)
        if not batch:
            return
        with self._lock:
            overflow = len(self._points) + len(batch) - self._capacity
            dropped = max(overflow, 0)
            while overflow > 0 and self._points:
                self._points.popleft()
                overflow -= 1
            if overflow > 0:
                batch = batch[overflow:]
            self._points.extend(batch)
            self._evicted += dropped
            size = len(self._points)

        if dropped:
            logger.warning(
                "Buffer full, evicted oldest points",
                extra={"evicted": dropped, "point_count": size},
            )
        else:
            logger.debug("Buffered points", extra={"point_count": size})

    def drain(self) -> List[Point]:
        with self._lock:
            drained = list(self._points)
            self._points.clear()
        return drained

    def is_empty(self) -> bool:
        with self._lock:
            return not self._points

    def __len__(self) -> int:
        with self._lock:
            return len(self._points)
