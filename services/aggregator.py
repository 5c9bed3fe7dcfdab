"""Aggregation logic for sensor readings."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List

from models.records import Point, Reading

logger = logging.getLogger(__name__)


def _truncating_div(total: int, count: int) -> int:
    quotient = abs(total) // count
    return quotient if total >= 0 else -quotient


class Aggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def group(self, readings: Iterable[Reading]) -> Dict[str, List[Reading]]:
        """Drop incomplete readings and bucket the rest by measurement, keeping input order."""
        groups: Dict[str, List[Reading]] = {}
        for reading in readings:
            if not reading.is_complete:
                logger.debug(
                    "Dropping incomplete reading",
                    extra={"measurement": reading.measurement or None},
                )
                continue
            groups.setdefault(reading.measurement, []).append(reading)
        return groups

    def aggregate(self, readings: Iterable[Reading]) -> List[Point]:
        """Summarize readings into one averaged point per measurement.

        The value is the arithmetic mean. The timestamp is the integer sum of the
        timestamps divided by the count, truncated toward zero. Tags come from the
        first reading of each group. Points are emitted in measurement name order.
        """
        points: List[Point] = []
        for measurement, members in sorted(self.group(readings).items()):
            if not members:
                continue
            count = len(members)
            mean_value = sum(member.value for member in members) / count
            mean_timestamp = _truncating_div(sum(member.timestamp for member in members), count)
            logger.debug(
                "Calculated average value=%s timestamp=%s",
                mean_value,
                mean_timestamp,
                extra={"measurement": measurement, "reading_count": count},
            )
            points.append(
                Point(
                    measurement=measurement,
                    tags=dict(members[0].tags),
                    value=mean_value,
                    timestamp=mean_timestamp,
                )
            )
        return points

    def passthrough(self, readings: Iterable[Reading]) -> List[Point]:
        """Convert complete readings one-to-one into points, in input order."""
        return [
            Point(
                measurement=reading.measurement,
                tags=dict(reading.tags),
                value=float(reading.value),
                timestamp=reading.timestamp,
            )
            for reading in readings
            if reading.is_complete
        ]
