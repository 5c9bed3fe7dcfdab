from __future__ import annotations

import threading

import pytest

from models.records import Point
from services.buffer import PointBuffer


def _point(label: str, timestamp: int = 0) -> Point:
    return Point(measurement=label, tags={}, value=1.0, timestamp=timestamp)


def _labels(points: list[Point]) -> list[str]:
    return [point.measurement for point in points]


def test_push_beyond_capacity_evicts_oldest() -> None:
    buffer = PointBuffer(capacity=3)

    buffer.push([_point("A"), _point("B"), _point("C")])
    buffer.push([_point("D")])

    assert _labels(buffer.drain()) == ["B", "C", "D"]
    assert buffer.evicted == 1


def test_oversized_batch_keeps_most_recent_points() -> None:
    buffer = PointBuffer(capacity=3)
    buffer.push([_point("A"), _point("B")])

    buffer.push([_point(label) for label in "CDEFG"])

    assert _labels(buffer.drain()) == ["E", "F", "G"]
    assert buffer.evicted == 4


def test_length_never_exceeds_capacity() -> None:
    buffer = PointBuffer(capacity=5)

    for size in (1, 3, 7, 2, 5, 11, 0):
        buffer.push([_point(f"p{i}") for i in range(size)])
        assert len(buffer) <= buffer.capacity


def test_drain_empties_buffer_in_insertion_order() -> None:
    buffer = PointBuffer(capacity=10)
    buffer.push([_point("A"), _point("B")])
    buffer.push([_point("C")])

    assert _labels(buffer.drain()) == ["A", "B", "C"]
    assert buffer.is_empty() is True
    assert buffer.drain() == []


def test_empty_buffer_drains_to_empty_list() -> None:
    buffer = PointBuffer(capacity=2)

    assert buffer.is_empty() is True
    assert buffer.drain() == []


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValueError):
        PointBuffer(capacity=0)


def test_concurrent_push_and_drain_lose_nothing() -> None:
    buffer = PointBuffer(capacity=100_000)
    producers = 4
    per_producer = 500
    drained: list[Point] = []
    done = threading.Event()

    def produce(worker: int) -> None:
        for index in range(per_producer):
            buffer.push([_point(f"w{worker}", index)])

    def consume() -> None:
        while not done.is_set():
            drained.extend(buffer.drain())
        drained.extend(buffer.drain())

    consumer = threading.Thread(target=consume)
    consumer.start()
    threads = [threading.Thread(target=produce, args=(i,)) for i in range(producers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    done.set()
    consumer.join()

    assert len(drained) == producers * per_producer
    for worker in range(producers):
        sequence = [p.timestamp for p in drained if p.measurement == f"w{worker}"]
        assert sequence == list(range(per_producer))
