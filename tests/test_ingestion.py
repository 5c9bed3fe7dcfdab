from __future__ import annotations

import asyncio
from typing import Optional

import pytest

from services.aggregator import Aggregator
from services.buffer import PointBuffer
from services.errors import TransportError
from services.ingestion import IngestionLoop, WindowPolicy
from services.parser import InputSyntax
from transport.replay import ReplayTransport


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class BrokenTransport:
    def read_next(self) -> Optional[str]:
        raise TransportError("device unplugged")

    def health_check(self) -> None:
        raise TransportError("device unplugged")

    def close(self) -> None:
        return None


def _loop(
    buffer: PointBuffer,
    policy: WindowPolicy = WindowPolicy.windowed,
    syntax: InputSyntax = InputSyntax.delimited,
    clock: FakeClock | None = None,
    messages: tuple[str, ...] = (),
) -> IngestionLoop:
    return IngestionLoop(
        transport=ReplayTransport(messages),
        buffer=buffer,
        aggregator=Aggregator(),
        location="lab",
        syntax=syntax,
        policy=policy,
        window_seconds=60.0,
        poll_interval=0.01,
        clock=clock or FakeClock(),
    )


def test_windowed_readings_are_held_until_window_elapses() -> None:
    buffer = PointBuffer(100)
    clock = FakeClock()
    loop = _loop(buffer, clock=clock)

    loop.step("<10|50|1>")
    clock.now = 60.0
    loop.step("<20|60|3>")

    assert buffer.is_empty()
    assert loop.pending == 6

    clock.now = 61.0
    loop.step("<30|70|5>")

    points = {point.measurement: point for point in buffer.drain()}
    assert loop.pending == 0
    assert points["temperature"].value == 20.0
    assert points["humidity"].value == 60.0
    assert points["air_quality"].value == 3.0
    assert points["temperature"].tags == {"location": "lab"}


def test_window_closes_while_device_is_idle() -> None:
    buffer = PointBuffer(100)
    clock = FakeClock()
    loop = _loop(buffer, clock=clock)

    loop.step("<10|50|1>")
    clock.now = 120.0
    loop.maybe_close_window()

    assert len(buffer) == 3
    assert loop.pending == 0


def test_passthrough_pushes_each_reading_immediately() -> None:
    buffer = PointBuffer(100)
    loop = _loop(buffer, policy=WindowPolicy.passthrough)

    loop.step("<10|50|1>")

    assert [p.measurement for p in buffer.drain()] == ["temperature", "humidity", "air_quality"]
    assert loop.pending == 0


def test_passthrough_drops_incomplete_readings() -> None:
    buffer = PointBuffer(100)
    loop = _loop(buffer, policy=WindowPolicy.passthrough, syntax=InputSyntax.json)

    loop.step('[{"type": "co2", "value": null}, {"type": "temperature", "value": 21.0}]')

    assert [p.measurement for p in buffer.drain()] == ["temperature"]


def test_invalid_and_unparseable_messages_are_dropped(caplog) -> None:
    buffer = PointBuffer(100)
    loop = _loop(buffer, policy=WindowPolicy.passthrough)

    with caplog.at_level("WARNING", logger="services.ingestion"):
        loop.step("garbage")
        loop.step("<1|warm|3>")

    assert buffer.is_empty()
    assert "Invalid data format" in caplog.text
    assert "Failed to parse sensor data" in caplog.text


def test_run_reads_transport_until_stopped() -> None:
    buffer = PointBuffer(100)
    loop = _loop(
        buffer,
        policy=WindowPolicy.passthrough,
        messages=("<1|2|3>", "", "bad", "<4|5|6>"),
    )

    async def scenario() -> None:
        stop = asyncio.Event()
        task = asyncio.create_task(loop.run(stop))
        for _ in range(200):
            if len(buffer) == 6:
                break
            await asyncio.sleep(0.01)
        stop.set()
        await asyncio.wait_for(task, timeout=1.0)

    asyncio.run(scenario())

    assert [p.value for p in buffer.drain()] == [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]


def test_run_propagates_transport_errors() -> None:
    loop = IngestionLoop(
        transport=BrokenTransport(),
        buffer=PointBuffer(10),
        aggregator=Aggregator(),
        location="lab",
    )

    with pytest.raises(TransportError):
        asyncio.run(loop.run(asyncio.Event()))


def test_generated_timestamps_come_from_timestamp_clock() -> None:
    buffer = PointBuffer(100)
    loop = IngestionLoop(
        transport=ReplayTransport([]),
        buffer=buffer,
        aggregator=Aggregator(),
        location="lab",
        syntax=InputSyntax.json,
        policy=WindowPolicy.passthrough,
        timestamp_clock=lambda: 1_700_000_000_500,
    )

    loop.step(
        '[{"type": "temperature", "value": 1, "timestamp": 1700000000000},'
        ' {"type": "humidity", "value": 2}]'
    )

    assert [(p.measurement, p.timestamp) for p in buffer.drain()] == [
        ("temperature", 1_700_000_000_000),
        ("humidity", 1_700_000_000_500),
    ]
