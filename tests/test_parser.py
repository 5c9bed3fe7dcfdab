"""Unit tests for raw message parsing."""

from __future__ import annotations

import pytest

from services.errors import ParseError
from services.aggregator import Aggregator
from services.parser import InputSyntax, TimestampPrecision, clock_for, is_valid_message, parse


def _clock() -> int:
    return 1_700_000_000_000_000_000


def test_parse_delimited_triple() -> None:
    readings = parse("<20.5|55.0|12.0>", "greenhouse", clock=_clock)

    assert [reading.measurement for reading in readings] == [
        "temperature",
        "humidity",
        "air_quality",
    ]
    assert [reading.value for reading in readings] == [20.5, 55.0, 12.0]
    assert {reading.timestamp for reading in readings} == {_clock()}
    assert all(reading.tags == {"location": "greenhouse"} for reading in readings)


def test_parse_delimited_tolerates_whitespace() -> None:
    readings = parse("  < 1 | 2.5 | -3 >\r\n", "lab", clock=_clock)

    assert [reading.value for reading in readings] == [1.0, 2.5, -3.0]


@pytest.mark.parametrize("raw", ["<1.0|2.0>", "<1|2|3|4>", "<>", ""])
def test_parse_delimited_rejects_wrong_field_count(raw: str) -> None:
    with pytest.raises(ParseError):
        parse(raw, "lab", clock=_clock)


@pytest.mark.parametrize(
    "raw",
    [
        "<1.0|abc|3.0>",
        "<1.0||3.0>",
        "<1.0|nan|3.0>",
        "<1.0|inf|3.0>",
        "<1_0|2|3>",
        "<1e3|2|3>",
        "<0x10|2|3>",
    ],
)
def test_parse_delimited_rejects_malformed_numbers(raw: str) -> None:
    with pytest.raises(ParseError):
        parse(raw, "lab", clock=_clock)


def test_parse_json_uses_given_or_generated_timestamps() -> None:
    raw = '[{"type": "temperature", "value": 21.5, "timestamp": 1000}, {"type": "humidity", "value": 40}]'

    readings = parse(raw, "attic", InputSyntax.json, clock=_clock)

    assert [(r.measurement, r.value, r.timestamp) for r in readings] == [
        ("temperature", 21.5, 1000),
        ("humidity", 40.0, _clock()),
    ]
    assert readings[0].tags == {"location": "attic"}


def test_parse_json_missing_field_fails_whole_message() -> None:
    raw = '[{"type": "temperature", "value": 21.5}, {"type": "humidity"}]'

    with pytest.raises(ParseError, match="missing required fields: value"):
        parse(raw, "attic", InputSyntax.json, clock=_clock)


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        '{"type": "temperature", "value": 1}',
        '["temperature"]',
        '[{"type": "temperature", "value": "hot"}]',
        '[{"type": "temperature", "value": true}]',
        '[{"type": 3, "value": 1}]',
        '[{"type": "temperature", "value": 1, "timestamp": "yesterday"}]',
    ],
)
def test_parse_json_rejects_malformed_messages(raw: str) -> None:
    with pytest.raises(ParseError):
        parse(raw, "attic", InputSyntax.json, clock=_clock)


def test_parse_json_null_value_yields_incomplete_reading() -> None:
    readings = parse('[{"type": "co2", "value": null}]', "attic", InputSyntax.json, clock=_clock)

    assert len(readings) == 1
    assert readings[0].value is None
    assert readings[0].is_complete is False


def test_parse_json_empty_list_yields_nothing() -> None:
    assert parse("[]", "attic", InputSyntax.json, clock=_clock) == []


def test_is_valid_message() -> None:
    assert is_valid_message("<1|2|3>", InputSyntax.delimited)
    assert not is_valid_message("hello", InputSyntax.delimited)
    assert not is_valid_message("   ", InputSyntax.delimited)
    assert is_valid_message('[{"type": "a", "value": 1}]', InputSyntax.json)
    assert not is_valid_message('[{"type": "a"}]', InputSyntax.json)
    assert not is_valid_message('{"type": "a", "value": 1}', InputSyntax.json)
    assert not is_valid_message("<1|2|3>", InputSyntax.json)


def test_parse_delimited_accepts_plain_decimals() -> None:
    readings = parse("<+1.|.5|-0.25>", "lab", clock=_clock)

    assert [reading.value for reading in readings] == [1.0, 0.5, -0.25]


def test_millisecond_clock_matches_device_timestamps() -> None:
    raw = (
        '[{"type": "temperature", "value": 1, "timestamp": 1700000000000},'
        ' {"type": "temperature", "value": 2}]'
    )

    readings = parse(raw, "lab", InputSyntax.json, clock=lambda: 1_700_000_000_500)
    points = Aggregator().aggregate(readings)

    assert [r.timestamp for r in readings] == [1_700_000_000_000, 1_700_000_000_500]
    assert points[0].timestamp == 1_700_000_000_250
    assert points[0].value == 1.5


def test_clock_for_reports_requested_unit() -> None:
    millis = clock_for(TimestampPrecision.ms)()
    nanos = clock_for(TimestampPrecision.ns)()

    assert 10**12 <= millis < 10**14
    assert nanos // 1_000_000 >= millis
    assert nanos // 1_000_000 - millis < 60_000
