"""Parsing of raw device messages into readings."""

from __future__ import annotations

import json
import logging
import math
import re
import time
from enum import Enum
from typing import Any, Callable, List

from models.records import Reading
from services.errors import ParseError

logger = logging.getLogger(__name__)

DELIMITED_FIELDS = ("temperature", "humidity", "air_quality")

Clock = Callable[[], int]

_DECIMAL = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)")


class InputSyntax(str, Enum):
    """Wire syntaxes a device can be configured to emit."""

    delimited = "delimited"
    json = "json"


class TimestampPrecision(str, Enum):
    """Epoch unit shared by device timestamps, generated timestamps and writes."""

    ns = "ns"
    ms = "ms"


def clock_for(precision: TimestampPrecision) -> Clock:
    """Return a wall clock reporting epoch time in ``precision`` units."""
    if precision is TimestampPrecision.ms:
        return lambda: time.time_ns() // 1_000_000
    return time.time_ns


def parse(
    raw: str,
    location: str,
    syntax: InputSyntax = InputSyntax.delimited,
    clock: Clock = time.time_ns,
) -> List[Reading]:
    """Turn one raw message into readings tagged with ``location``.

    Either every reading in the message is returned or ``ParseError`` is raised;
    there is no partial success.
    """
    if syntax is InputSyntax.json:
        return _parse_json(raw, location, clock)
    return _parse_delimited(raw, location, clock)


def is_valid_message(raw: str, syntax: InputSyntax) -> bool:
    """Cheap structural check used to discard garbage frames before parsing."""
    candidate = raw.strip()
    if not candidate:
        return False
    if syntax is InputSyntax.delimited:
        return candidate.count("|") == len(DELIMITED_FIELDS) - 1
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError:
        return False
    if not isinstance(payload, list):
        return False
    return all(
        isinstance(item, dict) and "type" in item and "value" in item for item in payload
    )


def _parse_number(text: str) -> float:
    if not _DECIMAL.fullmatch(text):
        raise ParseError(f"invalid numeric field {text!r}")
    value = float(text)
    if not math.isfinite(value):
        raise ParseError(f"non-finite numeric field {text!r}")
    return value


def _parse_delimited(raw: str, location: str, clock: Clock) -> List[Reading]:
    body = raw.strip().lstrip("<").rstrip(">")
    fields = [part.strip() for part in body.split("|")]
    if len(fields) != len(DELIMITED_FIELDS):
        raise ParseError(
            f"expected {len(DELIMITED_FIELDS)} fields, got {len(fields)}"
        )

    values = [_parse_number(part) for part in fields]
    timestamp = clock()
    logger.debug("Parsed delimited message", extra={"raw": raw, "location": location})
    return [
        Reading(
            measurement=name,
            tags={"location": location},
            value=value,
            timestamp=timestamp,
        )
        for name, value in zip(DELIMITED_FIELDS, values)
    ]


def _coerce_value(item: dict) -> float | None:
    value: Any = item["value"]
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ParseError(f"value for {item.get('type')!r} is not numeric")
    if not math.isfinite(value):
        raise ParseError(f"value for {item.get('type')!r} is not finite")
    return float(value)


def _coerce_timestamp(item: dict, default: int) -> int:
    if "timestamp" not in item or item["timestamp"] is None:
        return default
    timestamp = item["timestamp"]
    if isinstance(timestamp, bool) or not isinstance(timestamp, int):
        raise ParseError(f"timestamp for {item.get('type')!r} is not an integer")
    return timestamp


def _parse_json(raw: str, location: str, clock: Clock) -> List[Reading]:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ParseError(f"message is not valid JSON: {exc.msg}") from exc

    if not isinstance(payload, list):
        raise ParseError("message is not a list of objects")

    now = clock()
    readings: List[Reading] = []
    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            raise ParseError(f"element {index} is not an object")
        missing = [key for key in ("type", "value") if key not in item]
        if missing:
            raise ParseError(f"element {index} missing required fields: {', '.join(missing)}")
        measurement = item["type"]
        if not isinstance(measurement, str):
            raise ParseError(f"element {index} has a non-string type")
        readings.append(
            Reading(
                measurement=measurement,
                tags={"location": location},
                value=_coerce_value(item),
                timestamp=_coerce_timestamp(item, now),
            )
        )

    logger.debug(
        "Parsed JSON message",
        extra={"reading_count": len(readings), "location": location},
    )
    return readings
