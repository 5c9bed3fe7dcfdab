"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional


def _escape(text: str, specials: str) -> str:
    for char in ("\\",) + tuple(specials):
        text = text.replace(char, f"\\{char}")
    return text


@dataclass(slots=True)
class Reading:
    """A single decoded measurement, possibly missing its value or timestamp."""

    measurement: str
    tags: Dict[str, str] = field(default_factory=dict)
    value: Optional[float] = None
    timestamp: Optional[int] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.measurement) and self.value is not None and self.timestamp is not None


@dataclass(frozen=True, slots=True)
class Point:
    """A summarized, storage-ready record."""

    measurement: str
    tags: Mapping[str, str]
    value: float
    timestamp: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))

    def to_line_protocol(self) -> str:
        """Render the point as one InfluxDB line protocol row with a ``value`` field."""

        parts = [_escape(self.measurement, ", ")]
        for key, tag_value in self.tags.items():
            parts.append(f"{_escape(key, ',= ')}={_escape(tag_value, ',= ')}")
        return f"{','.join(parts)} value={float(self.value)!r} {self.timestamp}"
