from __future__ import annotations

from pathlib import Path
from threading import Lock
from typing import Iterable, Iterator, Optional

from services.errors import TransportError


class ReplayTransport:
    """Serves previously captured raw messages, one per call."""

    def __init__(self, messages: Iterable[str]) -> None:
        self._messages: Iterator[str] = iter(messages)
        self._lock = Lock()
        self._closed = False

    @classmethod
    def from_path(cls, path: Path) -> "ReplayTransport":
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            raise TransportError(f"Unable to read replay file {path}: {exc}") from exc
        return cls(lines)

    def read_next(self) -> Optional[str]:
        with self._lock:
            if self._closed:
                raise TransportError("Replay transport is closed.")
            for message in self._messages:
                candidate = message.strip()
                if candidate:
                    return candidate
            return None

    def health_check(self) -> None:
        if self._closed:
            raise TransportError("Replay transport is closed.")

    def close(self) -> None:
        with self._lock:
            self._closed = True
