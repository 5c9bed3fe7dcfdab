"""Contract shared by the device transports."""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class Transport(Protocol):
    """Source of raw device messages.

    Implementations are blocking; the broker calls them from a worker thread.
    """

    def read_next(self) -> Optional[str]:
        """Return the next raw message, ``None`` when nothing is pending, or raise ``TransportError``."""

    def health_check(self) -> None:
        """Return quietly when the device answers, raise otherwise."""

    def close(self) -> None:
        """Release the underlying device handle."""
