"""Error taxonomy for the broker pipeline."""

from __future__ import annotations


class BrokerError(Exception):
    """Base class for failures raised by broker components."""


class ParseError(BrokerError):
    """A raw device message could not be turned into readings."""


class SinkError(BrokerError):
    """The time-series store rejected or failed a write."""


class TransportError(BrokerError):
    """The device transport failed to deliver data."""
