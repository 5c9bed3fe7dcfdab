"""Serial link to the sensing microcontroller."""

from __future__ import annotations

import logging
import time
from threading import Lock
from typing import Optional

import serial
from serial.tools import list_ports

from services.errors import TransportError

logger = logging.getLogger(__name__)

_ACK_PREFIX = "New timestamp received and set:"


def normalize_product_name(name: str) -> str:
    return name.lower().replace(" ", "").replace("_", "").replace("-", "")


class SerialTransport:
    """Reads newline-framed telemetry from a serial port."""

    def __init__(
        self,
        port: str,
        baud_rate: int = 9600,
        timeout_ms: int = 1000,
        device_name: Optional[str] = None,
    ) -> None:
        self.port_name = port
        if device_name:
            self._verify_product(port, device_name)
        try:
            self._port = serial.Serial(port, baudrate=baud_rate, timeout=timeout_ms / 1000)
        except serial.SerialException as exc:
            raise TransportError(f"Unable to open serial port {port!r}: {exc}") from exc
        self._lock = Lock()
        logger.info("New serial client created for port: %s", port)

    @staticmethod
    def _verify_product(port: str, device_name: str) -> None:
        expected = normalize_product_name(device_name)
        for info in list_ports.comports():
            if info.device != port or not info.product:
                continue
            if normalize_product_name(info.product) != expected:
                raise TransportError(
                    f"Port {port!r} reports product {info.product!r}, expected {device_name!r}"
                )
            logger.debug("Device %s found on port %s", info.product, port)
            return
        logger.debug("No USB product information for port %s", port)

    def sync_time(self, timestamp_ms: Optional[int] = None) -> None:
        """Push the host clock to the device and wait for its acknowledgement."""
        if timestamp_ms is None:
            timestamp_ms = time.time_ns() // 1_000_000
        with self._lock:
            try:
                self._port.write(b"SET_TIME\n")
                self._port.flush()
                self._port.write(f"{timestamp_ms}\n".encode("ascii"))
                self._port.flush()
                response = self._port.readline().decode("utf-8", errors="replace").strip()
            except serial.SerialException as exc:
                raise TransportError(f"Failed to set time on device: {exc}") from exc

        if f"{_ACK_PREFIX} {timestamp_ms}" not in response:
            logger.error("Failed to set timestamp", extra={"raw": response})
            raise TransportError("Failed to set timestamp")
        logger.info("Successfully set time on device.")

    def read_next(self) -> Optional[str]:
        with self._lock:
            try:
                if self._port.in_waiting <= 0:
                    return None
                line = self._port.readline()
            except serial.SerialException as exc:
                raise TransportError(f"Error reading data: {exc}") from exc
        data = line.decode("utf-8", errors="replace").strip()
        return data or None

    def health_check(self) -> None:
        with self._lock:
            try:
                self._port.write(b"PING\n")
                self._port.flush()
                time.sleep(0.1)
                response = self._port.readline().decode("utf-8", errors="replace").strip()
            except serial.SerialException as exc:
                logger.error("Device health check failed: %s", exc)
                raise TransportError(f"Device health check failed: {exc}") from exc

        if response != "PONG":
            logger.error("Device health check failed", extra={"raw": response})
            raise TransportError("Device health check failed")
        logger.debug("Device health check successful")

    def close(self) -> None:
        with self._lock:
            self._port.close()
