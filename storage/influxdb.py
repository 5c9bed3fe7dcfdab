"""InfluxDB v2 sink speaking the HTTP write API."""

from __future__ import annotations

import logging
from typing import List, Optional

import httpx

from models.records import Point
from services.errors import SinkError
from services.parser import TimestampPrecision

logger = logging.getLogger(__name__)


class InfluxDBSink:
    """Writes points as line protocol to an InfluxDB v2 server."""

    def __init__(
        self,
        url: str,
        org: str,
        token: str,
        timeout: float = 10.0,
        precision: TimestampPrecision = TimestampPrecision.ns,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.org = org
        self.precision = precision
        self._client = httpx.AsyncClient(
            base_url=self.url,
            timeout=timeout,
            headers={"Authorization": f"Token {token}"},
            transport=transport,
        )
        logger.info("New InfluxDB client created for URL: %s", self.url)

    async def write(self, bucket: str, points: List[Point]) -> None:
        body = "\n".join(point.to_line_protocol() for point in points)
        try:
            response = await self._client.post(
                "/api/v2/write",
                params={"org": self.org, "bucket": bucket, "precision": self.precision.value},
                content=body.encode("utf-8"),
                headers={"Content-Type": "text/plain; charset=utf-8"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SinkError(
                f"InfluxDB rejected write with status {exc.response.status_code}: "
                f"{exc.response.text.strip() or 'no detail provided.'}"
            ) from exc
        except httpx.HTTPError as exc:
            raise SinkError(f"InfluxDB write failed: {exc}") from exc
        logger.debug(
            "Data written to InfluxDB successfully",
            extra={"bucket": bucket, "point_count": len(points)},
        )

    async def health_check(self) -> None:
        try:
            response = await self._client.get("/health")
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Error performing InfluxDB health check: %s", exc)
            raise SinkError(f"InfluxDB health check failed: {exc}") from exc

        status = payload.get("status") if isinstance(payload, dict) else None
        if status != "pass":
            logger.error("InfluxDB health check failed", extra={"status": status})
            raise SinkError(f"InfluxDB reported status {status!r}")
        logger.debug("InfluxDB health check successful")

    async def close(self) -> None:
        await self._client.aclose()
