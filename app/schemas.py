"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class HealthStatus(str, Enum):
    """Binary service state derived from task liveness and collaborator checks."""

    healthy = "healthy"
    unhealthy = "unhealthy"


class HealthResponse(BaseModel):
    """Payload returned by the health route."""

    status: HealthStatus = Field(..., description="Aggregate state of device and storage.")
