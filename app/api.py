"""HTTP route definitions for the service."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from app.schemas import HealthResponse, HealthStatus
from services.broker import BrokerService, build_default_broker

router = APIRouter()


def get_broker() -> BrokerService:
    return build_default_broker()


@router.get(
    "/healthz",
    response_model=HealthResponse,
    summary="Report whether the device and the time-series store are reachable.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck(broker: BrokerService = Depends(get_broker)) -> HealthResponse:
    healthy = await broker.check_health()
    return HealthResponse(status=HealthStatus.healthy if healthy else HealthStatus.unhealthy)


@router.get(
    "/",
    summary="Root endpoint points at the health route.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"detail": "See /healthz for service status."}
