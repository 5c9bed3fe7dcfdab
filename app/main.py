from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from logging_config import configure_logging
from services.broker import build_default_broker


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    broker = build_default_broker()
    await broker.start()
    try:
        yield
    finally:
        await broker.shutdown()
        build_default_broker.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Aero Sensor Broker",
        description="Buffers and averages environmental sensor readings before writing them to InfluxDB.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app

app = create_app()
