"""
Service wiring — settings → engines → ledger, master data, gateway → pipeline.

    service = build_service(get_settings())
    try:
        results = await service.pipeline.submit_batch(envelopes)
    finally:
        await service.close()
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import fastapi
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from salesbridge import ledger as L
from salesbridge import prevalidation as V
from salesbridge import gateway as D
from salesbridge import pipeline as P
from salesbridge.config import Settings, get_settings
from salesbridge.wire.contrib import fastapi as wire_fastapi

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Service:
    settings: Settings
    pipeline: P.CommitPipeline
    ledger_engine: AsyncEngine
    masterdata_engine: AsyncEngine

    async def init_schema(self) -> None:
        await L.create_ledger_schema(self.ledger_engine)

    async def close(self) -> None:
        await self.ledger_engine.dispose()
        if self.masterdata_engine is not self.ledger_engine:
            await self.masterdata_engine.dispose()


def build_service(settings: Settings) -> Service:
    ledger_engine = create_async_engine(settings.ledger_database_url, pool_pre_ping=True)
    if settings.masterdata_database_url == settings.ledger_database_url:
        masterdata_engine = ledger_engine
    else:
        masterdata_engine = create_async_engine(
            settings.masterdata_database_url, pool_pre_ping=True
        )

    defaults = settings.commit_defaults()
    service_layer = settings.service_layer()

    commits = (
        P.pipeline(
            D.SessionGateway(
                lambda: D.ServiceLayerSession(service_layer),
                defaults,
                timeout=settings.downstream_timeout,
            )
        )
        .ledger(
            L.SQLAlchemyLedger(
                async_sessionmaker(ledger_engine, expire_on_commit=False),
                policy=settings.ledger_policy(),
            )
        )
        .prevalidator(
            V.PreValidator(
                V.SQLAlchemyMasterData(
                    async_sessionmaker(masterdata_engine, expire_on_commit=False)
                )
            )
        )
        .defaults(defaults)
        .build()
    )

    return Service(
        settings=settings,
        pipeline=commits,
        ledger_engine=ledger_engine,
        masterdata_engine=masterdata_engine,
    )


def create_service_app(settings: Settings | None = None) -> fastapi.FastAPI:
    """ASGI app for the configured service; engines are disposed on shutdown."""
    settings = settings or get_settings()
    service = build_service(settings)

    @asynccontextmanager
    async def lifespan(_app: fastapi.FastAPI) -> AsyncIterator[None]:
        await service.init_schema()
        logger.info("salesbridge ready, ledger at %s", service.ledger_engine.url.render_as_string())
        try:
            yield
        finally:
            await service.close()

    return wire_fastapi.create_app(service.pipeline, api_key=settings.api_key, lifespan=lifespan)


__all__ = (
    "Service",
    "build_service",
    "create_service_app",
)
