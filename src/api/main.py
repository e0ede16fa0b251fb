"""
FastAPI application entry-point.

    uvicorn src.api.main:app --port 13337
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.routers import queries, results, schema, ws
from src.athena.executor import AthenaExecutor
from src.query.broadcast import StateBroadcaster
from src.query.cache import ResultCache
from src.query.lifecycle import QueryLifecycleManager
from src.schema.registry import Schema
from src.schema.service import SchemaService
from src.core.config import get_settings
from src.core.logging import get_logger

logger = get_logger(__name__)


def create_app(
    executor: Any | None = None,
    static_schema: Schema | None = None,
    poll_interval: float | None = None,
) -> FastAPI:
    """Build the app; *executor* / *static_schema* are injectable for tests."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        athena = executor or AthenaExecutor(settings=settings)
        cache = ResultCache()
        schema_service = SchemaService(athena, cache, static=static_schema)
        broadcaster = StateBroadcaster()
        manager = QueryLifecycleManager(
            athena,
            schema_service.get_schema,
            broadcaster,
            poll_interval=poll_interval or settings.poll_interval,
        )
        app.state.executor = athena
        app.state.cache = cache
        app.state.schema_service = schema_service
        app.state.manager = manager
        logger.info("Query dashboard ready (poll interval %.3fs)", manager.poll_interval)
        yield
        logger.info("Shutting down with %d query task(s) in flight", manager.in_flight)

    app = FastAPI(
        title="Log Query Dashboard",
        version="0.1.0",
        description="Ad-hoc Athena queries over the access-log table",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(schema.router, tags=["Schema"])
    app.include_router(results.router, tags=["Results"])
    app.include_router(queries.router, tags=["Queries"])
    app.include_router(ws.router, tags=["Broadcast"])

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
