"""Request-scoped accessors for the components created in the app lifespan."""
from __future__ import annotations

from starlette.requests import HTTPConnection

from src.query.cache import ResultCache
from src.query.lifecycle import QueryLifecycleManager
from src.schema.service import SchemaService


def get_manager(conn: HTTPConnection) -> QueryLifecycleManager:
    return conn.app.state.manager


def get_cache(conn: HTTPConnection) -> ResultCache:
    return conn.app.state.cache


def get_schema_service(conn: HTTPConnection) -> SchemaService:
    return conn.app.state.schema_service


def get_executor(conn: HTTPConnection):
    return conn.app.state.executor
