"""
Merged schema provider: static YAML schema + columns discovered from Athena.

Table metadata is fetched through the result cache, so Athena is asked at
most once per table for the life of the process.
"""
from __future__ import annotations

from typing import Any

from src.query.cache import ResultCache
from src.schema.registry import Schema, load_static_schema, merge_schema
from src.core.logging import get_logger

logger = get_logger(__name__)

TABLE_SCHEMA_TAG = "getTableSchema"


class SchemaService:
    def __init__(self, executor: Any, cache: ResultCache, static: Schema | None = None):
        self._executor = executor
        self._cache = cache
        self._static = static

    @property
    def static(self) -> Schema:
        if self._static is None:
            self._static = load_static_schema()
        return self._static

    async def get_schema(self) -> Schema:
        static = self.static
        discovered = await self._cache.get(
            self._executor.get_table_schema, static.table, tag=TABLE_SCHEMA_TAG
        )
        return merge_schema(static, discovered)
