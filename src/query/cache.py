"""
Result caching layer.

Memoises idempotent external calls -- Athena table metadata and query
result blobs -- for the life of the process.  Entries are keyed by
(operation identity, canonical JSON of the arguments), so structurally equal
arguments hit the same entry no matter where the call comes from.

Each entry is a single-assignment ``asyncio.Future`` stored *before* the
operation runs: concurrent identical requests await the same future and the
operation is invoked once.  Successful results are never evicted (schemas
change rarely, result blobs of finished queries never change).  A failed
call is dropped from the table so the next request retries it.
"""
from __future__ import annotations

import asyncio
import functools
import inspect
from typing import Any, Awaitable, Callable

from src.core.utils import canonical_json
from src.core.logging import get_logger

logger = get_logger(__name__)


def operation_identity(operation: Callable[..., Any]) -> str:
    """Stable name for *operation* (``module.qualname``)."""
    target = operation.func if isinstance(operation, functools.partial) else operation
    module = getattr(target, "__module__", None) or "?"
    qualname = getattr(target, "__qualname__", None) or repr(target)
    return f"{module}.{qualname}"


class ResultCache:
    """In-memory, no-eviction memo table of pending / resolved results."""

    def __init__(self) -> None:
        self._store: dict[tuple[str, str], asyncio.Future] = {}
        self._hits = 0
        self._misses = 0

    # ── Public API ──────────────────────────────────────

    @staticmethod
    def make_key(operation: Callable[..., Any] | str, args: tuple | list) -> tuple[str, str]:
        """Deterministic cache key from an operation and its argument list."""
        tag = operation if isinstance(operation, str) else operation_identity(operation)
        return (tag, canonical_json(list(args)))

    def get(
        self,
        operation: Callable[..., Any],
        *args: Any,
        tag: str | None = None,
    ) -> Awaitable[Any]:
        """Return an awaitable for ``operation(*args)``, creating the entry on first call.

        Each caller gets its own shield over the stored task: cancelling one
        waiter leaves the shared call running for the others.

        Must be called from inside a running event loop.  Sync operations
        run in a worker thread; coroutine functions are awaited directly.
        """
        key = self.make_key(tag or operation, args)
        future = self._store.get(key)
        if future is not None:
            self._hits += 1
            logger.debug("Cache HIT op=%s args=%s", key[0], key[1][:64])
            return asyncio.shield(future)

        self._misses += 1
        # insert before scheduling: no await between lookup and insert
        future = asyncio.ensure_future(self._invoke(key, operation, args))
        self._store[key] = future
        logger.debug("Cache MISS op=%s size=%d", key[0], len(self._store))
        return asyncio.shield(future)

    def invalidate(self) -> int:
        """Flush every entry. Returns number of entries removed."""
        count = len(self._store)
        self._store.clear()
        return count

    def stats(self) -> dict[str, Any]:
        total = self._hits + self._misses
        return {
            "size": len(self._store),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total, 3) if total else 0.0,
        }

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self._store

    # ── Internals ───────────────────────────────────────

    async def _invoke(self, key: tuple[str, str], operation: Callable[..., Any], args: tuple) -> Any:
        try:
            if inspect.iscoroutinefunction(operation):
                return await operation(*args)
            return await asyncio.to_thread(operation, *args)
        except BaseException:
            if self._store.get(key) is asyncio.current_task():
                del self._store[key]
            logger.warning("Cached call %s failed; entry dropped", key[0])
            raise
