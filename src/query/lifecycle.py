"""
Query lifecycle manager -- build -> submit -> poll -> terminal, with every
state change published to observers.

Each submitted query gets its own asyncio task that polls Athena at a fixed
interval until the execution reaches SUCCEEDED or FAILED.  Failures while
submitting or polling are recorded in ``ServerState.server_errors`` and
published; they never escape the task, so one broken query cannot disturb
the others or the server.

Limitations carried on purpose:
  - a poll loop cannot be cancelled; it runs until a terminal state or exit
  - there is no overall timeout; a query that never finishes polls forever
  - executions and errors accumulate for the life of the process
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from src.athena.executor import StatusPayload
from src.query.broadcast import StateBroadcaster
from src.query.descriptor import parse_descriptor
from src.query.sql_builder import build_query
from src.query.state import QueryExecution, QueryState, ServerState
from src.schema.registry import Schema
from src.core.errors import ServiceError, ValidationError
from src.core.utils import canonical_json
from src.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_POLL_INTERVAL = 1.0  # seconds

SchemaProvider = Callable[[], Awaitable[Schema]]


class QueryLifecycleManager:
    """Sole owner and writer of a ``ServerState``.

    Parameters
    ----------
    executor
        Blocking query-service client exposing ``start_query(sql)`` and
        ``get_query_status(execution_id) -> StatusPayload``.
    schema_provider
        Coroutine function returning the merged table schema.
    broadcaster
        Receives the full state snapshot after every mutation.
    poll_interval : float
        Seconds to wait between status polls.
    """

    def __init__(
        self,
        executor: Any,
        schema_provider: SchemaProvider,
        broadcaster: StateBroadcaster | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self._executor = executor
        self._schema_provider = schema_provider
        self.broadcaster = broadcaster or StateBroadcaster()
        self.poll_interval = poll_interval
        self.state = ServerState()
        self._tasks: set[asyncio.Task] = set()

    # ── Publishing ──────────────────────────────────────

    def snapshot(self) -> dict[str, Any]:
        return self.state.snapshot()

    async def publish(self) -> None:
        await self.broadcaster.publish(self.state.snapshot())

    async def _record_error(self, operation: str, payload: Any, exc: BaseException) -> None:
        message = f"{operation} failed for {canonical_json(payload)}"
        logger.error("%s: %s", message, exc)
        self.state.add_error(message=message, detail=str(exc) or type(exc).__name__)
        await self.publish()

    # ── Submission & polling ────────────────────────────

    async def submit_query(self, descriptor: Any) -> QueryExecution | None:
        """Run one query to a terminal state.

        Returns the final execution record, or ``None`` when submission or
        polling failed (the failure is in ``server_errors``).
        """
        try:
            parsed = parse_descriptor(descriptor)
            schema = await self._schema_provider()
            sql = build_query(parsed, schema, strict=True)
            execution_id = await asyncio.to_thread(self._executor.start_query, sql)
        except Exception as exc:
            await self._record_error("submitQuery", descriptor, exc)
            return None

        execution = QueryExecution(id=execution_id, sql=sql, descriptor=parsed)
        self.state.upsert(execution)
        logger.info("Query %s QUEUED", execution_id)
        await self.publish()

        try:
            while not execution.state.is_terminal:
                await asyncio.sleep(self.poll_interval)
                execution = await self._poll_once(execution_id)
        except Exception as exc:
            await self._record_error("getQueryStatus", {"id": execution_id}, exc)
            return None

        logger.info("Query %s finished: %s", execution_id, execution.state.value)
        return execution

    def start_query(self, descriptor: Any) -> asyncio.Task:
        """Schedule ``submit_query`` as a background task and return it."""
        task = asyncio.create_task(self.submit_query(descriptor))
        self._track(task)
        return task

    async def get_query_status(self, execution_id: str | None) -> QueryExecution:
        """Poll *execution_id* once, store the result and publish it.

        Raises ``ValidationError`` (without touching state) when the id is
        empty, ``ServiceError`` when the status call fails.
        """
        if not execution_id:
            raise ValidationError("getQueryStatus requires a query execution id")
        return await self._poll_once(execution_id)

    async def refresh_status(self, execution_id: str | None) -> QueryExecution | None:
        """Manual status refresh from the command channel; never raises."""
        try:
            return await self.get_query_status(execution_id)
        except ValidationError as exc:
            logger.warning("Ignoring status command: %s", exc)
        except Exception as exc:
            await self._record_error("getQueryStatus", {"id": execution_id}, exc)
        return None

    async def _poll_once(self, execution_id: str) -> QueryExecution:
        try:
            payload: StatusPayload = await asyncio.to_thread(
                self._executor.get_query_status, execution_id
            )
            state = QueryState(payload.state)
        except ServiceError:
            raise
        except Exception as exc:
            raise ServiceError("getQueryStatus", str(exc)) from exc

        current = self.state.get(execution_id)
        if current is not None:
            sql, descriptor = current.sql, current.descriptor
        else:
            # status requested for a query submitted elsewhere
            sql = (payload.raw.get("QueryExecution") or {}).get("Query", "")
            descriptor = None

        execution = QueryExecution(
            id=execution_id,
            sql=sql,
            descriptor=descriptor,
            state=state,
            last_status_payload=payload.raw,
        )
        self.state.upsert(execution)
        logger.debug("Query %s %s", execution_id, state.value)
        await self.publish()
        return execution

    # ── Command channel ─────────────────────────────────

    def handle_command(self, envelope: Any) -> asyncio.Task | None:
        """Dispatch a ``{"cmd": ..., "data": ...}`` envelope.

        ``query`` starts a lifecycle task, ``status`` refreshes one
        execution.  Anything else is ignored.
        """
        if not isinstance(envelope, dict):
            logger.debug("Ignoring non-object command %r", envelope)
            return None

        cmd = envelope.get("cmd")
        data = envelope.get("data") or {}

        if cmd == "query":
            return self.start_query(data)
        if cmd == "status":
            execution_id = None
            if isinstance(data, dict):
                execution_id = data.get("id") or data.get("queryExecutionId")
            task = asyncio.create_task(self.refresh_status(execution_id))
            self._track(task)
            return task

        logger.debug("Ignoring unknown command %r", cmd)
        return None

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)
