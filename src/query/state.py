"""
In-memory server state: every query execution seen by this process plus the
errors recorded while submitting / polling.

Only ``QueryLifecycleManager`` writes to a ``ServerState``.  Executions are
inserted or replaced by id, never removed; errors are append-only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from src.core.utils import to_json_safe


class QueryState(str, Enum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (QueryState.SUCCEEDED, QueryState.FAILED)


@dataclass
class QueryExecution:
    """Lifecycle record of one submitted query."""
    id: str
    sql: str
    descriptor: Any = None
    state: QueryState = QueryState.QUEUED
    last_status_payload: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sql": self.sql,
            "descriptor": to_json_safe(self.descriptor),
            "state": self.state.value,
            "lastStatusPayload": self.last_status_payload,
        }


@dataclass(frozen=True)
class ServerErrorRecord:
    message: str
    detail: str

    def to_dict(self) -> dict[str, str]:
        return {"message": self.message, "detail": self.detail}


@dataclass
class ServerState:
    query_executions: dict[str, QueryExecution] = field(default_factory=dict)
    server_errors: list[ServerErrorRecord] = field(default_factory=list)

    def get(self, execution_id: str) -> QueryExecution | None:
        return self.query_executions.get(execution_id)

    def upsert(self, execution: QueryExecution) -> None:
        """Insert or replace a single execution; other ids are untouched."""
        self.query_executions = {**self.query_executions, execution.id: execution}

    def add_error(self, message: str, detail: str) -> None:
        self.server_errors.append(ServerErrorRecord(message=message, detail=detail))

    def snapshot(self) -> dict[str, Any]:
        """Full JSON-safe state, as pushed to observers."""
        return {
            "queryExecutions": {
                qid: execution.to_dict() for qid, execution in self.query_executions.items()
            },
            "serverErrors": [err.to_dict() for err in self.server_errors],
        }
