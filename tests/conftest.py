"""
Shared fixtures -- an in-memory stand-in for the Athena executor and the
access-log schema used throughout the unit tests.
"""
from __future__ import annotations

import threading

import pytest

from src.athena.executor import StatusPayload
from src.core.errors import ServiceError
from src.schema.registry import FieldSpec, Schema


class FakeExecutor:
    """Scripted executor: every execution walks through ``state_plan``."""

    def __init__(
        self,
        state_plan: list[str] | None = None,
        table_schema: dict | None = None,
        results: dict[str, bytes] | None = None,
        fail_submit: bool = False,
        fail_status_after: int | None = None,
        fail_schema: bool = False,
    ):
        self.state_plan = state_plan or ["RUNNING", "SUCCEEDED"]
        self.table_schema = table_schema if table_schema is not None else {
            "bucket": {"type": "string"},
            "operation": {"type": "string"},
            "bytessent": {"type": "number"},
        }
        self.results = results or {}
        self.fail_submit = fail_submit
        self.fail_status_after = fail_status_after
        self.fail_schema = fail_schema

        self.submitted: list[str] = []
        self.status_calls: list[str] = []
        self.schema_calls = 0
        self.result_calls = 0
        self._plans: dict[str, list[str]] = {}
        self._lock = threading.Lock()

    def start_query(self, sql: str) -> str:
        if self.fail_submit:
            raise ServiceError("submitQuery", "InvalidRequestException: syntax error")
        with self._lock:
            self.submitted.append(sql)
            return f"exec-{len(self.submitted)}"

    def plan_for(self, execution_id: str, states: list[str]) -> None:
        self._plans[execution_id] = list(states)

    def get_query_status(self, execution_id: str) -> StatusPayload:
        with self._lock:
            self.status_calls.append(execution_id)
            if self.fail_status_after is not None and len(self.status_calls) > self.fail_status_after:
                raise ServiceError("getQueryStatus", "ThrottlingException")
            plan = self._plans.setdefault(execution_id, list(self.state_plan))
            state = plan.pop(0) if len(plan) > 1 else plan[0]
        raw = {
            "QueryExecution": {
                "QueryExecutionId": execution_id,
                "Query": "SELECT 1",
                "Status": {"State": state},
            }
        }
        return StatusPayload(state=state, raw=raw)

    def get_query_result_csv(self, execution_id: str) -> bytes:
        self.result_calls += 1
        if execution_id not in self.results:
            raise ServiceError("getQueryResult", "NoSuchKey: The specified key does not exist.")
        return self.results[execution_id]

    def get_table_schema(self, qualified_table: str) -> dict:
        self.schema_calls += 1
        if self.fail_schema:
            raise ServiceError("getTableSchema", "EntityNotFoundException")
        return dict(self.table_schema)


@pytest.fixture
def log_schema() -> Schema:
    return Schema(
        table="s3_access_logs_db.jfriend_logs",
        time_col="ds",
        fields={
            "ds": FieldSpec(type="string", derived="regexp_extract(requestdatetime, '^(.*?):', 1)"),
            "transfer": FieldSpec(type="number", derived="bytessent + objectsize"),
            "bucket": FieldSpec(type="string"),
            "operation": FieldSpec(type="string"),
            "key": FieldSpec(type="string"),
            "httpstatus": FieldSpec(type="string"),
            "bytessent": FieldSpec(type="number"),
            "objectsize": FieldSpec(type="number"),
            "turnaroundtime": FieldSpec(type="number"),
        },
    )


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def make_executor():
    """Factory for executors with a custom script."""
    return FakeExecutor
