"""
Athena query executor.

Thin wrapper around the Athena and S3 APIs used by the dashboard:
  1. start_query          -- StartQueryExecution, results written to S3
  2. get_query_status     -- GetQueryExecution, state normalised
  3. get_query_result_csv -- the CSV Athena wrote for a finished query
  4. get_table_schema     -- GetTableMetadata, column types normalised

Every botocore failure is re-raised as ``ServiceError`` naming the
operation.  All calls are blocking; async callers run them in a thread.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from src.athena.connection import get_athena_client, get_s3_client
from src.core.config import Settings, get_settings
from src.core.errors import ServiceError, ValidationError
from src.core.utils import timer, to_json_safe
from src.schema.registry import athena_type_to_field_type
from src.core.logging import get_logger

logger = get_logger(__name__)

# Athena reports CANCELLED as a separate terminal state; the dashboard folds
# it into FAILED.
_STATE_MAP = {
    "QUEUED": "QUEUED",
    "RUNNING": "RUNNING",
    "SUCCEEDED": "SUCCEEDED",
    "FAILED": "FAILED",
    "CANCELLED": "FAILED",
}


@dataclass
class StatusPayload:
    """Normalised state plus the verbatim (JSON-safe) GetQueryExecution response."""
    state: str
    raw: dict[str, Any] = field(default_factory=dict)


def derive_state(raw: dict[str, Any]) -> str:
    """Dashboard state from a GetQueryExecution response."""
    athena_state = (
        raw.get("QueryExecution", {}).get("Status", {}).get("State", "")
    ).upper()
    try:
        return _STATE_MAP[athena_state]
    except KeyError:
        raise ServiceError("getQueryStatus", f"unrecognised query state {athena_state!r}") from None


def _split_table_name(qualified_table: str, default_db: str) -> tuple[str, str]:
    if "." in qualified_table:
        database, table = qualified_table.split(".", 1)
        return database, table
    if not default_db:
        raise ValidationError(f"Table '{qualified_table}' is not qualified and no ATHENA_DATABASE is set")
    return default_db, qualified_table


class AthenaExecutor:
    """Blocking Athena / S3 client for one output location."""

    def __init__(
        self,
        athena: BaseClient | None = None,
        s3: BaseClient | None = None,
        settings: Settings | None = None,
    ):
        self._athena = athena
        self._s3 = s3
        self.settings = settings or get_settings()

    @property
    def athena(self) -> BaseClient:
        if self._athena is None:
            self._athena = get_athena_client()
        return self._athena

    @property
    def s3(self) -> BaseClient:
        if self._s3 is None:
            self._s3 = get_s3_client()
        return self._s3

    def result_key(self, execution_id: str) -> str:
        return f"{self.settings.athena_output_prefix}/{execution_id}.csv"

    # ── Operations ──────────────────────────────────────

    def start_query(self, sql: str) -> str:
        """Submit *sql*; return the Athena execution id."""
        params: dict[str, Any] = {
            "QueryString": sql,
            "ResultConfiguration": {"OutputLocation": self.settings.output_location},
        }
        if self.settings.athena_workgroup:
            params["WorkGroup"] = self.settings.athena_workgroup
        if self.settings.athena_database:
            params["QueryExecutionContext"] = {
                "Catalog": self.settings.athena_catalog,
                "Database": self.settings.athena_database,
            }

        logger.info("Submitting query (%d chars) -> %s", len(sql), self.settings.output_location)
        try:
            with timer() as t:
                resp = self.athena.start_query_execution(**params)
        except (BotoCoreError, ClientError) as exc:
            raise ServiceError("submitQuery", str(exc)) from exc

        execution_id = resp["QueryExecutionId"]
        logger.info("Submitted query id=%s in %d ms", execution_id, t["elapsed_ms"])
        return execution_id

    def get_query_status(self, execution_id: str) -> StatusPayload:
        if not execution_id:
            raise ValidationError("execution id is required")
        try:
            resp = self.athena.get_query_execution(QueryExecutionId=execution_id)
        except (BotoCoreError, ClientError) as exc:
            raise ServiceError("getQueryStatus", str(exc)) from exc

        raw = to_json_safe(resp)
        raw.pop("ResponseMetadata", None)
        state = derive_state(raw)
        logger.debug("Query id=%s state=%s", execution_id, state)
        return StatusPayload(state=state, raw=raw)

    def get_query_result_csv(self, execution_id: str) -> bytes:
        if not execution_id:
            raise ValidationError("execution id is required")
        key = self.result_key(execution_id)
        try:
            with timer() as t:
                obj = self.s3.get_object(Bucket=self.settings.athena_bucket, Key=key)
                body = obj["Body"].read()
        except (BotoCoreError, ClientError) as exc:
            raise ServiceError("getQueryResult", str(exc)) from exc

        logger.info("Fetched s3://%s/%s (%d bytes, %d ms)",
                    self.settings.athena_bucket, key, len(body), t["elapsed_ms"])
        return body

    def get_table_schema(self, qualified_table: str) -> dict[str, dict[str, str]]:
        """Column name -> {"type": "string" | "number"} for *qualified_table*."""
        database, table = _split_table_name(qualified_table, self.settings.athena_database)
        try:
            resp = self.athena.get_table_metadata(
                CatalogName=self.settings.athena_catalog,
                DatabaseName=database,
                TableName=table,
            )
        except (BotoCoreError, ClientError) as exc:
            raise ServiceError("getTableSchema", str(exc)) from exc

        metadata = resp.get("TableMetadata", {})
        columns = list(metadata.get("Columns", [])) + list(metadata.get("PartitionKeys", []))
        schema = {
            col["Name"]: {"type": athena_type_to_field_type(col.get("Type", ""))}
            for col in columns
        }
        logger.info("Discovered %d columns for %s", len(schema), qualified_table)
        return schema
