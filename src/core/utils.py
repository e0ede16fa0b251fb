"""
Small shared utilities.
"""
from __future__ import annotations

import datetime
import decimal
import json
import time
from contextlib import contextmanager
from typing import Any, Generator


@contextmanager
def timer() -> Generator[dict, None, None]:
    """Context manager that records elapsed wall-clock milliseconds."""
    result: dict = {}
    start = time.perf_counter()
    try:
        yield result
    finally:
        result["elapsed_ms"] = int((time.perf_counter() - start) * 1000)


def to_json_safe(val: Any) -> Any:
    """Recursively convert boto3 / pydantic payloads to JSON-serialisable types."""
    if isinstance(val, dict):
        return {str(k): to_json_safe(v) for k, v in val.items()}
    if isinstance(val, (list, tuple)):
        return [to_json_safe(v) for v in val]
    if hasattr(val, "model_dump"):
        return to_json_safe(val.model_dump(mode="json", by_alias=True))
    if isinstance(val, decimal.Decimal):
        return float(val)
    if isinstance(val, (datetime.date, datetime.datetime)):
        return val.isoformat()
    if isinstance(val, datetime.timedelta):
        return str(val)
    if isinstance(val, bytes):
        return val.decode("utf-8", errors="replace")
    return val


def canonical_json(val: Any) -> str:
    """Deterministic JSON encoding: equal values always give equal strings."""
    return json.dumps(to_json_safe(val), sort_keys=True, separators=(",", ":"), default=str)
