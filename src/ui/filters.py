"""
Filter rows from the query builder's editor -> descriptor filter dicts.
"""
from __future__ import annotations

import math
from typing import Any


def coerce_number(value: Any) -> int | float:
    """Parse a numeric filter value; whole numbers stay ``int`` (``1024`` not ``1024.0``)."""
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, int):
        return value
    number = float(str(value).strip())
    if math.isfinite(number) and number.is_integer():
        return int(number)
    return number


def build_filters(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Turn editor rows ``{col, op, value, valueType}`` into wire filters.

    Rows without a column or operator are skipped.  ``tuple`` values are
    comma-separated strings.
    """
    filters = []
    for row in rows:
        if not row.get("col") or not row.get("op"):
            continue
        value, value_type = row.get("value"), row.get("valueType") or "string"
        if value_type == "number":
            value = coerce_number(value)
        elif value_type == "tuple":
            value = [v.strip() for v in str(value).split(",")]
            value_type = {"type": "tuple", "childType": "string"}
        filters.append({"col": row["col"], "op": row["op"], "value": value, "valueType": value_type})
    return filters
