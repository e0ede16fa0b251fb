"""
SQL Builder -- turns a QueryDescriptor into an Athena (Presto) SELECT string.

Column names are resolved through the schema: a field with a ``derived``
expression is replaced by that expression and aliased back to its logical
name, so derived columns behave exactly like stored ones.

Filter literals are interpolated, not bound.  All literal rendering goes
through ``render_literal`` so switching to parameterised execution is a local
change.  String values are NOT escaped.
"""
from __future__ import annotations

from typing import Any

from src.query.descriptor import (
    Filter,
    SamplesQuery,
    TableQuery,
    TimeseriesQuery,
    ValueType,
)
from src.schema.registry import Schema
from src.core.errors import BuildError
from src.core.logging import get_logger

logger = get_logger(__name__)

# Approximate percentiles understood by Athena's approx_percentile()
PERCENTILE_AGGS: dict[str, str] = {
    "p75": "0.75",
    "p90": "0.90",
    "p95": "0.95",
    "p99": "0.99",
}


# ── Column resolution ────────────────────────────────────

def column_expression(name: str, schema: Schema) -> str:
    """Expression backing *name*: its derived SQL, or the bare column."""
    derived = schema.derived(name)
    return derived if derived is not None else name


def resolve_column(name: str, schema: Schema) -> str:
    """SELECT-list entry for *name*, aliased back when derived."""
    derived = schema.derived(name)
    if derived is not None:
        return f"{derived} as {name}"
    return name


def build_agg(expr: str, agg: str) -> str:
    """Aggregate call over *expr* (``p95`` -> ``approx_percentile(expr, 0.95)``)."""
    fraction = PERCENTILE_AGGS.get(agg)
    if fraction is not None:
        return f"approx_percentile({expr}, {fraction})"
    return f"{agg}({expr})"


def aggregate_alias(name: str, agg: str) -> str:
    return f"{name}_{agg}_agg"


# ── Literals & filters ───────────────────────────────────

def _type_name(value_type: ValueType | str | None) -> str | None:
    if value_type is None or isinstance(value_type, str):
        return value_type
    return value_type.type


def _child_type(value_type: ValueType | str | None) -> ValueType | str | None:
    if isinstance(value_type, ValueType):
        return value_type.child_type
    return None


def render_literal(value: Any, value_type: ValueType | str | None = None) -> str:
    """Render *value* as an SQL literal according to *value_type*."""
    type_name = _type_name(value_type)
    if type_name == "tuple":
        child = _child_type(value_type)
        return "(" + ", ".join(render_literal(v, child) for v in value) + ")"
    if type_name == "array":
        child = _child_type(value_type)
        return "ARRAY [" + ", ".join(render_literal(v, child) for v in value) + "]"
    if type_name == "string":
        return f"'{value}'"
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "NULL"
    return str(value)


def render_filter(flt: Filter, schema: Schema) -> str:
    derived = schema.derived(flt.col)
    col = f"({derived})" if derived is not None else flt.col
    return f"{col} {flt.op} {render_literal(flt.value, flt.value_type)}"


def _where_lines(filters: list[Filter], schema: Schema) -> list[str]:
    if not filters:
        return []
    return ["WHERE " + "\n  AND ".join(render_filter(f, schema) for f in filters)]


def order_by_expression(
    order_by: str,
    schema: Schema,
    selected: list[str],
    aggregates: dict[str, str] | None = None,
) -> str:
    """ORDER BY term for *order_by*; derived columns never appear bare.

    A selected derived column is referenced by ordinal, an aggregated column
    by its aggregate alias, anything else by its backing expression.
    """
    if order_by in selected:
        if schema.derived(order_by) is None:
            return order_by
        return str(selected.index(order_by) + 1)
    if aggregates and order_by in aggregates:
        return aggregates[order_by]
    derived = schema.derived(order_by)
    return f"({derived})" if derived is not None else order_by


def _order_by_lines(
    order_by: str | None,
    schema: Schema,
    selected: list[str],
    aggregates: dict[str, str] | None = None,
) -> list[str]:
    if not order_by:
        return []
    return [f"ORDER BY {order_by_expression(order_by, schema, selected, aggregates)}"]


# ── Validation ───────────────────────────────────────────

def validate_descriptor(
    descriptor: TableQuery | TimeseriesQuery | SamplesQuery,
    schema: Schema,
) -> list[str]:
    """Return a list of error messages (empty list = every column is known)."""
    errors: list[str] = []
    for col in dict.fromkeys(descriptor.referenced_columns()):
        if not schema.has_field(col):
            errors.append(f"Unknown column '{col}' for table {schema.table}.")
    if isinstance(descriptor, (TableQuery, TimeseriesQuery)) and not descriptor.agg_cols:
        if not effective_group_by(descriptor, schema):
            errors.append("Aggregate query needs at least one group-by or aggregate column.")
    if isinstance(descriptor, SamplesQuery) and not descriptor.cols:
        errors.append("Sample query needs at least one column.")
    return errors


# ── SQL builders ─────────────────────────────────────────

def effective_group_by(descriptor: TableQuery | TimeseriesQuery, schema: Schema) -> list[str]:
    """Group-by columns in SELECT order; timeseries puts the time column first."""
    cols = list(descriptor.group_by_cols)
    if isinstance(descriptor, TimeseriesQuery):
        cols = [schema.time_col] + [c for c in cols if c != schema.time_col]
    return cols


def build_aggregate_query(descriptor: TableQuery | TimeseriesQuery, schema: Schema) -> str:
    group_by = effective_group_by(descriptor, schema)

    select_parts = [resolve_column(col, schema) for col in group_by]
    aggregates: dict[str, str] = {}
    for agg_col in descriptor.agg_cols:
        agg = agg_col.agg or descriptor.default_agg
        expr = build_agg(column_expression(agg_col.name, schema), agg)
        alias = aggregate_alias(agg_col.name, agg)
        aggregates.setdefault(agg_col.name, alias)
        select_parts.append(f"{expr} as {alias}")

    sql_lines = ["SELECT", "  " + ",\n  ".join(select_parts), f"FROM {schema.table}"]
    sql_lines += _where_lines(descriptor.filters, schema)
    if group_by:
        # ordinal positions must line up with the SELECT list above
        sql_lines.append("GROUP BY " + ", ".join(str(i) for i in range(1, len(group_by) + 1)))
    sql_lines += _order_by_lines(descriptor.order_by, schema, group_by, aggregates)
    return "\n".join(sql_lines)


def build_sample_query(descriptor: SamplesQuery, schema: Schema) -> str:
    select_parts = [resolve_column(col, schema) for col in descriptor.cols]
    sql_lines = ["SELECT", "  " + ",\n  ".join(select_parts), f"FROM {schema.table}"]
    sql_lines += _where_lines(descriptor.filters, schema)
    sql_lines += _order_by_lines(descriptor.order_by, schema, list(descriptor.cols))
    return "\n".join(sql_lines)


def build_query(
    descriptor: TableQuery | TimeseriesQuery | SamplesQuery,
    schema: Schema,
    strict: bool = False,
) -> str:
    """Build the SQL for any descriptor variant.

    With ``strict=True`` the descriptor is validated against the schema first
    and a ``BuildError`` listing every problem is raised.
    """
    if strict:
        errors = validate_descriptor(descriptor, schema)
        if errors:
            raise BuildError(" ".join(errors))

    if isinstance(descriptor, SamplesQuery):
        sql = build_sample_query(descriptor, schema)
    elif isinstance(descriptor, (TableQuery, TimeseriesQuery)):
        sql = build_aggregate_query(descriptor, schema)
    else:
        raise BuildError(f"Unsupported descriptor {type(descriptor).__name__}")

    logger.info("Built %s query:\n%s", descriptor.type, sql)
    return sql
