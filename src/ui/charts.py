"""
Chart shaping for query results.

Given the CSV Athena produced and the descriptor that generated it, decide
how the result should be shown and reshape it for plotting.

Supported views:
  - line   (timeseries: time column on x, one series per group-by combination)
  - bar    (table query with a single group-by column)
  - table  (samples, and anything wider)
"""
from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from src.core.logging import get_logger

logger = get_logger(__name__)

CHART_LINE = "line"
CHART_BAR = "bar"
CHART_TABLE = "table"


@dataclass
class ChartSpec:
    """Describes how a result frame should be visualised."""
    chart_type: str
    title: str
    x_column: str | None = None
    y_columns: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "chart_type": self.chart_type,
            "title": self.title,
            "x_column": self.x_column,
            "y_columns": self.y_columns,
        }


def load_csv(body: bytes | str) -> pd.DataFrame:
    """Parse the CSV written by Athena (header row + quoted values)."""
    if isinstance(body, bytes):
        body = body.decode("utf-8")
    if not body.strip():
        return pd.DataFrame()
    return pd.read_csv(io.StringIO(body))


def pivot_timeseries(frame: pd.DataFrame, group_by_cols: list[str]) -> pd.DataFrame:
    """Reshape a long timeseries result into one column per series.

    The first column is the time column.  Every other group-by column is
    folded into the series name (``"<dim values...> <metric>"``), rows with an
    empty time value are dropped and the result is indexed by parsed time,
    sorted ascending.
    """
    if frame.empty:
        return frame

    time_col = frame.columns[0]
    dims = [c for c in group_by_cols if c != time_col and c in frame.columns]
    value_cols = [c for c in frame.columns if c != time_col and c not in dims]

    frame = frame.dropna(subset=[time_col])
    frame = frame[frame[time_col].astype(str).str.strip() != ""]
    # last row wins when the same (time, dims) key repeats
    frame = frame.drop_duplicates(subset=[time_col] + dims, keep="last")

    if dims:
        wide = frame.set_index([time_col] + dims)[value_cols].unstack(dims)
        wide.columns = [
            " ".join([*(str(v) for v in key[1:]), str(key[0])]) for key in wide.columns
        ]
    else:
        wide = frame.set_index(time_col)[value_cols]

    wide.index = pd.to_datetime(wide.index, errors="coerce")
    wide = wide[wide.index.notna()].sort_index()
    wide.index.name = time_col
    return wide.apply(pd.to_numeric, errors="coerce")


def suggest_chart(descriptor: dict[str, Any], frame: pd.DataFrame) -> ChartSpec:
    """Choose the view for a result set produced by *descriptor* (wire dict)."""
    qtype = descriptor.get("type", "table")
    columns = [str(c) for c in frame.columns]
    title = _build_title(descriptor)

    if frame.empty or not columns:
        return ChartSpec(chart_type=CHART_TABLE, title=title)

    if qtype == "timeseries":
        return ChartSpec(
            chart_type=CHART_LINE, title=title, x_column=columns[0], y_columns=columns[1:],
        )

    group_by = descriptor.get("groupByCols") or []
    if qtype == "table" and len(group_by) == 1 and len(columns) > 1:
        return ChartSpec(
            chart_type=CHART_BAR, title=title, x_column=columns[0], y_columns=columns[1:],
        )

    return ChartSpec(chart_type=CHART_TABLE, title=title)


def _build_title(descriptor: dict[str, Any]) -> str:
    qtype = descriptor.get("type", "table")
    if qtype == "samples":
        cols = descriptor.get("cols") or []
        return ("Samples of " + ", ".join(cols)) if cols else "Samples"
    default_agg = descriptor.get("defaultAgg", "sum")
    metrics = [
        f"{c.get('agg') or default_agg}({c.get('name')})" for c in descriptor.get("aggCols") or []
    ]
    parts = [", ".join(metrics) or "rows"]
    group_by = descriptor.get("groupByCols") or []
    if group_by:
        parts.append("by " + ", ".join(group_by))
    if qtype == "timeseries":
        parts.append("over time")
    return " ".join(parts)
