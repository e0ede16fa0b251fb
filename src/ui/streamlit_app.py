"""
Streamlit UI -- Log Query Dashboard.

Features:
  - Sidebar with the merged table schema (static + discovered columns)
  - Query builder: type, group-by columns, aggregates, filters
  - Live list of query executions with state, SQL and raw Athena status
  - Manual status refresh per execution
  - Result rendering: timeseries line chart, bar chart or table
  - Server error panel and result-cache stats
  - Charting a local CSV file dropped onto the page
"""
import json

import httpx
import pandas as pd
import streamlit as st

from src.core.config import get_settings
from src.ui.charts import CHART_BAR, CHART_LINE, load_csv, pivot_timeseries, suggest_chart
from src.ui.filters import build_filters

API_BASE = get_settings().api_base
_TIMEOUT = 30

AGGREGATIONS = ["sum", "avg", "count", "min", "max", "p75", "p90", "p95", "p99"]
OPERATORS = ["=", "!=", ">", ">=", "<", "<=", "LIKE", "IN"]
VALUE_TYPES = ["string", "number", "tuple"]

st.set_page_config(
    page_title="Log Query Dashboard",
    page_icon="bar_chart",
    layout="wide",
    initial_sidebar_state="expanded",
)


if "schema" not in st.session_state:
    st.session_state.schema = None


def _load_schema():
    """Fetch /schema from the API; cache in session_state."""
    try:
        resp = httpx.get(f"{API_BASE}/schema", timeout=_TIMEOUT)
        resp.raise_for_status()
        st.session_state.schema = resp.json()
    except Exception:
        st.session_state.schema = None


def _fetch_state() -> dict | None:
    try:
        return httpx.get(f"{API_BASE}/state", timeout=5).json()
    except Exception:
        return None


def _fetch_cache_stats() -> dict | None:
    try:
        return httpx.get(f"{API_BASE}/cache/stats", timeout=3).json()
    except Exception:
        return None


@st.cache_data(show_spinner=False)
def _fetch_result(execution_id: str) -> bytes:
    resp = httpx.get(f"{API_BASE}/query-result", params={"id": execution_id}, timeout=_TIMEOUT)
    resp.raise_for_status()
    return resp.content


with st.sidebar:
    st.title("Schema")

    if st.button("Refresh schema", use_container_width=True):
        _load_schema()

    if st.session_state.schema is None:
        _load_schema()

    schema = st.session_state.schema

    if schema:
        st.caption(f"Table: `{schema['table']}`  ·  time column: `{schema['timeCol']}`")
        for name, spec in schema["fields"].items():
            derived = f"  _= {spec['derived']}_" if spec.get("derived") else ""
            st.markdown(f"- **{name}** `{spec['type']}`{derived}")
    else:
        st.info("API not reachable -- start the FastAPI server first.\n\n```\nuvicorn src.api.main:app --port 13337\n```")

    st.divider()

    st.subheader("Result cache")
    cache_stats = _fetch_cache_stats()
    if cache_stats:
        c1, c2 = st.columns(2)
        c1.metric("Entries", cache_stats.get("size", 0))
        c2.metric("Hit Rate", f"{cache_stats.get('hit_rate', 0):.0%}")


st.title("Log Query Dashboard")
st.markdown("Build an aggregate, timeseries or sample query, submit it to Athena and chart the result.")


# ── Query builder ───────────────────────────────────────

field_names = sorted(schema["fields"]) if schema else []
number_fields = sorted(n for n, s in schema["fields"].items() if s["type"] == "number") if schema else []

with st.expander("New query", expanded=True):
    qtype = st.selectbox("Query type", ["timeseries", "table", "samples"])

    if qtype == "samples":
        cols = st.multiselect("Columns", field_names)
    else:
        # timeseries queries always group by the time column first
        time_col = schema["timeCol"] if schema and qtype == "timeseries" else None
        group_by = st.multiselect("Group by", [f for f in field_names if f != time_col])
        agg_cols = st.multiselect("Aggregate columns", number_fields or field_names)
        default_agg = st.selectbox("Aggregation", AGGREGATIONS)

    st.caption("Filters")
    filters_df = st.data_editor(
        pd.DataFrame(columns=["col", "op", "value", "valueType"]),
        num_rows="dynamic",
        use_container_width=True,
        column_config={
            "col": st.column_config.SelectboxColumn("col", options=field_names),
            "op": st.column_config.SelectboxColumn("op", options=OPERATORS),
            "valueType": st.column_config.SelectboxColumn("valueType", options=VALUE_TYPES),
        },
        key="filters_editor",
    )

    if st.button("Run query", type="primary"):
        try:
            filters = build_filters(filters_df.dropna(subset=["col", "op"]).to_dict("records"))
        except ValueError as exc:
            st.error(f"Invalid filter value: {exc}")
            st.stop()

        if qtype == "samples":
            descriptor = {"type": "samples", "cols": cols, "filters": filters}
        else:
            descriptor = {
                "type": qtype,
                "groupByCols": group_by,
                "aggCols": [{"name": c} for c in agg_cols],
                "defaultAgg": default_agg,
                "filters": filters,
            }

        try:
            resp = httpx.post(f"{API_BASE}/queries", json=descriptor, timeout=_TIMEOUT)
            resp.raise_for_status()
            st.success("Query submitted")
        except httpx.ConnectError:
            st.error("Cannot reach the API. Start it with:\n```\nuvicorn src.api.main:app --port 13337\n```")
        except httpx.HTTPStatusError as exc:
            st.error(f"API returned {exc.response.status_code}: {exc.response.text}")


# ── Executions ──────────────────────────────────────────

def _render_result(execution: dict):
    try:
        frame = load_csv(_fetch_result(execution["id"]))
    except httpx.HTTPStatusError as exc:
        st.error(f"Result not available: {exc.response.text}")
        return

    descriptor = execution.get("descriptor") or {}
    chart = suggest_chart(descriptor, frame)
    st.subheader(chart.title)

    if chart.chart_type == CHART_LINE:
        group_by = descriptor.get("groupByCols") or []
        st.line_chart(pivot_timeseries(frame, group_by))
    elif chart.chart_type == CHART_BAR:
        st.bar_chart(frame.set_index(chart.x_column)[chart.y_columns])

    st.dataframe(frame, use_container_width=True)
    st.download_button(
        "Download CSV",
        frame.to_csv(index=False),
        file_name=f"{execution['id']}.csv",
        mime="text/csv",
        key=f"dl_{execution['id']}",
    )


state = _fetch_state()

if st.button("Refresh"):
    st.rerun()

if state:
    errors = state.get("serverErrors", [])
    if errors:
        with st.expander(f"Server errors ({len(errors)})", expanded=False):
            for err in errors:
                st.error(f"**{err['message']}**\n\n{err['detail']}")

    executions = list(state.get("queryExecutions", {}).values())
    for i, execution in enumerate(reversed(executions)):
        label = f"query {len(executions) - i}  ·  {execution['state']}  ·  {execution['id']}"
        with st.expander(label, expanded=i == 0):
            st.code(execution["sql"], language="sql")
            if st.button("Refresh status", key=f"status_{execution['id']}"):
                httpx.post(f"{API_BASE}/queries/{execution['id']}/status", timeout=_TIMEOUT)
                st.rerun()
            with st.popover("Query metadata"):
                st.code(json.dumps(execution.get("lastStatusPayload"), indent=2), language="json")
            if execution["state"] == "SUCCEEDED":
                _render_result(execution)
            elif execution["state"] == "FAILED":
                reason = (
                    (execution.get("lastStatusPayload") or {})
                    .get("QueryExecution", {})
                    .get("Status", {})
                    .get("StateChangeReason", "")
                )
                st.error(f"Query failed. {reason}")


# ── Local CSV ───────────────────────────────────────────

st.divider()
st.subheader("Chart a local CSV")
uploaded = st.file_uploader("Drop a result CSV (first column is the time column)", type=["csv"])
if uploaded is not None:
    local = load_csv(uploaded.getvalue())
    if local.empty:
        st.warning("The file has no rows.")
    else:
        dims = st.multiselect("Group-by columns", list(local.columns[1:]), key="local_dims")
        st.line_chart(pivot_timeseries(local, dims))
        st.dataframe(local, use_container_width=True)
