"""
Unit tests -- result CSV parsing, timeseries pivot and chart selection.
"""
import pandas as pd

from src.ui.charts import (
    CHART_BAR,
    CHART_LINE,
    CHART_TABLE,
    load_csv,
    pivot_timeseries,
    suggest_chart,
)

TIMESERIES_CSV = (
    '"ds","operation","transfer_sum_agg"\n'
    '"2024-01-02","REST.GET.OBJECT","300"\n'
    '"2024-01-01","REST.GET.OBJECT","100"\n'
    '"2024-01-01","REST.PUT.OBJECT","50"\n'
    '"","REST.GET.OBJECT","999"\n'
    '"2024-01-02","REST.PUT.OBJECT","70"\n'
)


def test_load_csv_bytes():
    frame = load_csv(b'"a","b"\n"1","x"\n')
    assert list(frame.columns) == ["a", "b"]
    assert len(frame) == 1


def test_load_csv_empty():
    assert load_csv("").empty


def test_pivot_one_series_per_group():
    wide = pivot_timeseries(load_csv(TIMESERIES_CSV), ["operation"])
    assert sorted(wide.columns) == [
        "REST.GET.OBJECT transfer_sum_agg",
        "REST.PUT.OBJECT transfer_sum_agg",
    ]
    assert list(wide.index) == [pd.Timestamp("2024-01-01"), pd.Timestamp("2024-01-02")]
    assert wide.loc[pd.Timestamp("2024-01-01"), "REST.GET.OBJECT transfer_sum_agg"] == 100
    assert wide.loc[pd.Timestamp("2024-01-02"), "REST.PUT.OBJECT transfer_sum_agg"] == 70


def test_pivot_drops_rows_without_time():
    wide = pivot_timeseries(load_csv(TIMESERIES_CSV), ["operation"])
    assert 999 not in wide.to_numpy()


def test_pivot_without_dimensions():
    frame = load_csv('"ds","bytessent_sum_agg"\n"2024-01-02","5"\n"2024-01-01","3"\n')
    wide = pivot_timeseries(frame, [])
    assert list(wide.columns) == ["bytessent_sum_agg"]
    assert list(wide["bytessent_sum_agg"]) == [3, 5]
    assert wide.index.name == "ds"


def test_pivot_ignores_time_column_in_group_by():
    wide = pivot_timeseries(load_csv(TIMESERIES_CSV), ["ds", "operation"])
    assert len(wide.columns) == 2


def test_suggest_line_for_timeseries():
    frame = load_csv(TIMESERIES_CSV)
    chart = suggest_chart({"type": "timeseries", "groupByCols": ["operation"], "aggCols": [{"name": "transfer"}]}, frame)
    assert chart.chart_type == CHART_LINE
    assert chart.x_column == "ds"
    assert chart.title == "sum(transfer) by operation over time"


def test_suggest_bar_for_single_group_table():
    frame = load_csv('"bucket","bytessent_p95_agg"\n"a","1"\n"b","2"\n')
    descriptor = {"type": "table", "groupByCols": ["bucket"], "aggCols": [{"name": "bytessent", "agg": "p95"}]}
    chart = suggest_chart(descriptor, frame)
    assert chart.chart_type == CHART_BAR
    assert chart.x_column == "bucket"
    assert chart.y_columns == ["bytessent_p95_agg"]


def test_suggest_table_for_samples():
    frame = load_csv('"key","bucket"\n"a.png","assets"\n')
    chart = suggest_chart({"type": "samples", "cols": ["key", "bucket"]}, frame)
    assert chart.chart_type == CHART_TABLE
    assert chart.title == "Samples of key, bucket"


def test_suggest_table_for_empty_result():
    assert suggest_chart({"type": "timeseries"}, pd.DataFrame()).chart_type == CHART_TABLE
