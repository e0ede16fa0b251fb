"""
Unit tests -- QueryDescriptor parsing (tagged union, camelCase wire format).
"""
import pydantic
import pytest

from src.query.descriptor import (
    SamplesQuery,
    TableQuery,
    TimeseriesQuery,
    ValueType,
    parse_descriptor,
)


def test_parse_table_from_wire_format():
    q = parse_descriptor({
        "type": "table",
        "groupByCols": ["bucket"],
        "aggCols": [{"name": "transfer"}, {"name": "turnaroundtime", "agg": "p95"}],
        "defaultAgg": "sum",
        "filters": [{"col": "operation", "op": "=", "value": "REST.GET.OBJECT", "valueType": "string"}],
    })
    assert isinstance(q, TableQuery)
    assert q.group_by_cols == ["bucket"]
    assert q.agg_cols[0].agg is None
    assert q.agg_cols[1].agg == "p95"
    assert q.filters[0].value_type == "string"


def test_parse_dispatches_on_type():
    assert isinstance(parse_descriptor({"type": "timeseries", "aggCols": [{"name": "x"}]}), TimeseriesQuery)
    assert isinstance(parse_descriptor({"type": "samples", "cols": ["key"]}), SamplesQuery)


def test_unknown_type_rejected():
    with pytest.raises(pydantic.ValidationError):
        parse_descriptor({"type": "pivot", "groupByCols": []})


def test_missing_type_rejected():
    with pytest.raises(pydantic.ValidationError):
        parse_descriptor({"groupByCols": ["bucket"]})


def test_duplicate_group_by_rejected():
    with pytest.raises(pydantic.ValidationError, match="duplicate"):
        parse_descriptor({"type": "table", "groupByCols": ["bucket", "bucket"]})


def test_nested_value_type():
    q = parse_descriptor({
        "type": "samples",
        "cols": ["key"],
        "filters": [{
            "col": "httpstatus", "op": "IN", "value": ["403"],
            "valueType": {"type": "tuple", "childType": "string"},
        }],
    })
    vt = q.filters[0].value_type
    assert isinstance(vt, ValueType)
    assert vt.type == "tuple"
    assert vt.child_type == "string"


def test_default_agg_defaults_to_sum():
    assert parse_descriptor({"type": "table"}).default_agg == "sum"


def test_dump_uses_wire_names():
    q = TableQuery(group_by_cols=["bucket"], order_by="bucket")
    dumped = q.model_dump(by_alias=True)
    assert dumped["groupByCols"] == ["bucket"]
    assert dumped["orderBy"] == "bucket"
    assert dumped["type"] == "table"


def test_referenced_columns():
    q = parse_descriptor({
        "type": "table",
        "groupByCols": ["bucket"],
        "aggCols": [{"name": "bytessent"}],
        "filters": [{"col": "operation", "op": "=", "value": "x"}],
        "orderBy": "bucket",
    })
    assert q.referenced_columns() == ["bucket", "bytessent", "operation", "bucket"]


def test_parse_passes_models_through():
    q = SamplesQuery(cols=["key"])
    assert parse_descriptor(q) is q
