"""
Unit tests -- schema registry: YAML loading, invariants, merge with discovered columns.
"""
import pytest

from src.core.errors import BuildError
from src.schema.registry import (
    FieldSpec,
    Schema,
    athena_type_to_field_type,
    load_static_schema,
    merge_schema,
)


def test_static_schema_loads():
    schema = load_static_schema()
    assert schema.table == "s3_access_logs_db.jfriend_logs"
    assert schema.time_col == "ds"
    assert schema.get_field("ds").type == "string"
    assert schema.derived("transfer") == "bytessent + objectsize"


def test_static_schema_from_explicit_path(tmp_path):
    path = tmp_path / "schema.yml"
    path.write_text(
        "table: db.events\n"
        "time_col: day\n"
        "fields:\n"
        "  day: {type: string, derived: \"date(ts)\"}\n"
        "  amount: {type: number}\n"
    )
    schema = load_static_schema(path)
    assert schema.table == "db.events"
    assert schema.get_field_names() == ["day", "amount"]


def test_time_col_must_exist():
    with pytest.raises(BuildError, match="not a field"):
        Schema(table="t", time_col="ds", fields={"x": FieldSpec(type="string")})


def test_time_col_must_be_string():
    with pytest.raises(BuildError, match="must have type 'string'"):
        Schema(table="t", time_col="ds", fields={"ds": FieldSpec(type="number")})


def test_schema_fields_immutable(log_schema):
    with pytest.raises(TypeError):
        log_schema.fields["new"] = FieldSpec(type="string")


def test_merge_static_wins(log_schema):
    discovered = {
        "transfer": {"type": "string"},
        "requester": {"type": "string"},
        "totaltime": {"type": "number"},
    }
    merged = merge_schema(log_schema, discovered)
    assert merged.get_field("transfer") == FieldSpec(type="number", derived="bytessent + objectsize")
    assert merged.get_field("requester").type == "string"
    assert merged.get_field("totaltime").type == "number"
    assert merged.table == log_schema.table
    assert merged.time_col == "ds"


def test_merge_does_not_mutate_inputs(log_schema):
    before = dict(log_schema.fields)
    merge_schema(log_schema, {"extra": {"type": "string"}})
    assert dict(log_schema.fields) == before


@pytest.mark.parametrize("athena_type,expected", [
    ("bigint", "number"),
    ("int", "number"),
    ("double", "number"),
    ("decimal(10,2)", "number"),
    ("string", "string"),
    ("timestamp", "string"),
    ("array<string>", "string"),
    ("", "string"),
])
def test_athena_type_mapping(athena_type, expected):
    assert athena_type_to_field_type(athena_type) == expected


def test_to_dict_shape(log_schema):
    data = log_schema.to_dict()
    assert data["table"] == "s3_access_logs_db.jfriend_logs"
    assert data["timeCol"] == "ds"
    assert data["fields"]["bucket"] == {"type": "string"}
    assert data["fields"]["transfer"] == {"type": "number", "derived": "bytessent + objectsize"}
