"""
QueryDescriptor -- the structured description of an operator's query,
tagged by ``type`` (table | timeseries | samples).

Wire format is camelCase (``groupByCols``, ``aggCols`` ...); attributes are
snake_case.
"""
from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ValueType(_WireModel):
    """Type of a filter value; containers carry the type of their elements."""

    type: str = Field(..., description="string | number | array | tuple | ...")
    child_type: ValueType | str | None = None


class Filter(_WireModel):
    col: str
    op: str = Field(..., description="SQL comparison operator, e.g. '=', '>', 'IN', 'LIKE'")
    value: Any
    value_type: ValueType | str | None = None


class AggregateColumn(_WireModel):
    name: str
    agg: str | None = Field(None, description="Aggregation; falls back to defaultAgg")


class _AggregateQueryBase(_WireModel):
    group_by_cols: list[str] = Field(default_factory=list)
    agg_cols: list[AggregateColumn] = Field(default_factory=list)
    default_agg: str = "sum"
    filters: list[Filter] = Field(default_factory=list)
    order_by: str | None = None

    @field_validator("group_by_cols")
    @classmethod
    def _unique_group_by(cls, cols: list[str]) -> list[str]:
        seen: set[str] = set()
        for col in cols:
            if col in seen:
                raise ValueError(f"duplicate group-by column '{col}'")
            seen.add(col)
        return cols

    def referenced_columns(self) -> list[str]:
        cols = list(self.group_by_cols)
        cols += [c.name for c in self.agg_cols]
        cols += [f.col for f in self.filters]
        if self.order_by:
            cols.append(self.order_by)
        return cols


class TableQuery(_AggregateQueryBase):
    type: Literal["table"] = "table"


class TimeseriesQuery(_AggregateQueryBase):
    """Aggregate query whose first group-by column is the schema's time column."""

    type: Literal["timeseries"] = "timeseries"


class SamplesQuery(_WireModel):
    """Raw rows, no aggregation."""

    type: Literal["samples"] = "samples"
    cols: list[str] = Field(default_factory=list)
    filters: list[Filter] = Field(default_factory=list)
    order_by: str | None = None

    def referenced_columns(self) -> list[str]:
        cols = list(self.cols) + [f.col for f in self.filters]
        if self.order_by:
            cols.append(self.order_by)
        return cols


QueryDescriptor = Annotated[
    Union[TableQuery, TimeseriesQuery, SamplesQuery],
    Field(discriminator="type"),
]

_descriptor_adapter: TypeAdapter = TypeAdapter(QueryDescriptor)


def parse_descriptor(data: Any) -> TableQuery | TimeseriesQuery | SamplesQuery:
    """Validate a raw (JSON-decoded) descriptor into its typed variant.

    Raises ``pydantic.ValidationError`` for unknown types or malformed fields.
    """
    if isinstance(data, (TableQuery, TimeseriesQuery, SamplesQuery)):
        return data
    return _descriptor_adapter.validate_python(data)
