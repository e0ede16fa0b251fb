"""
Loads the static log-table schema from YAML and merges it with the columns
discovered from Athena.

The schema is the single source of truth for:
  - the fully-qualified table queried by every generated statement
  - the time column used as the x-axis of timeseries queries
  - per-column value types ("string" | "number")
  - derived columns (logical names backed by an SQL expression)
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from src.core.config import get_settings
from src.core.errors import BuildError

FIELD_TYPES = ("string", "number")

_NUMERIC_TYPE_RE = re.compile(
    r"^(tinyint|smallint|int|integer|bigint|float|real|double|decimal)\b",
    re.IGNORECASE,
)


# ── Typed domain objects ─────────────────────────────────

@dataclass(frozen=True)
class FieldSpec:
    type: str
    derived: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type}
        if self.derived is not None:
            out["derived"] = self.derived
        return out


@dataclass(frozen=True)
class Schema:
    """Immutable description of the queried table."""

    table: str
    time_col: str
    fields: Mapping[str, FieldSpec] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # freeze the mapping so the schema can be shared across tasks
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))
        time_field = self.fields.get(self.time_col)
        if time_field is None:
            raise BuildError(f"Time column '{self.time_col}' is not a field of {self.table}")
        if time_field.type != "string":
            raise BuildError(
                f"Time column '{self.time_col}' must have type 'string', got '{time_field.type}'"
            )

    # ── Convenience look-ups ─────────────────────────

    def get_field(self, name: str) -> FieldSpec | None:
        return self.fields.get(name)

    def derived(self, name: str) -> str | None:
        spec = self.fields.get(name)
        return spec.derived if spec else None

    def has_field(self, name: str) -> bool:
        return name in self.fields

    def get_field_names(self) -> list[str]:
        return list(self.fields.keys())

    def to_dict(self) -> dict[str, Any]:
        """Wire shape used by GET /schema."""
        return {
            "table": self.table,
            "timeCol": self.time_col,
            "fields": {name: spec.to_dict() for name, spec in self.fields.items()},
        }


# ── Parsing ──────────────────────────────────────────────

def _parse_field(name: str, raw: dict[str, Any] | None) -> FieldSpec:
    raw = raw or {}
    ftype = raw.get("type", "string")
    if ftype not in FIELD_TYPES:
        raise BuildError(f"Field '{name}' has unsupported type '{ftype}'")
    return FieldSpec(type=ftype, derived=raw.get("derived"))


def _parse_schema(raw_yaml: dict[str, Any]) -> Schema:
    fields = {
        name: _parse_field(name, spec)
        for name, spec in (raw_yaml.get("fields") or {}).items()
    }
    return Schema(
        table=raw_yaml["table"],
        time_col=raw_yaml["time_col"],
        fields=fields,
    )


def athena_type_to_field_type(athena_type: str) -> str:
    """Map an Athena/Hive column type onto the dashboard's two value types."""
    if _NUMERIC_TYPE_RE.match((athena_type or "").strip()):
        return "number"
    return "string"


# ── Public API ───────────────────────────────────────────

def load_static_schema(path: str | Path | None = None) -> Schema:
    """Load the statically configured partial schema."""
    return _load_static_schema(str(path or get_settings().schema_path))


@lru_cache
def _load_static_schema(path: str) -> Schema:
    with open(path) as f:
        raw = yaml.safe_load(f)
    return _parse_schema(raw)


def merge_schema(static: Schema, discovered: Mapping[str, Mapping[str, Any]]) -> Schema:
    """Union of discovered columns and the static schema; static entries win."""
    fields: dict[str, FieldSpec] = {}
    for name, raw in discovered.items():
        fields[name] = FieldSpec(type=raw.get("type", "string"))
    fields.update(static.fields)
    return Schema(table=static.table, time_col=static.time_col, fields=fields)
