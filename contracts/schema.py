"""Declared table schemas for report datasets.

A schema is an ordered list of (column name, primitive type) pairs. It can be
written in the Parquet message-type grammar used by the report configuration:

    message report {
      REQUIRED BYTE_ARRAY campaign (UTF8);
      REQUIRED INT64 clicks;
      REQUIRED FLOAT ctr;
    }

Column order in the schema is the column order of every batch handed to the
columnar writer.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Sequence, Tuple

import pyarrow as pa

from contracts.errors import SchemaArityError, SchemaParseError


class ColumnType(str, Enum):
    TEXT = "text"
    INT32 = "int32"
    INT64 = "int64"
    FLOAT = "float"

    @property
    def is_numeric(self) -> bool:
        return self is not ColumnType.TEXT


_ARROW_TYPES = {
    ColumnType.TEXT: pa.string(),
    ColumnType.INT32: pa.int32(),
    ColumnType.INT64: pa.int64(),
    ColumnType.FLOAT: pa.float32(),
}

# Parquet physical type -> column type
_PHYSICAL_TYPES = {
    "binary": ColumnType.TEXT,
    "byte_array": ColumnType.TEXT,
    "int32": ColumnType.INT32,
    "int64": ColumnType.INT64,
    "float": ColumnType.FLOAT,
}

_MESSAGE_RE = re.compile(r"^\s*message\s+(\w+)\s*\{(.*)\}\s*$", re.DOTALL | re.IGNORECASE)
_FIELD_RE = re.compile(
    r"^(required|optional|repeated)\s+(\w+)\s+([A-Za-z_][\w]*)(?:\s*\(\s*(\w+)\s*\))?$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ColumnSpec:
    name: str
    column_type: ColumnType

    def arrow_field(self) -> pa.Field:
        # Every value is present: absence is resolved to zero/empty by normalization.
        return pa.field(self.name, _ARROW_TYPES[self.column_type], nullable=False)


@dataclass(frozen=True)
class TableSchema:
    """Ordered column declarations for one dataset."""

    name: str
    columns: Tuple[ColumnSpec, ...]

    def __post_init__(self) -> None:
        if not self.columns:
            raise SchemaParseError("schema must declare at least one column")
        seen: set[str] = set()
        for col in self.columns:
            if not col.name:
                raise SchemaParseError("column names must be non-empty")
            if col.name in seen:
                raise SchemaParseError(f"duplicate column name: {col.name!r}")
            seen.add(col.name)

    def __len__(self) -> int:
        return len(self.columns)

    def __iter__(self) -> Iterator[ColumnSpec]:
        return iter(self.columns)

    @property
    def names(self) -> list[str]:
        return [c.name for c in self.columns]

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, ColumnType | str]], *, name: str = "schema") -> "TableSchema":
        return cls(name=name, columns=tuple(ColumnSpec(n, ColumnType(t)) for n, t in pairs))

    def to_arrow(self) -> pa.Schema:
        return pa.schema([c.arrow_field() for c in self.columns])

    def to_message_type(self) -> str:
        lines = [f"message {self.name} {{"]
        for col in self.columns:
            if col.column_type is ColumnType.TEXT:
                lines.append(f"  REQUIRED BYTE_ARRAY {col.name} (UTF8);")
            else:
                lines.append(f"  REQUIRED {col.column_type.value.upper()} {col.name};")
        lines.append("}")
        return "\n".join(lines)


def parse_message_type(text: str) -> TableSchema:
    """Parse a Parquet message-type description into a :class:`TableSchema`."""
    match = _MESSAGE_RE.match(str(text or ""))
    if match is None:
        raise SchemaParseError("schema must look like 'message <name> { ... }'")
    name, body = match.group(1), match.group(2)

    columns: list[ColumnSpec] = []
    for raw_field in body.split(";"):
        decl = " ".join(raw_field.split())
        if not decl:
            continue
        fm = _FIELD_RE.match(decl)
        if fm is None:
            raise SchemaParseError(f"cannot parse field declaration: {decl!r}")
        repetition, physical, col_name, _annotation = fm.groups()
        if repetition.lower() == "repeated":
            raise SchemaParseError(f"repeated fields are not supported: {col_name!r}")
        column_type = _PHYSICAL_TYPES.get(physical.lower())
        if column_type is None:
            raise SchemaParseError(f"unsupported physical type {physical!r} for column {col_name!r}")
        columns.append(ColumnSpec(col_name, column_type))

    return TableSchema(name=name, columns=tuple(columns))


def check_arity(schema: TableSchema, columns: Sequence[Sequence[object]], row_count: int) -> None:
    """Fail with SchemaArityError unless columns match the schema and row count."""
    if len(columns) != len(schema):
        raise SchemaArityError(
            f"schema {schema.name!r} declares {len(schema)} column(s), got {len(columns)} column batch(es)"
        )
    for spec, values in zip(schema.columns, columns):
        if len(values) != row_count:
            raise SchemaArityError(
                f"column {spec.name!r} has {len(values)} value(s), expected {row_count}"
            )
