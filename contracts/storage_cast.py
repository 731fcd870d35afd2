"""Casting helpers from raw column batches to Arrow storage arrays.

The storage boundary is intentionally strict: a value that fails to normalize
fails the whole column rather than being written as a default.
"""

from __future__ import annotations

from typing import Optional, Sequence

import pyarrow as pa

from contracts.errors import ValueParseError
from contracts.normalization import normalize_column
from contracts.schema import ColumnSpec, TableSchema, check_arity


def cast_column(values: Sequence[Optional[str]], spec: ColumnSpec) -> pa.Array:
    """Normalize a column batch and build a non-null Arrow array for it."""
    try:
        typed = normalize_column(values, spec.column_type)
    except ValueParseError as exc:
        raise ValueParseError(
            exc.raw, exc.column_type, row_index=exc.row_index, column=spec.name
        ) from exc
    field = spec.arrow_field()
    # float32 rounding happens here, python floats are float64
    return pa.array(typed, type=field.type)


def cast_for_storage(
    columns: Sequence[Sequence[Optional[str]]],
    schema: TableSchema,
    row_count: int,
) -> pa.Table:
    """
    Cast column batches (in schema order) into an Arrow table matching the schema.
    Raises SchemaArityError before touching any value if the shapes disagree.
    """
    check_arity(schema, columns, row_count)
    arrays = [cast_column(values, spec) for spec, values in zip(schema.columns, columns)]
    return pa.Table.from_arrays(arrays, schema=schema.to_arrow())
