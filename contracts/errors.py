"""Error taxonomy for the ingest core.

Parsing and encoding errors are scoped to the smallest unit of work (one
column write, one record). Remote errors abort the enclosing invocation.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence


class IngestError(RuntimeError):
    """Base class for every error raised by the ingest core."""


class ValueParseError(IngestError, ValueError):
    """Raised when raw text cannot be converted to the declared numeric type."""

    def __init__(
        self,
        raw: str | None,
        column_type: Any,
        *,
        row_index: int | None = None,
        column: str | None = None,
    ) -> None:
        self.raw = raw
        self.column_type = column_type
        self.row_index = row_index
        self.column = column
        type_name = getattr(column_type, "value", column_type)
        where = f" in column {column!r}" if column else ""
        if row_index is not None:
            where += f" at row {row_index}"
        super().__init__(f"Cannot parse {raw!r} as {type_name}{where}")


class SchemaArityError(IngestError, ValueError):
    """Raised when column or row counts don't match the declared schema."""


class SchemaParseError(IngestError, ValueError):
    """Raised when a schema description string cannot be parsed."""


class EncodingError(IngestError, TypeError):
    """Raised when a record cannot be turned into a field map."""


class StoreRejectionError(IngestError):
    """The key-value store kept rejecting items after every retry attempt."""

    def __init__(self, table: str, unprocessed: Sequence[Mapping[str, Any]], *, attempts: int) -> None:
        self.table = table
        self.unprocessed = list(unprocessed)
        self.attempts = attempts
        super().__init__(
            f"{len(self.unprocessed)} item(s) rejected by table {table!r} after {attempts} attempt(s)"
        )


class RemoteCallError(IngestError):
    """A blocking remote call failed transport-side."""

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")


class UnknownOutcomeError(IngestError):
    """Write requests were issued but never confirmed (timeout or cancellation)."""

    def __init__(self, pending: Mapping[str, int]) -> None:
        self.pending = dict(pending)
        detail = ", ".join(f"{table}={count}" for table, count in sorted(self.pending.items()))
        super().__init__(f"Unconfirmed batch writes: {detail}")


__all__ = [
    "EncodingError",
    "IngestError",
    "RemoteCallError",
    "SchemaArityError",
    "SchemaParseError",
    "StoreRejectionError",
    "UnknownOutcomeError",
    "ValueParseError",
]
