"""Contracts: schema, value normalization, record types and errors.

The contracts package defines:
- the declared table schema and its Parquet message-type grammar
- the value normalization rules for report text
- the Arrow storage cast used by the Parquet writer
- the record types persisted to the key-value store
- the error taxonomy shared by the pipeline and the AWS adapters
"""

from contracts.errors import (
    EncodingError,
    IngestError,
    RemoteCallError,
    SchemaArityError,
    SchemaParseError,
    StoreRejectionError,
    UnknownOutcomeError,
    ValueParseError,
)
from contracts.normalization import normalize, normalize_column, normalize_name
from contracts.schema import ColumnSpec, ColumnType, TableSchema, parse_message_type

__all__ = [
    "ColumnSpec",
    "ColumnType",
    "EncodingError",
    "IngestError",
    "RemoteCallError",
    "SchemaArityError",
    "SchemaParseError",
    "StoreRejectionError",
    "TableSchema",
    "UnknownOutcomeError",
    "ValueParseError",
    "normalize",
    "normalize_column",
    "normalize_name",
    "parse_message_type",
]
