"""Pipeline driver: rows -> column batches -> Parquet + key-value records.

One invocation is a single pass over an in-memory dataset:

  rows -> column batches (schema order) -> ColumnarWriter.write_batch
       -> ReportRow records -> BatchPersister.submit -> drain

The columnar write happens first and is finalized before persistence starts;
a parse or arity error aborts it before any record is submitted. A record
that cannot be encoded is skipped and counted, remote errors abort the
invocation. The two writes are independent and not atomic with each other.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from contracts.errors import EncodingError
from contracts.normalization import TypedValue, normalize_column
from contracts.report_types import ReportRow
from contracts.schema import TableSchema
from pipeline.batch_persister import BatchPersister, PersistStats
from pipeline.writer_parquet import ColumnarWriter

logger = logging.getLogger(__name__)


class ColumnBatches:
    """Accumulates raw row values column by column, in schema order."""

    def __init__(self, schema: TableSchema) -> None:
        self._schema = schema
        self._columns: List[List[Optional[str]]] = [[] for _ in schema.columns]
        self._rows: List[Mapping[str, Optional[str]]] = []

    def append(self, row: Mapping[str, Optional[str]]) -> None:
        for values, spec in zip(self._columns, self._schema.columns):
            values.append(row.get(spec.name))
        self._rows.append(row)

    @property
    def columns(self) -> List[List[Optional[str]]]:
        return self._columns

    @property
    def rows(self) -> List[Mapping[str, Optional[str]]]:
        return self._rows

    @property
    def row_count(self) -> int:
        return len(self._rows)


@dataclass
class IngestStats:
    rows_read: int = 0
    rows_written: int = 0
    records_submitted: int = 0
    records_rejected: int = 0
    rejected_samples: List[str] = field(default_factory=list)
    persist: Optional[PersistStats] = None


def _typed_rows(batches: ColumnBatches, schema: TableSchema) -> List[Dict[str, TypedValue]]:
    typed_columns = [
        normalize_column(values, spec.column_type)
        for values, spec in zip(batches.columns, schema.columns)
    ]
    out: List[Dict[str, TypedValue]] = []
    for idx in range(batches.row_count):
        out.append({spec.name: col[idx] for spec, col in zip(schema.columns, typed_columns)})
    return out


def ingest_rows(
    rows: Iterable[Mapping[str, Optional[str]]],
    schema: TableSchema,
    writer: ColumnarWriter,
    *,
    persister: Optional[BatchPersister] = None,
    table: Optional[str] = None,
    key_field: Optional[str] = None,
    drain_timeout: Optional[float] = None,
    max_error_samples: int = 50,
) -> IngestStats:
    """
    Ingest one dataset into ``writer`` and, optionally, the key-value store.

    The writer is closed (the artifact is final) before any record is submitted;
    if the columnar write fails the writer is aborted and nothing is persisted.

    When ``persister`` is given, ``table`` and ``key_field`` are required and every
    row is submitted as a :class:`ReportRow` after the columnar write succeeded.
    """
    if persister is not None and (not table or not key_field):
        writer.abort()
        raise ValueError("table and key_field are required when persisting records")

    stats = IngestStats()
    batches = ColumnBatches(schema)
    try:
        for row in rows:
            batches.append(row)
        stats.rows_read = batches.row_count
        logger.info("rows read: %s (schema %s)", stats.rows_read, schema.name)
        stats.rows_written = writer.write_batch(batches.columns, batches.row_count)
    except Exception:
        writer.abort()
        raise
    writer.close()

    if persister is None:
        return stats

    in_schema = key_field in schema.names
    for raw, values in zip(batches.rows, _typed_rows(batches, schema)):
        if not in_schema and raw.get(key_field):
            values = {key_field: raw[key_field] or "", **values}
        try:
            persister.submit(table, ReportRow(schema=schema, key_field=key_field, values=values))
        except EncodingError as exc:
            stats.records_rejected += 1
            if len(stats.rejected_samples) < max_error_samples:
                stats.rejected_samples.append(str(exc))
            logger.warning("record skipped: %s", exc)
            continue
        stats.records_submitted += 1

    stats.persist = persister.drain(timeout=drain_timeout)
    logger.info(
        "records persisted to %s: %s written, %s rejected before submit",
        table,
        stats.persist.written,
        stats.records_rejected,
    )
    return stats
