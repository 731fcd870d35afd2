"""Typed Parquet writer for report datasets.

This is the storage boundary: it normalizes raw column batches against the
declared schema and writes them to a local Parquet file. Each ``write_batch``
call becomes one logical unit (a row group); a batch either lands completely
or not at all. The file is only final once :meth:`ColumnarWriter.close`
returns.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional, Sequence

import pyarrow as pa
import pyarrow.parquet as pq

from contracts.errors import IngestError, SchemaArityError, ValueParseError
from contracts.schema import TableSchema
from contracts.storage_cast import cast_for_storage
from version import ENGINE_NAME, ENGINE_VERSION, SCHEMA_VERSION

logger = logging.getLogger(__name__)


class ParquetWriteError(IngestError):
    """Raised when Parquet writing fails."""


@dataclass(frozen=True)
class ParquetTuning:
    """
    Fixed writer properties. These are not tunable per call.
    """
    compression: str = "snappy"
    data_page_size: int = 1024 * 8
    row_group_size: int = 1024 * 1024 * 1024
    write_batch_size: int = 1024 * 1024
    use_dictionary: bool = True


DEFAULT_TUNING = ParquetTuning()


def _arrow_schema_with_metadata(schema: TableSchema) -> pa.Schema:
    return schema.to_arrow().with_metadata(
        {
            "engine_name": ENGINE_NAME,
            "engine_version": ENGINE_VERSION,
            "schema_version": str(SCHEMA_VERSION),
            "schema_name": schema.name,
        }
    )


@dataclass
class ColumnarWriterStats:
    batches: int = 0
    rows_written: int = 0
    failed_batches: int = 0


class ColumnarWriter:
    """
    Writes column batches for one schema into one Parquet file.

    Usage:
      with ColumnarWriter.open(schema, "/tmp/report.parquet") as writer:
          writer.write_batch(columns, row_count)
    """

    def __init__(
        self,
        schema: TableSchema,
        destination: str | os.PathLike[str],
        tuning: ParquetTuning = DEFAULT_TUNING,
    ) -> None:
        self._schema = schema
        self._destination = os.fspath(destination)
        self._tuning = tuning
        self._closed = False
        self.stats = ColumnarWriterStats()

        parent = os.path.dirname(self._destination)
        if parent:
            os.makedirs(parent, exist_ok=True)

        try:
            self._writer: Optional[pq.ParquetWriter] = pq.ParquetWriter(
                self._destination,
                _arrow_schema_with_metadata(schema),
                compression=tuning.compression,
                use_dictionary=tuning.use_dictionary,
                data_page_size=tuning.data_page_size,
                write_batch_size=tuning.write_batch_size,
                write_statistics=True,
            )
        except (OSError, pa.ArrowException) as exc:
            raise ParquetWriteError(f"Cannot open {self._destination}: {exc}") from exc

    @classmethod
    def open(
        cls,
        schema: TableSchema,
        destination: str | os.PathLike[str],
        tuning: ParquetTuning = DEFAULT_TUNING,
    ) -> "ColumnarWriter":
        return cls(schema, destination, tuning)

    @property
    def destination(self) -> str:
        return self._destination

    @property
    def schema(self) -> TableSchema:
        return self._schema

    def write_batch(self, columns: Sequence[Sequence[Optional[str]]], row_count: int) -> int:
        """
        Write ``row_count`` rows given as raw column batches in schema order.

        Every column is normalized before anything is written, so a parse error in
        any column leaves the file untouched. Returns the number of rows written.
        """
        if self._closed or self._writer is None:
            raise ParquetWriteError(f"Writer for {self._destination} is closed")

        try:
            table = cast_for_storage(columns, self._schema, row_count)
        except (SchemaArityError, ValueParseError):
            self.stats.failed_batches += 1
            raise

        try:
            self._writer.write_table(table, row_group_size=self._tuning.row_group_size)
        except (OSError, pa.ArrowException) as exc:
            self.stats.failed_batches += 1
            raise ParquetWriteError(f"Writing batch to {self._destination} failed: {exc}") from exc

        self.stats.batches += 1
        self.stats.rows_written += row_count
        logger.debug("parquet batch written: %s rows to %s", row_count, self._destination)
        return row_count

    def close(self) -> ColumnarWriterStats:
        """
        Finalize the file (writes the footer).
        """
        if self._closed:
            return self.stats
        self._closed = True
        writer, self._writer = self._writer, None
        if writer is not None:
            try:
                writer.close()
            except (OSError, pa.ArrowException) as exc:
                raise ParquetWriteError(f"Closing {self._destination} failed: {exc}") from exc
        logger.info(
            "parquet file closed: %s (%s rows, %s batches)",
            self._destination,
            self.stats.rows_written,
            self.stats.batches,
        )
        return self.stats

    def abort(self) -> None:
        """
        Close without keeping the file. The destination is removed.
        """
        if not self._closed:
            self._closed = True
            writer, self._writer = self._writer, None
            if writer is not None:
                try:
                    writer.close()
                except (OSError, pa.ArrowException):
                    logger.warning("error while closing aborted writer for %s", self._destination)
        if os.path.exists(self._destination):
            os.remove(self._destination)
        logger.info("parquet file discarded: %s", self._destination)

    def __enter__(self) -> "ColumnarWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
        else:
            self.abort()


def write_parquet_file(
    schema: TableSchema,
    destination: str | os.PathLike[str],
    columns: Sequence[Sequence[Optional[str]]],
    row_count: int,
    tuning: ParquetTuning = DEFAULT_TUNING,
) -> ColumnarWriterStats:
    """Open, write one batch and close. A failed batch leaves no file behind."""
    with ColumnarWriter.open(schema, destination, tuning) as writer:
        writer.write_batch(columns, row_count)
    return writer.stats
