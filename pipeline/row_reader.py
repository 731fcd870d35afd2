"""Delimited report reader.

Rows are yielded as ``{column name: raw text}`` dicts. A short row leaves its
trailing columns absent (``None``); normalization decides what absence means
for each declared type.
"""

from __future__ import annotations

import csv
import gzip
import io
from typing import IO, Dict, Iterator, List, Mapping, Optional, Sequence, Union

from contracts.normalization import normalize_name

Row = Dict[str, Optional[str]]


def _as_text(stream: Union[IO[str], IO[bytes]], encoding: str) -> IO[str]:
    if isinstance(stream, io.TextIOBase):
        return stream
    return io.TextIOWrapper(stream, encoding=encoding, newline="")  # type: ignore[arg-type]


def read_rows(
    stream: Union[IO[str], IO[bytes]],
    delimiter: str = ",",
    *,
    normalize_headers: bool = False,
    encoding: str = "utf-8",
) -> Iterator[Row]:
    """Yield rows from an already-open delimited stream (header row first)."""
    if len(delimiter) != 1:
        raise ValueError(f"delimiter must be a single character, got {delimiter!r}")

    reader = csv.reader(_as_text(stream, encoding), delimiter=delimiter)
    try:
        header = next(reader)
    except StopIteration:
        return
    names = [normalize_name(h) if normalize_headers else h for h in header]

    for values in reader:
        if not values:
            continue
        row: Row = {}
        for idx, name in enumerate(names):
            row[name] = values[idx] if idx < len(values) else None
        yield row


def open_gzip_rows(
    binary_stream: IO[bytes],
    delimiter: str = ",",
    *,
    normalize_headers: bool = True,
    encoding: str = "utf-8",
) -> Iterator[Row]:
    """Decompress a gzip byte stream and yield its rows."""
    decompressed = gzip.GzipFile(fileobj=binary_stream, mode="rb")
    return read_rows(decompressed, delimiter, normalize_headers=normalize_headers, encoding=encoding)


def push_raw_values(row: Mapping[str, Optional[str]], fields: Sequence[str]) -> List[str]:
    """Pick ``fields`` from ``row`` in order; absent values become ``""``."""
    return [row.get(f) or "" for f in fields]
