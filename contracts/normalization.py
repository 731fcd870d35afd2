"""Value normalization from report text to typed column values.

Report exports are loosely typed: numbers arrive as text, missing data is
written as ``" --"`` and bucketed percentages as ``"< 10%"`` / ``"> 90%"``.
The rules here are applied before any generic parse:

- numeric columns: missing, ``""`` and ``" --"`` -> zero of the type
- text columns: missing -> ``""``, anything else unchanged
- float columns with ``%``: the two bucket literals map to 0.05 / 0.95,
  other values are divided by 100

Anything else that does not parse is a :class:`ValueParseError`. Only the
sentinels above are coerced to zero.
"""

from __future__ import annotations

import re
from typing import List, Optional, Sequence, Union

from contracts.errors import ValueParseError
from contracts.schema import ColumnType

TypedValue = Union[str, int, float]

MISSING_SENTINEL = " --"
LOW_PERCENT_BUCKET = "< 10%"
HIGH_PERCENT_BUCKET = "> 90%"

_INT_RE = re.compile(r"^[+-]?\d+$")

_INT_BOUNDS = {
    ColumnType.INT32: (-(2**31), 2**31 - 1),
    ColumnType.INT64: (-(2**63), 2**63 - 1),
}

# Characters dropped from report headers before snake-casing.
_HEADER_STRIP_CHARS = ".)(%$+?/\\}{"


def _zero(column_type: ColumnType) -> TypedValue:
    if column_type is ColumnType.FLOAT:
        return 0.0
    return 0


def _parse_int(raw: str, column_type: ColumnType) -> int:
    text = raw.strip()
    if not _INT_RE.match(text):
        raise ValueParseError(raw, column_type)
    value = int(text)
    low, high = _INT_BOUNDS[column_type]
    if value < low or value > high:
        raise ValueParseError(raw, column_type)
    return value


def _parse_float(raw: str, text: str) -> float:
    cleaned = text.strip()
    if not cleaned or "_" in cleaned:
        raise ValueParseError(raw, ColumnType.FLOAT)
    try:
        return float(cleaned)
    except ValueError as exc:
        raise ValueParseError(raw, ColumnType.FLOAT) from exc


def normalize(raw: Optional[str], column_type: ColumnType) -> TypedValue:
    """Map one raw report field to a typed value for ``column_type``."""
    column_type = ColumnType(column_type)

    if column_type is ColumnType.TEXT:
        return "" if raw is None else raw

    if raw is None or raw == "" or raw == MISSING_SENTINEL:
        return _zero(column_type)

    if column_type is ColumnType.FLOAT:
        if "%" in raw:
            if raw == LOW_PERCENT_BUCKET:
                return 0.05
            if raw == HIGH_PERCENT_BUCKET:
                return 0.95
            return _parse_float(raw, raw.replace("%", "")) / 100.0
        return _parse_float(raw, raw)

    return _parse_int(raw, column_type)


def normalize_column(values: Sequence[Optional[str]], column_type: ColumnType) -> List[TypedValue]:
    """Normalize a whole column batch, tagging parse errors with the row index."""
    out: List[TypedValue] = []
    for idx, raw in enumerate(values):
        try:
            out.append(normalize(raw, column_type))
        except ValueParseError as exc:
            raise ValueParseError(exc.raw, exc.column_type, row_index=idx) from exc
    return out


def normalize_name(header: str) -> str:
    """Turn a report header (``"Avg. CPC ($)"``) into a column name (``"avg_cpc"``)."""
    text = str(header or "").lower()
    for ch in _HEADER_STRIP_CHARS:
        text = text.replace(ch, "")
    return re.sub(r"[^0-9a-z]+", "_", text).strip("_")
