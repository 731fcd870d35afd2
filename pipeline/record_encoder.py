"""Record -> DynamoDB item encoding.

Every attribute is stored as a string (``{"S": ...}``). Field enumeration is
explicit; a record is accepted when it is one of:

- an object with ``to_attributes()`` (schema-driven serializer)
- an object declaring ``attribute_fields`` (ordered attribute names)
- a plain mapping with string keys

Values are stringified: text is kept as-is, other values use their JSON text.
Double quotes are removed in both cases.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Tuple

from contracts.errors import EncodingError

AttributeValue = Dict[str, str]
EncodedRecord = Dict[str, AttributeValue]


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if hasattr(value, "model_dump"):
        return value.model_dump()
    raise TypeError(f"{type(value).__name__} is not serializable")


def stringify(value: Any) -> str:
    """Return the stored text for one attribute value."""
    if isinstance(value, str):
        text = value
    else:
        try:
            text = json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=_json_default)
        except (TypeError, ValueError) as exc:
            raise EncodingError(f"Cannot serialize {value!r}: {exc}") from exc
    return text.replace('"', "")


def _attribute_pairs(record: Any) -> Iterable[Tuple[Any, Any]]:
    to_attributes = getattr(record, "to_attributes", None)
    if callable(to_attributes):
        attrs = to_attributes()
        if not isinstance(attrs, Mapping):
            raise EncodingError(f"{type(record).__name__}.to_attributes() must return a mapping")
        return list(attrs.items())

    declared = getattr(record, "attribute_fields", None)
    if declared is not None and not isinstance(record, Mapping):
        pairs = []
        for name in declared:
            try:
                pairs.append((name, getattr(record, name)))
            except AttributeError as exc:
                raise EncodingError(
                    f"{type(record).__name__} declares attribute {name!r} but has no such field"
                ) from exc
        return pairs

    if isinstance(record, Mapping):
        return list(record.items())

    raise EncodingError(f"{type(record).__name__} has no declared attribute fields")


def encode(record: Any) -> EncodedRecord:
    """Encode one record into a string-typed attribute map."""
    item: EncodedRecord = {}
    for key, value in _attribute_pairs(record):
        if not isinstance(key, str) or not key:
            raise EncodingError(f"attribute names must be non-empty strings, got {key!r}")
        item[key.replace('"', "")] = {"S": stringify(value)}
    if not item:
        raise EncodingError(f"{type(record).__name__} has no attributes to store")
    return item


def to_write_request(record: Any) -> Dict[str, Any]:
    """Wrap an encoded record into a ``BatchWriteItem`` put request."""
    return {"PutRequest": {"Item": encode(record)}}


def decode(item: Mapping[str, Mapping[str, Any]]) -> Dict[str, str]:
    """Flatten a stored item back to ``{name: text}``. Non-string attributes are skipped."""
    out: Dict[str, str] = {}
    for key, attr in item.items():
        if isinstance(attr, Mapping) and "S" in attr:
            out[str(key)] = str(attr["S"])
    return out
