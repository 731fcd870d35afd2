"""Structured records persisted to the key-value store.

Two configuration documents are read from JSON (report configuration and
account configuration) and report rows are persisted alongside the Parquet
artifact. Each record type declares the attributes it is stored with, in
order, so the encoder never has to discover fields at runtime.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import IO, Any, ClassVar, Dict, List, Mapping, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from contracts.errors import EncodingError
from contracts.normalization import TypedValue
from contracts.schema import TableSchema, parse_message_type


class ReportConfig(BaseModel):
    """Campaign/report configuration document."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    attribute_fields: ClassVar[Tuple[str, ...]] = (
        "report_name",
        "report_type",
        "raw_prefix",
        "parquet_prefix",
        "delimiter",
        "table_name",
        "key_field",
        "columns",
    )

    report_name: str
    report_type: str = ""
    raw_prefix: str = ""
    parquet_prefix: str = ""
    delimiter: str = Field(default=",", min_length=1, max_length=1)
    message_type: str
    table_name: str = ""
    key_field: str = "id"
    columns: List[str] = Field(default_factory=list)

    @field_validator("message_type")
    @classmethod
    def _check_message_type(cls, value: str) -> str:
        # SchemaParseError is a ValueError, pydantic reports it as a validation error
        parse_message_type(value)
        return value

    def table_schema(self) -> TableSchema:
        return parse_message_type(self.message_type)


class AdwordsConfiguration(BaseModel):
    """Per-account configuration document."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    attribute_fields: ClassVar[Tuple[str, ...]] = (
        "account_id",
        "account_name",
        "is_af",
        "website",
        "currency",
        "time_zone",
        "reports",
    )

    account_id: str
    account_name: str = ""
    is_af: bool = False
    website: str = ""
    currency: str = ""
    time_zone: str = ""
    reports: List[str] = Field(default_factory=list)

    @field_validator("account_id", mode="before")
    @classmethod
    def _account_id_text(cls, value: object) -> str:
        text = str(value if value is not None else "").strip()
        if not text:
            raise ValueError("account_id must be non-empty")
        return text


@dataclass(frozen=True)
class ReportRow:
    """One normalized report row addressed by ``key_field``."""

    schema: TableSchema
    key_field: str
    values: Mapping[str, TypedValue] = field(default_factory=dict)

    def to_attributes(self) -> Dict[str, Any]:
        """Key attribute first, then schema columns in schema order."""
        if self.values.get(self.key_field) in (None, ""):
            raise EncodingError(f"report row has no value for key field {self.key_field!r}")
        out: Dict[str, Any] = {self.key_field: self.values[self.key_field]}
        for name in self.schema.names:
            if name != self.key_field:
                out[name] = self.values.get(name)
        return out


_Source = Union[IO[str], IO[bytes], str, bytes]


def _load_json(source: _Source) -> Any:
    if isinstance(source, (str, bytes)):
        return json.loads(source)
    return json.load(source)


def parse_report_config(source: _Source) -> ReportConfig:
    """Parse a report configuration JSON document (stream or text)."""
    return ReportConfig.model_validate(_load_json(source))


def parse_adwords_configuration(source: _Source) -> AdwordsConfiguration:
    """Parse an account configuration JSON document (stream or text)."""
    return AdwordsConfiguration.model_validate(_load_json(source))


__all__ = [
    "AdwordsConfiguration",
    "ReportConfig",
    "ReportRow",
    "ValidationError",
    "parse_adwords_configuration",
    "parse_report_config",
]
