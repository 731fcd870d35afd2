"""Unit tests for configuration documents and report rows."""

from __future__ import annotations

import io
import json

import pytest

from contracts.report_types import (
    AdwordsConfiguration,
    ValidationError,
    parse_adwords_configuration,
    parse_report_config,
)
from contracts.schema import ColumnType

_REPORT_CONFIG = {
    "report_name": "campaign_performance",
    "report_type": "CAMPAIGN_PERFORMANCE_REPORT",
    "raw_prefix": "raw/campaigns/",
    "parquet_prefix": "parquet/campaigns/",
    "delimiter": "\t",
    "message_type": "message campaigns { REQUIRED BYTE_ARRAY id (UTF8); REQUIRED INT64 clicks; }",
    "table_name": "campaign_reports",
    "columns": ["Campaign ID", "Clicks"],
    "unknown_key": "ignored",
}


def test_parse_report_config_from_stream() -> None:
    cfg = parse_report_config(io.BytesIO(json.dumps(_REPORT_CONFIG).encode("utf-8")))

    assert cfg.report_name == "campaign_performance"
    assert cfg.delimiter == "\t"
    assert cfg.key_field == "id"
    schema = cfg.table_schema()
    assert schema.name == "campaigns"
    assert [c.column_type for c in schema] == [ColumnType.TEXT, ColumnType.INT64]


@pytest.mark.parametrize(
    "override",
    [
        {"message_type": "not a schema"},
        {"delimiter": "::"},
        {"report_name": None},
    ],
)
def test_invalid_report_config_raises(override) -> None:
    with pytest.raises(ValidationError):
        parse_report_config(json.dumps({**_REPORT_CONFIG, **override}))


def test_parse_adwords_configuration() -> None:
    cfg = parse_adwords_configuration('{"account_id": 1234567890, "is_af": true, "website": "https://a.example"}')

    assert isinstance(cfg, AdwordsConfiguration)
    assert cfg.account_id == "1234567890"
    assert cfg.is_af is True
    assert cfg.reports == []


def test_adwords_configuration_requires_account_id() -> None:
    with pytest.raises(ValidationError):
        parse_adwords_configuration('{"account_id": "  "}')
