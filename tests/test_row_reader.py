"""Unit tests for the delimited report reader."""

from __future__ import annotations

import io

import pytest

from pipeline.row_reader import open_gzip_rows, push_raw_values, read_rows
from tests.aws_mocks import gzip_text


def test_read_rows_text_stream() -> None:
    stream = io.StringIO("campaign,clicks,ctr\nBrand,500,< 10%\nGeneric, --,12%\n")

    rows = list(read_rows(stream))

    assert rows == [
        {"campaign": "Brand", "clicks": "500", "ctr": "< 10%"},
        {"campaign": "Generic", "clicks": " --", "ctr": "12%"},
    ]


def test_short_rows_leave_values_absent() -> None:
    rows = list(read_rows(io.StringIO("a,b,c\n1\n\n2,3\n")))
    assert rows == [{"a": "1", "b": None, "c": None}, {"a": "2", "b": "3", "c": None}]


def test_tab_delimited_bytes_with_normalized_headers() -> None:
    stream = io.BytesIO("Campaign ID\tAvg. CPC ($)\n12\t0.40\n".encode("utf-8"))

    rows = list(read_rows(stream, "\t", normalize_headers=True))

    assert rows == [{"campaign_id": "12", "avg_cpc": "0.40"}]


def test_empty_stream_yields_nothing() -> None:
    assert list(read_rows(io.StringIO(""))) == []


def test_delimiter_must_be_single_character() -> None:
    with pytest.raises(ValueError):
        list(read_rows(io.StringIO("a\n"), "::"))


def test_gzip_rows_normalize_headers_by_default() -> None:
    body = io.BytesIO(gzip_text("Campaign,Clicks\nBrand,5\n"))
    assert list(open_gzip_rows(body)) == [{"campaign": "Brand", "clicks": "5"}]


def test_push_raw_values_orders_and_fills() -> None:
    row = {"b": "2", "a": None}
    assert push_raw_values(row, ["a", "b", "c"]) == ["", "2", ""]
