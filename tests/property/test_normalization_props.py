"""Property-based tests for value normalization and record encoding."""

from __future__ import annotations

import pytest

pytest.importorskip("hypothesis")
from hypothesis import given, settings  # type: ignore  # noqa: E402
from hypothesis import strategies as st

from contracts.normalization import normalize
from contracts.schema import ColumnType
from pipeline.record_encoder import encode, stringify

_INT32 = st.integers(min_value=-(2**31), max_value=2**31 - 1)
_INT64 = st.integers(min_value=-(2**63), max_value=2**63 - 1)
_ATTR_NAME = st.from_regex(r"[a-z_][a-z0-9_]{0,15}", fullmatch=True)
_SCALAR = st.one_of(
    st.text(max_size=20),
    st.integers(),
    st.floats(allow_nan=False, allow_infinity=False),
    st.booleans(),
    st.none(),
)


@settings(max_examples=200, deadline=None, database=None)
@given(value=_INT32)
def test_int32_text_round_trip(value: int) -> None:
    """Decimal text of any int32 normalizes back to the same integer."""
    assert normalize(str(value), ColumnType.INT32) == value


@settings(max_examples=200, deadline=None, database=None)
@given(value=_INT64)
def test_int64_text_round_trip(value: int) -> None:
    assert normalize(str(value), ColumnType.INT64) == value


@settings(max_examples=200, deadline=None, database=None)
@given(text=st.text(max_size=40))
def test_text_is_identity(text: str) -> None:
    assert normalize(text, ColumnType.TEXT) == text


@settings(max_examples=200, deadline=None, database=None)
@given(value=_SCALAR)
def test_stringify_is_idempotent(value: object) -> None:
    """Stringifying the stored text again never changes it."""
    once = stringify(value)
    assert stringify(once) == once
    assert '"' not in once


@settings(max_examples=100, deadline=None, database=None)
@given(record=st.dictionaries(keys=_ATTR_NAME, values=_SCALAR, min_size=1, max_size=8))
def test_encode_is_stable_under_re_encoding(record: dict[str, object]) -> None:
    item = encode(record)
    flattened = {k: v["S"] for k, v in item.items()}
    assert encode(flattened) == item
    assert list(item) == list(record)
