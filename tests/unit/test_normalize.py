"""
Unit tests for column value normalization.
"""

from datetime import UTC, date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from storemigrate.documents import EPOCH, OpaqueDocument
from storemigrate.transformers.normalize import (
    as_bool,
    as_datetime,
    as_float,
    as_id_list,
    as_int,
    as_opaque,
    as_str,
    first_non_empty,
)


class TestScalars:
    """Tests for the scalar coercions."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(None, 0), ("", 0), ("12", 12), (" 7 ", 7), (Decimal("3.0"), 3), ("abc", 0), (True, 1)],
    )
    def test_as_int(self, value, expected: int) -> None:
        """NULL, empty and malformed values fall back to the default."""
        assert as_int(value) == expected

    def test_as_int_custom_default(self) -> None:
        assert as_int(None, default=1) == 1

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(None, 0.0), ("", 0.0), ("120.5000", 120.5), (Decimal("9.99"), 9.99), ("n/a", 0.0)],
    )
    def test_as_float(self, value, expected: float) -> None:
        """DECIMAL columns become floats."""
        assert as_float(value) == expected

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(1, True), ("1", True), (b"1", True), (True, True), (0, False), (None, False), (2, False)],
    )
    def test_as_bool(self, value, expected: bool) -> None:
        """Only the value 1 is true."""
        assert as_bool(value) is expected

    def test_as_str(self) -> None:
        """Bytes are decoded and NULL becomes the default."""
        assert as_str(None) == ""
        assert as_str(b"caf\xc3\xa9") == "café"
        assert as_str(42) == "42"
        assert as_str("", default="n/a") == "n/a"

    def test_first_non_empty(self) -> None:
        """The first non-empty value wins."""
        assert first_non_empty(None, "", "Size", "Colour") == "Size"
        assert first_non_empty(None, "", default="?") == "?"


class TestAsDatetime:
    """Tests for as_datetime."""

    @pytest.mark.parametrize("value", [None, "", "0000-00-00 00:00:00", "0000-00-00", "garbage"])
    def test_invalid_values_become_epoch(self, value) -> None:
        """Zero dates and unparseable values map to the epoch."""
        assert as_datetime(value) == EPOCH

    def test_string_is_parsed_as_utc(self) -> None:
        """Naive strings are taken to be UTC."""
        assert as_datetime("2024-01-05 10:00:00") == datetime(2024, 1, 5, 10, 0, tzinfo=UTC)

    def test_date_and_aware_datetime(self) -> None:
        """Dates become midnight UTC and aware values are kept."""
        aware = datetime(2024, 1, 5, 10, 0, tzinfo=timezone(timedelta(hours=2)))

        assert as_datetime(date(2024, 1, 5)) == datetime(2024, 1, 5, tzinfo=UTC)
        assert as_datetime(aware) is aware


class TestCollections:
    """Tests for list and opaque values."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(None, []), ("", []), ("3,5", [3, 5]), ("3,5,,x,0,9", [3, 5, 9]), (" 4 , 8 ", [4, 8])],
    )
    def test_as_id_list(self, value, expected: list[int]) -> None:
        """Comma separated ids become a list of positive ints."""
        assert as_id_list(value) == expected

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, {}),
            ("", {}),
            ('{"1": "x"}', {"1": "x"}),
            ("[1, 2]", [1, 2]),
            ("not json", "not json"),
            (b'{"a": 1}', {"a": 1}),
        ],
    )
    def test_as_opaque(self, value, expected) -> None:
        """JSON is decoded, anything else is carried verbatim."""
        opaque = as_opaque(value)

        assert isinstance(opaque, OpaqueDocument)
        assert opaque.root == expected
