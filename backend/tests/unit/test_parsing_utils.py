"""Tests for integrations.parsing_utils."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from integrations.parsing_utils import (
    ensure_utc,
    parse_decimal,
    parse_epoch_millis,
    to_epoch_millis,
    to_naive_utc,
)


class TestParseEpochMillis:
    def test_int_and_string(self):
        expected = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
        assert parse_epoch_millis(1700000000000) == expected
        assert parse_epoch_millis("1700000000000") == expected

    @pytest.mark.parametrize("value", [None, "", "abc"])
    def test_unparseable(self, value):
        assert parse_epoch_millis(value) is None

    def test_round_trip_naive_is_utc(self):
        assert to_epoch_millis(datetime(2023, 11, 14, 22, 13, 20)) == 1700000000000


class TestParseDecimal:
    def test_string(self):
        assert parse_decimal("0.00012345") == Decimal("0.00012345")

    def test_float_keeps_short_repr(self):
        assert parse_decimal(0.1) == Decimal("0.1")

    @pytest.mark.parametrize("value", [None, "", "n/a", "NaN", "Infinity"])
    def test_default(self, value):
        assert parse_decimal(value, Decimal("0")) == Decimal("0")
        assert parse_decimal(value) is None


class TestUtcHelpers:
    def test_ensure_utc_converts_offset(self):
        aware = datetime(2024, 1, 1, 5, tzinfo=timezone(timedelta(hours=5)))
        assert ensure_utc(aware) == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert ensure_utc(aware).tzinfo == timezone.utc

    def test_to_naive_utc(self):
        aware = datetime(2024, 1, 1, 5, tzinfo=timezone(timedelta(hours=5)))
        assert to_naive_utc(aware) == datetime(2024, 1, 1)
        assert to_naive_utc(datetime(2024, 1, 1)) == datetime(2024, 1, 1)
        assert to_naive_utc(None) is None
