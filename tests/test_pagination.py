"""
tests/test_pagination.py — Cursor Contract Tests
=================================================
Covers cursor encoding, malformed-cursor rejection and limit clamping.
Listing behaviour itself is exercised in the thread/message service tests.
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from colloquy.engine import pagination
from colloquy.errors import ErrorCode, InvalidRequestError


class TestCursor:
    def test_round_trip(self):
        ts = datetime(2026, 3, 1, 12, 30, 15, 123456, tzinfo=UTC)
        cursor = pagination.encode_cursor(ts, 42)
        assert pagination.decode_cursor(cursor) == (ts, 42)

    def test_cursor_is_url_safe_without_padding(self):
        cursor = pagination.encode_cursor(datetime(2026, 1, 1, tzinfo=UTC), 1)
        assert "=" not in cursor
        assert "+" not in cursor and "/" not in cursor

    def test_naive_timestamp_treated_as_utc(self):
        cursor = pagination.encode_cursor(datetime(2026, 1, 1, 8, 0), 7)
        ts, row_id = pagination.decode_cursor(cursor)
        assert ts.tzinfo is not None
        assert ts == datetime(2026, 1, 1, 8, 0, tzinfo=UTC)
        assert row_id == 7

    @pytest.mark.parametrize("bad", ["not-a-cursor", "", "e30", "!!!!"])
    def test_malformed_cursor_rejected(self, bad):
        with pytest.raises(InvalidRequestError) as exc:
            pagination.decode_cursor(bad)
        assert exc.value.code == ErrorCode.E_INVALID_CURSOR


class TestLimits:
    def test_default_when_unset(self):
        assert pagination.clamp_limit(None, 50, 200) == 50

    def test_clamped_to_range(self):
        assert pagination.clamp_limit(0, 50, 200) == 1
        assert pagination.clamp_limit(-5, 50, 200) == 1
        assert pagination.clamp_limit(1_000, 50, 200) == 200
        assert pagination.clamp_limit(3, 50, 200) == 3


class TestOrder:
    def test_valid_orders(self):
        assert pagination.validate_order("asc") == "asc"
        assert pagination.validate_order("desc") == "desc"

    def test_invalid_order(self):
        with pytest.raises(InvalidRequestError) as exc:
            pagination.validate_order("sideways")
        assert exc.value.code == ErrorCode.E_INVALID_ORDER
