"""Snowflake ID / 커서 쿼리 유틸 테스트."""

from __future__ import annotations

import pytest

from search_stream.utils.query import build_backfill_query, build_live_query
from search_stream.utils.snowflake import (
    SENTINEL_TIMESTAMP,
    compare_snowflake_ids,
    decrement_snowflake_id,
    is_snowflake_id,
    is_valid_timestamp,
    max_snowflake_id,
    min_snowflake_id,
    parse_snowflake_id,
    parse_timestamp,
    snowflake_to_timestamp,
)


class TestDecrement:
    def test_simple(self):
        assert decrement_snowflake_id("1000") == "999"

    def test_floors_at_zero(self):
        assert decrement_snowflake_id("0") == "0"
        assert decrement_snowflake_id("1") == "0"

    def test_large_id_keeps_precision(self):
        """float로 변환하면 깨지는 크기의 ID도 정확히 1 감소"""
        assert decrement_snowflake_id("1800000000000000000") == "1799999999999999999"
        assert decrement_snowflake_id("1234567890123456789") == "1234567890123456788"

    def test_invalid_returned_unchanged(self):
        assert decrement_snowflake_id("abc") == "abc"
        assert decrement_snowflake_id("") == ""


class TestIdHelpers:
    def test_is_snowflake_id(self):
        assert is_snowflake_id("123")
        assert not is_snowflake_id("-1")
        assert not is_snowflake_id("1e5")
        assert not is_snowflake_id(123)
        assert not is_snowflake_id(str(1 << 64))

    def test_non_ascii_digits_rejected(self):
        """isdigit()는 참이지만 int()로 읽을 수 없거나 10진 ASCII가 아닌 값"""
        assert not is_snowflake_id("²")
        assert not is_snowflake_id("١٢٣")
        with pytest.raises(ValueError):
            parse_snowflake_id("١٢٣")
        assert decrement_snowflake_id("²") == "²"

    def test_parse_rejects_invalid(self):
        with pytest.raises(ValueError):
            parse_snowflake_id("not-an-id")

    def test_compare_is_numeric_not_lexicographic(self):
        assert compare_snowflake_ids("999", "1000") == -1
        assert compare_snowflake_ids("1000", "999") == 1
        assert compare_snowflake_ids("42", "42") == 0

    def test_min_max_skip_none(self):
        assert max_snowflake_id([None, "99", "100", None]) == "100"
        assert min_snowflake_id(["99", None, "100"]) == "99"
        assert max_snowflake_id([None]) is None


class TestTimestamps:
    def test_timestamp_from_id(self):
        """상위 비트(>> 22) + Twitter epoch"""
        assert snowflake_to_timestamp("0") == "2010-11-04T01:42:54.657Z"
        assert snowflake_to_timestamp(str(1000 << 22)) == "2010-11-04T01:42:55.657Z"

    def test_sentinel_and_garbage_invalid(self):
        assert not is_valid_timestamp(SENTINEL_TIMESTAMP)
        assert not is_valid_timestamp("")
        assert not is_valid_timestamp(None)
        assert not is_valid_timestamp("yesterday")
        assert not is_valid_timestamp("2001-01-01T00:00:00Z")

    def test_valid_timestamp(self):
        assert is_valid_timestamp("2024-05-01T12:00:00Z")
        assert is_valid_timestamp("2024-05-01T12:00:00.123+00:00")

    def test_parse_naive_as_utc(self):
        parsed = parse_timestamp("2024-05-01T12:00:00")
        assert parsed is not None
        assert parsed.utcoffset().total_seconds() == 0


class TestCursorQueries:
    def test_backfill_query_is_exclusive(self):
        assert build_backfill_query("bitcoin", "1000") == "bitcoin max_id:999"

    def test_backfill_without_cursor(self):
        assert build_backfill_query("bitcoin") == "bitcoin"

    def test_live_query(self):
        assert build_live_query("bitcoin", "1000") == "bitcoin since_id:1000"
        assert build_live_query("bitcoin", None) == "bitcoin"
