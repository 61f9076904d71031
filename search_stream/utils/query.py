"""Cursor query builders

검색어에 `max_id:` / `since_id:` 커서를 주입합니다.
"""

from __future__ import annotations

from typing import Optional

from .snowflake import decrement_snowflake_id


def build_backfill_query(base_query: str, max_id: Optional[str] = None) -> str:
    """과거 방향 페이지 쿼리

    max_id는 마지막으로 본 가장 오래된 ID. 1을 빼서 넘기므로 결과는
    그보다 엄격히 오래된 항목만 포함합니다.
    """
    if not max_id:
        return base_query
    return f"{base_query} max_id:{decrement_snowflake_id(max_id)}"


def build_live_query(base_query: str, since_id: Optional[str] = None) -> str:
    """신규 방향 쿼리 (since_id는 배타적 하한)"""
    if not since_id:
        return base_query
    return f"{base_query} since_id:{since_id}"
