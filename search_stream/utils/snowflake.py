"""Snowflake ID 유틸리티

64비트 정렬 가능 ID(상위 비트에 생성 시각 포함)에 대한 비교/감소/시각 변환.
ID는 항상 10진수 문자열로 주고받으며 부동소수점으로 변환하지 않습니다.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

TWITTER_EPOCH_MS = 1288834974657
TIMESTAMP_SHIFT = 22
MAX_SNOWFLAKE = (1 << 64) - 1

# 프로바이더가 시각을 모를 때 내려주는 값
SENTINEL_TIMESTAMP = "0001-01-01T00:00:00Z"
_UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
# 이보다 이른 시각은 Snowflake 체계에서 나올 수 없음
EARLIEST_VALID_TIMESTAMP = datetime(2010, 11, 4, tzinfo=timezone.utc)


def is_snowflake_id(value: object) -> bool:
    """ASCII 10진수 64비트 부호 없는 정수 문자열인가?"""
    if not isinstance(value, str) or not (value.isascii() and value.isdigit()):
        return False
    return int(value) <= MAX_SNOWFLAKE


def parse_snowflake_id(value: str) -> int:
    """ID 문자열을 정수로 변환

    Raises:
        ValueError: 10진수 64비트 범위를 벗어난 경우
    """
    if not is_snowflake_id(value):
        raise ValueError(f"Invalid snowflake id: {value!r}")
    return int(value)


def decrement_snowflake_id(value: str) -> str:
    """ID를 1 감소 (0에서 멈춤)

    max_id 커서는 포함(inclusive) 경계이므로 마지막으로 본 ID보다 1 작은 값을 넘겨
    배타적 상한으로 사용합니다. 파싱할 수 없는 값은 그대로 반환합니다.
    """
    if not is_snowflake_id(value):
        return value
    snowflake = int(value)
    return value if snowflake <= 0 else str(snowflake - 1)


def compare_snowflake_ids(a: str, b: str) -> int:
    """a < b 이면 -1, 같으면 0, a > b 이면 1"""
    left, right = parse_snowflake_id(a), parse_snowflake_id(b)
    return (left > right) - (left < right)


def max_snowflake_id(ids: Iterable[Optional[str]]) -> Optional[str]:
    """None을 제외한 최대 ID (없으면 None)"""
    values = [i for i in ids if i is not None]
    if not values:
        return None
    return max(values, key=parse_snowflake_id)


def min_snowflake_id(ids: Iterable[Optional[str]]) -> Optional[str]:
    """None을 제외한 최소 ID (없으면 None)"""
    values = [i for i in ids if i is not None]
    if not values:
        return None
    return min(values, key=parse_snowflake_id)


def snowflake_to_datetime(value: str) -> datetime:
    """ID 상위 비트에서 생성 시각 추출 (UTC)"""
    millis = (parse_snowflake_id(value) >> TIMESTAMP_SHIFT) + TWITTER_EPOCH_MS
    return _UNIX_EPOCH + timedelta(milliseconds=millis)


def format_timestamp(dt: datetime) -> str:
    """밀리초 정밀도 ISO-8601 UTC 문자열 (예: 2024-01-01T00:00:00.000Z)"""
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def snowflake_to_timestamp(value: str) -> str:
    return format_timestamp(snowflake_to_datetime(value))


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """ISO-8601 문자열 파싱 ('Z' 접미사 허용). 실패 시 None."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_valid_timestamp(value: Optional[str]) -> bool:
    """프로바이더 시각을 그대로 써도 되는가?

    - 비어 있거나 센티널 값이면 False
    - 파싱 불가면 False
    - Snowflake epoch 이전이면 False
    """
    if not value or value == SENTINEL_TIMESTAMP:
        return False
    parsed = parse_timestamp(value)
    if parsed is None:
        return False
    return parsed >= EARLIEST_VALID_TIMESTAMP
