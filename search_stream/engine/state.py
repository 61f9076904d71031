"""Stream State - Continuation token & phase transitions

StreamState는 호출자가 저장하는 체크포인트입니다. phase로 구분되는 태그드 유니온이며
각 변형은 해당 단계에서 의미 있는 필드만 가집니다.

    initial ──(가득 찬 페이지)──▶ backfill ──(짧은 페이지 / 예산 소진 / 컷오프)──▶ live
       └──────────(빈/짧은 페이지)──────────────────────────────────────────────▶ live

ID는 항상 10진수 문자열로 직렬화되므로 JSON 왕복 시 정밀도 손실이 없습니다.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from search_stream.core.exceptions import InvalidStateException
from search_stream.utils.query import build_backfill_query, build_live_query
from search_stream.utils.snowflake import is_snowflake_id, max_snowflake_id, min_snowflake_id


class _StateBase(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    # 0 = 즉시 재호출, >0 = 대기 후 재호출, None = 스트림 종료
    next_poll_ms: Optional[int] = Field(0, ge=0)


def _check_id(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if not is_snowflake_id(value):
        raise ValueError(f"invalid id {value!r}: expected a decimal 64-bit integer string")
    return value


class InitialState(_StateBase):
    """아직 아무것도 가져오지 않은 상태"""

    phase: Literal["initial"] = "initial"


class BackfillState(_StateBase):
    """과거 방향으로 페이지를 넘기는 중"""

    phase: Literal["backfill"] = "backfill"
    oldest_seen_id: str
    most_recent_id: Optional[str] = None
    total_processed: int = Field(0, ge=0)
    backfill_done: Literal[False] = False

    @field_validator("oldest_seen_id", "most_recent_id")
    @classmethod
    def validate_ids(cls, v: Optional[str]) -> Optional[str]:
        return _check_id(v)


class LiveState(_StateBase):
    """워터마크 이후의 새 콘텐츠를 추적하는 중"""

    phase: Literal["live"] = "live"
    most_recent_id: Optional[str] = None
    total_processed: int = Field(0, ge=0)
    backfill_done: bool = True

    @field_validator("most_recent_id")
    @classmethod
    def validate_ids(cls, v: Optional[str]) -> Optional[str]:
        return _check_id(v)


StreamState = Annotated[
    Union[InitialState, BackfillState, LiveState],
    Field(discriminator="phase"),
]

_STATE_ADAPTER: TypeAdapter = TypeAdapter(StreamState)


# ============================================================================
# 직렬화
# ============================================================================

def load_state(data: Union[None, str, bytes, Mapping[str, Any], BaseModel]) -> Optional[StreamState]:
    """저장된 상태 복원

    Args:
        data: None, JSON 문자열/바이트, dict, 또는 이미 복원된 상태

    Returns:
        StreamState 또는 None (이전 상태 없음)

    Raises:
        InvalidStateException: phase가 없거나 필드가 유효하지 않은 경우
    """
    if data is None:
        return None
    if isinstance(data, (InitialState, BackfillState, LiveState)):
        return data
    try:
        if isinstance(data, (str, bytes)):
            return _STATE_ADAPTER.validate_json(data)
        return _STATE_ADAPTER.validate_python(dict(data))
    except (ValidationError, TypeError, ValueError) as e:
        raise InvalidStateException(str(e).splitlines()[0]) from e


def dump_state(state: StreamState) -> dict[str, Any]:
    """JSON 호환 dict (camelCase 키, ID는 문자열)"""
    return state.model_dump(mode="json", by_alias=True)


def dump_state_json(state: StreamState) -> str:
    return json.dumps(dump_state(state), separators=(",", ":"))


# ============================================================================
# 쿼리 구성
# ============================================================================

def query_for_state(base_query: str, state: Optional[StreamState]) -> str:
    """현재 단계에 맞는 커서 쿼리

    - initial: 커서 없음
    - backfill: max_id:(oldest_seen_id - 1)  (배타적 상한)
    - live: since_id:most_recent_id  (배타적 하한)
    """
    if state is None or isinstance(state, InitialState):
        return base_query
    if isinstance(state, BackfillState):
        return build_backfill_query(base_query, state.oldest_seen_id)
    return build_live_query(base_query, state.most_recent_id)


# ============================================================================
# 전이
# ============================================================================

def remaining_budget(max_results: Optional[int], total_processed: int) -> Optional[int]:
    """max_results 예산에서 남은 건수 (예산 없으면 None)"""
    if max_results is None:
        return None
    return max(0, max_results - total_processed)


def enter_live(
    most_recent_id: Optional[str],
    total_processed: int,
    live_poll_ms: int,
    enable_live: bool = True,
) -> LiveState:
    return LiveState(
        most_recent_id=most_recent_id,
        total_processed=total_processed,
        backfill_done=True,
        next_poll_ms=live_poll_ms if enable_live else None,
    )


def advance_backfill(
    previous: Optional[Union[InitialState, BackfillState]],
    *,
    fetched_count: int,
    emitted_ids: Sequence[str],
    page_size: int,
    max_results: Optional[int],
    live_poll_ms: int,
    enable_live: bool = True,
    cutoff_reached: bool = False,
) -> StreamState:
    """initial/backfill 턴 이후 상태

    Args:
        previous: 이전 상태 (None이면 initial)
        fetched_count: 프로바이더가 돌려준 원본 건수 (N)
        emitted_ids: 예산/필터 적용 후 실제로 내보낸 항목 ID
        page_size: 요청한 페이지 크기
        max_results: 백필 총 건수 예산
        cutoff_reached: 나이/ID 하한에 도달해 더 이전으로 갈 필요가 없는지

    다음 조건 중 하나면 live로 전이합니다 (backfill_done=True):
    - N < page_size (더 이상 과거 데이터 없음)
    - 누적 건수가 max_results 이상
    - 컷오프 도달, 또는 진전 없음 (내보낸 항목 0건)
    """
    if isinstance(previous, BackfillState):
        prev_total = previous.total_processed
        prev_oldest: Optional[str] = previous.oldest_seen_id
        prev_recent = previous.most_recent_id
    else:
        prev_total, prev_oldest, prev_recent = 0, None, None

    total = prev_total + len(emitted_ids)
    most_recent = max_snowflake_id([prev_recent, *emitted_ids])
    oldest = min_snowflake_id([prev_oldest, *emitted_ids])

    page_full = fetched_count > 0 and fetched_count >= page_size
    exhausted = max_results is not None and total >= max_results

    if page_full and emitted_ids and not exhausted and not cutoff_reached and oldest is not None:
        return BackfillState(
            oldest_seen_id=oldest,
            most_recent_id=most_recent,
            total_processed=total,
            next_poll_ms=0,
        )

    return enter_live(most_recent, total, live_poll_ms, enable_live)


def advance_live(
    previous: LiveState,
    *,
    emitted_ids: Sequence[str],
    live_poll_ms: int,
    enable_live: bool = True,
) -> LiveState:
    """live 턴 이후 상태. 새 항목이 없으면 워터마크와 누적 건수는 그대로."""
    next_poll_ms = live_poll_ms if enable_live else None
    if not emitted_ids:
        return previous.model_copy(update={"next_poll_ms": next_poll_ms})

    return LiveState(
        most_recent_id=max_snowflake_id([previous.most_recent_id, *emitted_ids]),
        total_processed=previous.total_processed + len(emitted_ids),
        backfill_done=previous.backfill_done,
        next_poll_ms=next_poll_ms,
    )
