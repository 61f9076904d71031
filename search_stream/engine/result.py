"""Turn Result - Standardized Turn Output

한 턴의 결과: 이번에 내보낼 항목과 호출자가 저장할 다음 상태.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from search_stream.schemas.source_schema import SourceItem

from .state import BackfillState, InitialState, LiveState, dump_state


class TurnKind(str, Enum):
    """턴 종류

    어떤 경로로 항목을 가져왔는지 나타냅니다 (로깅/리포트용).
    """

    INITIAL = "initial"  # 첫 페이지
    BACKFILL = "backfill"  # 과거 방향 페이지
    LIVE = "live"  # since_id 기반 추적
    GAP_FILL = "gap_fill"  # 재개 시 누락 구간 복구
    IDLE = "idle"  # 프로바이더 호출 없음 (라이브 비활성 종료 상태)


@dataclass
class TurnResult:
    """턴 결과 표준 포맷

    Attributes:
        items: 이번 턴에 내보낼 항목 (오래된 것부터)
        next_state: 다음 턴에 넘길 상태
        kind: 턴 종류
        elapsed_ms: 소요 시간 (밀리초)
        budget_report: 예산 사용 리포트
    """

    items: List[SourceItem]
    next_state: InitialState | BackfillState | LiveState
    kind: TurnKind = TurnKind.INITIAL
    elapsed_ms: Optional[float] = None
    budget_report: Optional[dict] = field(default=None, repr=False)

    @property
    def done(self) -> bool:
        """스트림 종료 여부 (다음 폴링 없음)"""
        return self.next_state.next_poll_ms is None

    @property
    def next_poll_ms(self) -> Optional[int]:
        return self.next_state.next_poll_ms

    def to_dict(self) -> dict[str, Any]:
        """JSON 응답 형태 ({items, nextState})"""
        return {
            "items": [item.model_dump(mode="json", by_alias=True) for item in self.items],
            "nextState": dump_state(self.next_state),
        }
