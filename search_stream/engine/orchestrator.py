"""Stream Orchestrator - Main Engine Entry Point

한 번의 호출(턴)마다 다음 중 하나를 실행합니다:
1. initial: 커서 없이 첫 페이지
2. backfill: max_id 커서로 과거 방향 페이지
3. live: since_id 커서로 워터마크 이후 항목
4. gap fill: 재개된 live 턴에서 중단 기간 동안 누락된 구간 복구

각 턴은 입력 상태만으로 결정되며(호출 간 공유 상태 없음), 실패 시 입력 상태를
그대로 예외에 실어 호출자가 같은 턴을 재시도할 수 있게 합니다.
"""

from __future__ import annotations

import asyncio
import inspect
from datetime import datetime, timedelta, timezone
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from search_stream.core.exceptions import BudgetExceededException, SearchStreamException
from search_stream.core.logging import logger, sanitize_for_log
from search_stream.schemas.source_schema import ProviderResult, SearchInput, SourceItem
from search_stream.utils.conversion import (
    convert_result_to_source_item,
    sort_ascending,
    sort_newest_first,
)
from search_stream.utils.query import build_backfill_query, build_live_query
from search_stream.utils.snowflake import is_snowflake_id, parse_snowflake_id, parse_timestamp

from .budget import BudgetConfig, BudgetManager
from .job_workflow import JobWorkflow
from .result import TurnKind, TurnResult
from .state import (
    BackfillState,
    InitialState,
    LiveState,
    advance_backfill,
    advance_live,
    load_state,
    query_for_state,
    remaining_budget,
)

StateCallback = Callable[[Any, List[SourceItem]], Union[None, Awaitable[None]]]


def _id(item: SourceItem) -> int:
    return parse_snowflake_id(item.external_id)


class StreamOrchestrator:
    """스트리밍 수집 오케스트레이터

    initial → backfill → live 단계를 턴 단위로 진행합니다.
    인스턴스는 스트림별 상태를 갖지 않으므로 여러 스트림이 공유할 수 있습니다.

    Args:
        workflow: JobWorkflow (잡 제출/폴링/결과 조회)
        now: 현재 시각 함수 (max_backfill_age_ms 컷오프 계산용, 테스트에서 교체)
    """

    def __init__(
        self,
        workflow: JobWorkflow,
        now: Optional[Callable[[], datetime]] = None,
    ):
        if workflow is None:
            raise ValueError("workflow must not be None")
        self.workflow = workflow
        self._now = now or (lambda: datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    # 턴
    # ------------------------------------------------------------------

    async def turn(
        self,
        input: SearchInput,
        state: Union[None, InitialState, BackfillState, LiveState, Mapping[str, Any]] = None,
        *,
        resumed: bool = False,
    ) -> TurnResult:
        """한 턴 실행

        Args:
            input: 검색 요청
            state: 이전 턴의 next_state (없으면 처음부터)
            resumed: 중단 후 재개된 첫 턴인지. live 상태에서 True면 갭 탐지를 먼저 수행.

        Returns:
            TurnResult: 내보낼 항목(오래된 것부터)과 다음 상태

        Raises:
            SearchStreamException: 모든 하위 예외의 .state에는 입력 상태가 그대로 담김
                (BudgetExceededException, ProviderError, JobFailedException, ...)
        """
        # 남은 예산이 10% 이하면 갭 복구 페이지를 새로 시작하지 않음
        budget = BudgetManager(
            BudgetConfig(total_budget_ms=input.budget_ms, min_remaining_ms=input.budget_ms // 10)
        )
        budget.start()

        try:
            current = load_state(state)
            result = await asyncio.wait_for(
                self._run_turn(input, current, resumed, budget),
                timeout=budget.remaining_s(),
            )
        except asyncio.TimeoutError:
            elapsed = budget.elapsed_ms()
            logger.warning(
                f"[ORCHESTRATOR] Turn exceeded budget: query='{sanitize_for_log(input.query)}', "
                f"budget={input.budget_ms}ms, elapsed={elapsed:.0f}ms"
            )
            error = BudgetExceededException(input.budget_ms, elapsed)
            error.state = state
            raise error from None
        except SearchStreamException as e:
            logger.warning(
                f"[ORCHESTRATOR] Turn failed: query='{sanitize_for_log(input.query)}', "
                f"error={type(e).__name__}: {e}"
            )
            e.state = state
            raise

        result.elapsed_ms = budget.elapsed_ms()
        result.budget_report = budget.get_report()
        logger.info(
            f"[ORCHESTRATOR] Turn completed: kind={result.kind.value}, items={len(result.items)}, "
            f"phase={result.next_state.phase}, next_poll_ms={result.next_poll_ms}, "
            f"elapsed={result.elapsed_ms:.0f}ms"
        )
        return result

    async def _run_turn(
        self,
        input: SearchInput,
        state: Union[None, InitialState, BackfillState, LiveState],
        resumed: bool,
        budget: BudgetManager,
    ) -> TurnResult:
        if state is None or isinstance(state, InitialState):
            return await self._initial_turn(input)

        if isinstance(state, BackfillState):
            return await self._backfill_turn(input, state)

        if not input.enable_live:
            # 라이브 비활성: 종료 상태를 그대로 돌려줌 (프로바이더 호출 없음)
            return TurnResult(
                items=[],
                next_state=state.model_copy(update={"next_poll_ms": None}),
                kind=TurnKind.IDLE,
            )

        if resumed and state.most_recent_id is not None:
            return await self._gap_fill_turn(input, state, budget)

        return await self._live_turn(input, state)

    # ------------------------------------------------------------------
    # 단계별 처리
    # ------------------------------------------------------------------

    async def _initial_turn(self, input: SearchInput) -> TurnResult:
        fetched, items = await self._fetch(input, input.query, input.backfill_page_size)
        emitted, cutoff = self._apply_backfill_limits(input, items, total_processed=0)

        next_state = advance_backfill(
            None,
            fetched_count=fetched,
            emitted_ids=[item.external_id for item in emitted],
            page_size=input.backfill_page_size,
            max_results=input.max_results,
            live_poll_ms=input.live_poll_ms,
            enable_live=input.enable_live,
            cutoff_reached=cutoff,
        )
        return TurnResult(items=sort_ascending(emitted), next_state=next_state, kind=TurnKind.INITIAL)

    async def _backfill_turn(self, input: SearchInput, state: BackfillState) -> TurnResult:
        query = query_for_state(input.query, state)
        fetched, items = await self._fetch(input, query, input.backfill_page_size)
        emitted, cutoff = self._apply_backfill_limits(
            input,
            items,
            total_processed=state.total_processed,
            oldest_seen_id=state.oldest_seen_id,
        )

        next_state = advance_backfill(
            state,
            fetched_count=fetched,
            emitted_ids=[item.external_id for item in emitted],
            page_size=input.backfill_page_size,
            max_results=input.max_results,
            live_poll_ms=input.live_poll_ms,
            enable_live=input.enable_live,
            cutoff_reached=cutoff,
        )
        return TurnResult(items=sort_ascending(emitted), next_state=next_state, kind=TurnKind.BACKFILL)

    async def _live_turn(self, input: SearchInput, state: LiveState) -> TurnResult:
        query = query_for_state(input.query, state)
        _, items = await self._fetch(input, query, input.live_page_size)

        if state.most_recent_id is not None:
            watermark = parse_snowflake_id(state.most_recent_id)
            items = [item for item in items if _id(item) > watermark]

        items = sort_ascending(self._dedupe(items))
        next_state = advance_live(
            state,
            emitted_ids=[item.external_id for item in items],
            live_poll_ms=input.live_poll_ms,
            enable_live=input.enable_live,
        )
        return TurnResult(items=items, next_state=next_state, kind=TurnKind.LIVE)

    async def _gap_fill_turn(self, input: SearchInput, state: LiveState, budget: BudgetManager) -> TurnResult:
        """재개 시 누락 구간 복구

        1. since_id 프로브(1건)로 워터마크 이후 항목이 있는지 확인
        2. 있으면 커서 없이 최신부터 max_id로 내려가며 워터마크에 닿을 때까지 수집
        3. 수집한 항목을 오래된 것부터 내보내고 워터마크 갱신

        예산 여유가 min_remaining_ms 이하로 떨어지면 다음 페이지를 시작하지 않고
        BudgetExceededException을 던집니다 (입력 상태 유지).
        """
        watermark = parse_snowflake_id(state.most_recent_id)

        _, probe = await self._fetch(input, build_live_query(input.query, state.most_recent_id), 1)
        budget.checkpoint("gap_probe")

        if not any(_id(item) > watermark for item in probe):
            logger.debug(f"[ORCHESTRATOR] No gap after {state.most_recent_id}")
            next_state = advance_live(
                state,
                emitted_ids=[],
                live_poll_ms=input.live_poll_ms,
                enable_live=input.enable_live,
            )
            return TurnResult(items=[], next_state=next_state, kind=TurnKind.GAP_FILL)

        collected: Dict[str, SourceItem] = {}
        cursor: Optional[str] = None
        pages = 0

        while True:
            # 부분 수집으로는 워터마크를 올릴 수 없음: 입력 상태로 실패
            if budget.is_exhausted():
                raise BudgetExceededException(input.budget_ms, budget.elapsed_ms())
            _, page = await self._fetch(
                input, build_backfill_query(input.query, cursor), input.live_page_size
            )
            pages += 1
            if not page:
                break

            reached_watermark = False
            progressed = False
            for item in sort_newest_first(page):
                if _id(item) <= watermark:
                    reached_watermark = True
                    break
                if cursor is not None and _id(item) >= parse_snowflake_id(cursor):
                    continue
                collected[item.external_id] = item
                cursor = item.external_id
                progressed = True

            if reached_watermark or not progressed:
                break

        budget.checkpoint("gap_fill")
        items = sort_ascending(collected.values())
        logger.info(
            f"[ORCHESTRATOR] Gap filled: {len(items)} items over {pages} pages "
            f"after watermark {state.most_recent_id}"
        )

        next_state = advance_live(
            state,
            emitted_ids=[item.external_id for item in items],
            live_poll_ms=input.live_poll_ms,
            enable_live=input.enable_live,
        )
        return TurnResult(items=items, next_state=next_state, kind=TurnKind.GAP_FILL)

    # ------------------------------------------------------------------
    # 공통
    # ------------------------------------------------------------------

    async def _fetch(self, input: SearchInput, query: str, page_size: int) -> Tuple[int, List[SourceItem]]:
        """잡 실행 후 정규화

        Returns:
            (프로바이더 원본 건수, 변환된 항목). ID가 Snowflake가 아닌 결과는 건너뜀.
        """
        results: List[ProviderResult] = await self.workflow.execute_job_workflow(
            input.source_type,
            input.search_method,
            query,
            page_size,
            list,
        )

        items: List[SourceItem] = []
        for result in results:
            if not is_snowflake_id(result.id):
                logger.warning(f"[ORCHESTRATOR] Skipping result with non-numeric id: {sanitize_for_log(result.id)}")
                continue
            items.append(convert_result_to_source_item(result))

        logger.debug(
            f"[ORCHESTRATOR] Fetched {len(results)} results (page_size={page_size}): "
            f"query='{sanitize_for_log(query)}'"
        )
        return len(results), items

    @staticmethod
    def _dedupe(items: Sequence[SourceItem]) -> List[SourceItem]:
        seen: Dict[str, SourceItem] = {}
        for item in items:
            seen.setdefault(item.external_id, item)
        return list(seen.values())

    def _apply_backfill_limits(
        self,
        input: SearchInput,
        items: Sequence[SourceItem],
        total_processed: int,
        oldest_seen_id: Optional[str] = None,
    ) -> Tuple[List[SourceItem], bool]:
        """백필 페이지에 필터/컷오프/예산 적용

        최신부터 훑으면서:
        - oldest_seen_id 이상(이미 본 구간)은 제거
        - oldest_allowed_id / max_backfill_age_ms보다 오래된 항목에서 중단 (컷오프)
        - max_results 남은 예산만큼만 유지 (최신 쪽 우선)

        Returns:
            (내보낼 항목, 컷오프 도달 여부)
        """
        ordered = sort_newest_first(self._dedupe(items))
        if oldest_seen_id is not None:
            ceiling = parse_snowflake_id(oldest_seen_id)
            ordered = [item for item in ordered if _id(item) < ceiling]

        floor_id = int(input.oldest_allowed_id) if input.oldest_allowed_id else None
        floor_time = None
        if input.max_backfill_age_ms is not None:
            floor_time = self._now() - timedelta(milliseconds=input.max_backfill_age_ms)

        kept: List[SourceItem] = []
        cutoff = False
        for item in ordered:
            if floor_id is not None and _id(item) < floor_id:
                cutoff = True
                break
            if floor_time is not None:
                created = parse_timestamp(item.created_at)
                if created is not None and created < floor_time:
                    cutoff = True
                    break
            kept.append(item)

        remaining = remaining_budget(input.max_results, total_processed)
        if remaining is not None and len(kept) > remaining:
            kept = kept[:remaining]

        return kept, cutoff

    # ------------------------------------------------------------------
    # 스트림 어댑터
    # ------------------------------------------------------------------

    async def stream(
        self,
        input: SearchInput,
        state: Union[None, InitialState, BackfillState, LiveState, Mapping[str, Any]] = None,
        *,
        max_items: Optional[int] = None,
        max_invocations: Optional[int] = None,
        stop_when_empty: bool = False,
        on_state_change: Optional[StateCallback] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> AsyncIterator[SourceItem]:
        """턴을 반복 실행하며 항목을 하나씩 내보내는 비동기 제너레이터

        Args:
            input: 검색 요청
            state: 재개할 상태 (live 상태로 시작하면 첫 턴에서 갭 탐지)
            max_items: 내보낼 최대 항목 수 (배치 중간에서도 중단)
            max_invocations: 최대 턴 수
            stop_when_empty: 빈 배치가 나오면 중단
            on_state_change: 턴마다 (next_state, items)로 호출 (sync/async, 실패는 무시)
            sleep: 폴링 대기 함수

        턴 실패 시 예외가 그대로 전파되며 .state로 마지막으로 성공한 상태를 얻을 수 있습니다.
        """
        current = load_state(state)
        resumed = isinstance(current, LiveState)
        invocations = 0
        emitted = 0

        while True:
            if max_invocations is not None and invocations >= max_invocations:
                break
            if max_items is not None and emitted >= max_items:
                break

            result = await self.turn(input, current, resumed=resumed)
            resumed = False
            invocations += 1
            current = result.next_state

            if on_state_change is not None:
                await self._notify(on_state_change, current, result.items)

            for item in result.items:
                if max_items is not None and emitted >= max_items:
                    break
                yield item
                emitted += 1

            if result.done:
                break
            if stop_when_empty and not result.items:
                break
            if max_items is not None and emitted >= max_items:
                break
            if max_invocations is not None and invocations >= max_invocations:
                break

            if current.next_poll_ms > 0:
                await sleep(current.next_poll_ms / 1000.0)

    @staticmethod
    async def _notify(callback: StateCallback, state: Any, items: List[SourceItem]) -> None:
        try:
            outcome = callback(state, items)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning(f"[ORCHESTRATOR] State callback failed: {type(e).__name__}: {e}")
