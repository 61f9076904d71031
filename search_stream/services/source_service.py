"""소스 검색 서비스 - 호출자용 퍼사드"""

from __future__ import annotations

from typing import Any, AsyncIterator, Iterable, List, Mapping, Optional, Sequence, Union

from search_stream.core.config import settings
from search_stream.core.exceptions import ValidationException
from search_stream.core.logging import logger
from search_stream.engine.job_workflow import JobWorkflow
from search_stream.engine.orchestrator import StateCallback, StreamOrchestrator
from search_stream.engine.result import TurnResult
from search_stream.engine.state import BackfillState, InitialState, LiveState
from search_stream.providers.client import ProviderClient
from search_stream.schemas.source_schema import (
    HybridSearchOptions,
    Profile,
    ProviderResult,
    SearchInput,
    SimilaritySearchOptions,
    SourceItem,
    SourceType,
    Trend,
)
from search_stream.utils.conversion import (
    convert_result_to_profile,
    convert_result_to_source_item,
    convert_result_to_trend,
)

StateLike = Union[None, InitialState, BackfillState, LiveState, Mapping[str, Any], str]


class SourceService:
    """
    소스 검색 서비스 - SRP: 호출 조율만 담당

    - HTTP/잡 API는 ProviderClient
    - 잡 폴링은 JobWorkflow
    - 단계 전이와 갭 복구는 StreamOrchestrator
    """

    def __init__(
        self,
        client: ProviderClient,
        workflow: Optional[JobWorkflow] = None,
        orchestrator: Optional[StreamOrchestrator] = None,
    ):
        self.client = client
        self.workflow = workflow or JobWorkflow(client)
        self.orchestrator = orchestrator or StreamOrchestrator(self.workflow)

    @classmethod
    def from_settings(cls, api_key: Optional[str] = None, base_url: Optional[str] = None) -> "SourceService":
        """설정(.env / 환경 변수)으로 서비스 구성

        Raises:
            ValidationException: API 키가 비어 있는 경우
        """
        key = api_key if api_key is not None else settings.provider_api_key
        if not key or not key.strip():
            raise ValidationException("provider_api_key", "API key is required")

        client = ProviderClient(
            base_url or settings.provider_base_url,
            key,
            timeout_ms=settings.provider_timeout_ms,
        )
        logger.info(f"[SERVICE] Source service initialized: base_url={client.base_url}")
        return cls(client)

    async def __aenter__(self) -> "SourceService":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # 스트리밍
    # ------------------------------------------------------------------

    async def search(self, input: SearchInput, state: StateLike = None, *, resumed: bool = False) -> TurnResult:
        """검색 한 턴 (items, next_state)"""
        return await self.orchestrator.turn(input, state, resumed=resumed)

    async def stream(
        self,
        input: SearchInput,
        state: StateLike = None,
        *,
        max_items: Optional[int] = None,
        max_invocations: Optional[int] = None,
        stop_when_empty: bool = False,
        on_state_change: Optional[StateCallback] = None,
    ) -> AsyncIterator[SourceItem]:
        """턴을 반복하며 항목을 하나씩 내보냄"""
        async for item in self.orchestrator.stream(
            input,
            state,
            max_items=max_items,
            max_invocations=max_invocations,
            stop_when_empty=stop_when_empty,
            on_state_change=on_state_change,
        ):
            yield item

    # ------------------------------------------------------------------
    # 단건/부가 조회
    # ------------------------------------------------------------------

    async def get_by_id(self, item_id: str, source_type: SourceType = SourceType.TWITTER) -> SourceItem:
        result = await self.workflow.get_by_id(source_type, item_id)
        return convert_result_to_source_item(result)

    async def get_bulk(self, ids: Sequence[str], source_type: SourceType = SourceType.TWITTER) -> List[SourceItem]:
        """ID 목록 조회 (찾지 못한 ID는 결과에서 빠짐)"""
        if not ids:
            return []
        results = await self.workflow.get_bulk(source_type, ids)
        items = self._to_items(results)
        logger.info(f"[SERVICE] Bulk lookup: {len(items)}/{len(ids)} found")
        return items

    async def get_replies(
        self,
        conversation_id: str,
        max_results: int = 20,
        source_type: SourceType = SourceType.TWITTER,
    ) -> List[SourceItem]:
        results = await self.workflow.get_replies(source_type, conversation_id, max_results)
        return self._to_items(results)

    async def get_profile(self, username: str, source_type: SourceType = SourceType.TWITTER) -> Profile:
        username = username.lstrip("@")
        result = await self.workflow.get_profile(source_type, username)
        return convert_result_to_profile(result, username)

    async def get_trends(self, source_type: SourceType = SourceType.TWITTER) -> List[Trend]:
        results = await self.workflow.get_trends(source_type)
        return [convert_result_to_trend(result) for result in results]

    async def similarity_search(self, options: SimilaritySearchOptions) -> List[SourceItem]:
        results = await self.client.similarity_search(options)
        return self._to_items(results)

    async def hybrid_search(self, options: HybridSearchOptions) -> List[SourceItem]:
        results = await self.client.hybrid_search(options)
        return self._to_items(results)

    async def health_check(self) -> str:
        return await self.client.health_check()

    async def close(self) -> None:
        await self.client.close()

    @staticmethod
    def _to_items(results: Iterable[ProviderResult]) -> List[SourceItem]:
        items: List[SourceItem] = []
        for result in results:
            try:
                items.append(convert_result_to_source_item(result))
            except ValueError as e:
                # ID도 시각도 없는 결과는 정규화 불가
                logger.warning(f"[SERVICE] Skipping unconvertible result {result.id!r}: {e}")
        return items
