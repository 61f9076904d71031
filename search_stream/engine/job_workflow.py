"""Job Workflow - submit → poll-with-backoff → fetch results

하나의 비동기 검색 잡을 끝까지 실행합니다. 같은 잡에 대한 폴링은 동시에
일어나지 않으며, 잡 ID는 워크플로우 밖으로 나가지 않습니다.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Sequence, TypeVar, Union

from search_stream.core.config import settings
from search_stream.core.exceptions import (
    JobFailedException,
    JobTimeoutException,
    ProviderError,
    ProviderErrorKind,
    SearchStreamException,
)
from search_stream.core.logging import logger, sanitize_for_log
from search_stream.core.retry import RetryPolicy
from search_stream.providers.client import ProviderClient
from search_stream.schemas.source_schema import JobStatus, ProviderResult, SearchMethod, SourceType

T = TypeVar("T")


def job_poll_policy() -> RetryPolicy:
    """설정 기반 잡 상태 폴링 정책 (기본: 3초부터 2배씩, 최대 30회)"""
    return RetryPolicy(
        base_delay_ms=settings.job_poll_base_delay_ms,
        multiplier=settings.job_poll_multiplier,
        max_attempts=settings.job_poll_max_attempts,
        max_delay_ms=settings.job_poll_max_delay_ms,
    )


def first_or_not_found(what: str) -> Callable[[List[ProviderResult]], ProviderResult]:
    """단건 조회용 transform: 첫 결과, 없으면 NOT_FOUND"""

    def _transform(results: List[ProviderResult]) -> ProviderResult:
        if not results:
            raise ProviderError(
                ProviderErrorKind.NOT_FOUND,
                f"No results found for {what}",
                status=404,
                context=f"Lookup {what}",
            )
        return results[0]

    return _transform


class JobWorkflow:
    """잡 실행기

    Args:
        client: ProviderClient
        poll_policy: 상태 폴링 재시도 정책 (기본: 설정값)
        sleep: 폴링 간 대기 함수 (테스트에서 교체)
    """

    def __init__(
        self,
        client: ProviderClient,
        poll_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.poll_policy = poll_policy or job_poll_policy()
        self._sleep = sleep

    async def execute_job_workflow(
        self,
        source_type: Union[SourceType, str],
        search_method: Union[SearchMethod, str],
        query: str,
        page_size: int,
        transform: Callable[[List[ProviderResult]], T],
        next_cursor: Optional[str] = None,
    ) -> T:
        """잡 제출 → 완료 대기 → 결과 조회 → transform 적용

        Raises:
            ProviderError: 제출/조회 실패, 또는 영구 오류(401/403/404/400) 폴링 중 발생
            JobFailedException: 프로바이더가 잡 실패를 보고
            JobTimeoutException: 폴링 스케줄 소진
        """
        job_id = await self.client.submit_search_job(
            source_type, search_method, query, page_size, next_cursor
        )
        await self._wait_for_completion(job_id, search_method, query)
        results = await self.client.get_job_results(job_id)
        logger.debug(f"[JOB] {job_id} - fetched {len(results)} results")
        return transform(results)

    async def _wait_for_completion(
        self,
        job_id: str,
        search_method: Union[SearchMethod, str],
        query: str,
    ) -> None:
        policy = self.poll_policy
        method = search_method.value if isinstance(search_method, SearchMethod) else str(search_method)

        for attempt, delay_ms in enumerate(policy.delays(), start=1):
            if delay_ms > 0:
                await self._sleep(delay_ms / 1000.0)

            try:
                status = await self.client.check_job_status(job_id)
            except ProviderError as e:
                if not policy.is_retryable(e):
                    logger.info(f"[JOB] {job_id} - Permanent error, not retrying: {e}")
                    raise
                logger.info(f"[JOB] {job_id} - Transient error, retrying ({attempt}/{policy.max_attempts}): {e}")
                continue

            if status == JobStatus.DONE.value:
                logger.debug(f"[JOB] {job_id} - Job completed after {attempt} status checks")
                return
            if status == JobStatus.ERROR.value:
                logger.warning(f"[JOB] {job_id} - Job failed: {method} '{sanitize_for_log(query)}'")
                raise JobFailedException(job_id, method, query)

            logger.debug(f"[JOB] {job_id} - Status: {status} ({attempt}/{policy.max_attempts})")

        logger.warning(f"[JOB] {job_id} - Poll schedule exhausted after {policy.max_attempts} checks")
        raise JobTimeoutException(job_id, policy.max_attempts)

    # ------------------------------------------------------------------
    # 단건/부가 조회
    # ------------------------------------------------------------------

    async def get_by_id(self, source_type: Union[SourceType, str], item_id: str) -> ProviderResult:
        return await self.execute_job_workflow(
            source_type,
            SearchMethod.GET_BY_ID,
            item_id,
            1,
            first_or_not_found(f"ID {item_id}"),
        )

    async def get_bulk(self, source_type: Union[SourceType, str], ids: Sequence[str]) -> List[ProviderResult]:
        """ID 목록 순차 조회

        개별 ID 실패(NOT_FOUND, 잡 실패/타임아웃 등)는 로깅 후 건너뜁니다.
        인증 오류(401/403)는 나머지 ID도 실패할 것이므로 그대로 전파합니다.
        """
        results: List[ProviderResult] = []
        for item_id in ids:
            try:
                results.append(await self.get_by_id(source_type, item_id))
            except ProviderError as e:
                if e.kind in (ProviderErrorKind.UNAUTHORIZED, ProviderErrorKind.FORBIDDEN):
                    raise
                logger.warning(f"[JOB] Failed to fetch ID {item_id}: {e}")
            except SearchStreamException as e:
                logger.warning(f"[JOB] Failed to fetch ID {item_id}: {e}")
        return results

    async def get_replies(
        self, source_type: Union[SourceType, str], conversation_id: str, max_results: int = 20
    ) -> List[ProviderResult]:
        return await self.execute_job_workflow(
            source_type, SearchMethod.GET_REPLIES, conversation_id, max_results, list
        )

    async def get_profile(self, source_type: Union[SourceType, str], username: str) -> ProviderResult:
        return await self.execute_job_workflow(
            source_type,
            SearchMethod.SEARCH_BY_PROFILE,
            username,
            1,
            first_or_not_found(f"profile {username}"),
        )

    async def get_trends(self, source_type: Union[SourceType, str]) -> List[ProviderResult]:
        return await self.execute_job_workflow(source_type, SearchMethod.GET_TRENDS, "", 50, list)
