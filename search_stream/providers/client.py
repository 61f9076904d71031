"""Search provider client

잡 기반 검색 API에 대한 얇은 바인딩:
- submit_search_job → check_job_status → get_job_results
- similarity_search / hybrid_search (동기식 즉시 검색)

모든 HTTP/전송 오류는 ProviderError로 정규화됩니다.
"""

from __future__ import annotations

from typing import Any, List, Optional, Union

from pydantic import ValidationError

from search_stream.core.exceptions import ProviderError, ProviderErrorKind
from search_stream.core.logging import logger, sanitize_for_log
from search_stream.schemas.source_schema import (
    HybridSearchOptions,
    JobStatus,
    ProviderResult,
    SearchMethod,
    SimilaritySearchOptions,
    SourceType,
)

from .http_client import ProviderHttpClient

# 프로바이더가 내려주는 비표준 상태값 정규화
_STATUS_ALIASES = {
    "done(saved)": JobStatus.DONE.value,
}


def _enum_value(value: Union[str, Any]) -> str:
    return value.value if hasattr(value, "value") else str(value)


class ProviderClient:
    """검색 프로바이더 API 클라이언트 (상태 없음, 여러 스트림이 공유 가능)"""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout_ms: int = 30000,
        http_client: Optional[ProviderHttpClient] = None,
    ) -> None:
        self.base_url = base_url
        self.http = http_client or ProviderHttpClient(base_url, api_key, timeout_ms=timeout_ms)

    async def health_check(self) -> str:
        return "OK"

    async def submit_search_job(
        self,
        source_type: Union[SourceType, str],
        search_method: Union[SearchMethod, str],
        query: str,
        max_results: int,
        next_cursor: Optional[str] = None,
    ) -> str:
        """검색 잡 제출

        Returns:
            str: 잡 ID (uuid)

        Raises:
            ProviderError: BAD_REQUEST (페이로드 거부), UNAUTHORIZED/FORBIDDEN,
                SERVICE_UNAVAILABLE (전송 실패, 5xx, uuid 누락)
        """
        context = "Submit search job"
        arguments: dict[str, Any] = {
            "type": _enum_value(search_method),
            "query": query,
            "max_results": max_results,
        }
        if next_cursor:
            arguments["next_cursor"] = next_cursor

        data = await self.http.request_json(
            "POST",
            "/search/jobs",
            body={"type": _enum_value(source_type), "arguments": arguments},
            context=context,
        )
        data = data if isinstance(data, dict) else {}

        if data.get("error"):
            raise ProviderError(
                ProviderErrorKind.BAD_REQUEST,
                f"Invalid request: {data['error']}",
                status=400,
                context=context,
            )

        job_id = data.get("uuid")
        if not job_id:
            raise ProviderError(
                ProviderErrorKind.SERVICE_UNAVAILABLE,
                "API did not return a job UUID",
                status=503,
                context=context,
            )

        logger.debug(
            f"[PROVIDER] Submitted job {job_id}: method={_enum_value(search_method)}, "
            f"query='{sanitize_for_log(query)}', max_results={max_results}"
        )
        return str(job_id)

    async def check_job_status(self, job_id: str) -> str:
        """잡 상태 조회 (단일 요청, 대기하지 않음)

        Returns:
            str: JobStatus 값. 알 수 없는 상태는 원문 그대로 반환.
        """
        context = f"Check job status for {job_id}"
        data = await self.http.request_json("GET", f"/search/jobs/{job_id}/status", context=context)
        data = data if isinstance(data, dict) else {}

        if data.get("error"):
            raise ProviderError(
                ProviderErrorKind.SERVICE_UNAVAILABLE,
                f"API error: {data['error']}",
                status=503,
                context=context,
            )

        status = data.get("status")
        if not status or not isinstance(status, str):
            raise ProviderError(
                ProviderErrorKind.SERVICE_UNAVAILABLE,
                "API did not return job status",
                status=503,
                context=context,
            )

        return _STATUS_ALIASES.get(status, status)

    async def get_job_results(self, job_id: str) -> List[ProviderResult]:
        """완료된 잡의 결과 조회 (리스트가 아니면 빈 리스트)"""
        data = await self.http.request_json(
            "GET", f"/search/jobs/{job_id}/results", context=f"Get job results for {job_id}"
        )
        return self._parse_results(data, context=f"job {job_id}")

    async def similarity_search(self, options: SimilaritySearchOptions) -> List[ProviderResult]:
        """벡터 기반 즉시 검색"""
        data = await self.http.request_json(
            "POST", "/search/similarity", body=options.to_payload(), context="Similarity search"
        )
        return self._parse_results(data, context="similarity search")

    async def hybrid_search(self, options: HybridSearchOptions) -> List[ProviderResult]:
        """시맨틱 + 키워드 하이브리드 즉시 검색"""
        data = await self.http.request_json(
            "POST", "/search/hybrid", body=options.to_payload(), context="Hybrid search"
        )
        return self._parse_results(data, context="hybrid search")

    @staticmethod
    def _parse_results(data: Any, context: str) -> List[ProviderResult]:
        if not isinstance(data, list):
            return []

        results: List[ProviderResult] = []
        for entry in data:
            try:
                results.append(ProviderResult.model_validate(entry))
            except ValidationError as e:
                logger.warning(f"[PROVIDER] Skipping malformed result in {context}: {e.error_count()} errors")
        return results

    async def close(self) -> None:
        await self.http.close()
