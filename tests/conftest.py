"""전역 테스트 설정

역할:
- 테스트 환경 구성
- 공통 Fake 프로바이더 주입 (max_id:/since_id: 커서를 해석하는 인메모리 ID 범위)
- 폴링 대기 제거

금지:
- 실제 네트워크 호출
- 실제 API 키
"""

from __future__ import annotations

import os
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

import pytest


# 프로젝트 루트를 경로에 추가
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from search_stream.core.retry import RetryPolicy  # noqa: E402
from search_stream.engine.job_workflow import JobWorkflow  # noqa: E402
from search_stream.engine.orchestrator import StreamOrchestrator  # noqa: E402
from search_stream.schemas.source_schema import ProviderResult, SearchMethod  # noqa: E402

_MAX_ID = re.compile(r"\bmax_id:(\d+)")
_SINCE_ID = re.compile(r"\bsince_id:(\d+)")


@pytest.fixture(scope="session", autouse=True)
def test_env() -> None:
    """테스트 환경 변수 설정 (세션 전역)"""
    os.environ["ENVIRONMENT"] = "test"
    os.environ["LOG_LEVEL"] = "INFO"


async def no_sleep(_: float) -> None:
    return None


@dataclass
class SubmittedJob:
    method: str
    query: str
    max_results: int


@dataclass
class FakeProvider:
    """ProviderClient 대체용 인메모리 프로바이더

    - ids: 보유한 항목 ID (정수)
    - 쿼리의 max_id:(포함 상한) / since_id:(배타 하한)를 해석해 최신부터 max_results건 반환
    - statuses: 잡마다 소비할 상태 스크립트 (기본: 즉시 done)
    - submit_error: 제출 시 던질 예외
    """

    ids: List[int] = field(default_factory=list)
    statuses: List[str] = field(default_factory=list)
    submit_error: Optional[BaseException] = None
    created_at: Optional[Callable[[int], Optional[str]]] = None
    extra_results: List[Dict[str, Any]] = field(default_factory=list)

    submitted: List[SubmittedJob] = field(default_factory=list)
    status_calls: int = 0
    _jobs: Dict[str, List[ProviderResult]] = field(default_factory=dict)

    @property
    def queries(self) -> List[str]:
        return [job.query for job in self.submitted]

    def add(self, ids: Iterable[int]) -> None:
        self.ids.extend(ids)

    def _result(self, item_id: int) -> ProviderResult:
        payload: Dict[str, Any] = {
            "id": str(item_id),
            "source": "twitter",
            "content": f"post {item_id}",
        }
        created = self.created_at(item_id) if self.created_at else None
        if created:
            payload["metadata"] = {"created_at": created}
        return ProviderResult.model_validate(payload)

    def _select(self, method: str, query: str, max_results: int) -> List[ProviderResult]:
        if method == SearchMethod.GET_BY_ID.value:
            return [self._result(int(query))] if query.isdigit() and int(query) in self.ids else []

        upper = _MAX_ID.search(query)
        lower = _SINCE_ID.search(query)
        matches = sorted(self.ids, reverse=True)
        if upper:
            matches = [i for i in matches if i <= int(upper.group(1))]
        if lower:
            matches = [i for i in matches if i > int(lower.group(1))]

        results = [self._result(i) for i in matches[:max_results]]
        results.extend(ProviderResult.model_validate(extra) for extra in self.extra_results)
        return results

    async def submit_search_job(self, source_type, search_method, query, max_results, next_cursor=None) -> str:
        if self.submit_error is not None:
            raise self.submit_error
        method = getattr(search_method, "value", search_method)
        self.submitted.append(SubmittedJob(method=method, query=query, max_results=max_results))
        job_id = f"job-{len(self.submitted)}"
        self._jobs[job_id] = self._select(method, query, max_results)
        return job_id

    async def check_job_status(self, job_id: str) -> str:
        self.status_calls += 1
        if self.statuses:
            return self.statuses.pop(0)
        return "done"

    async def get_job_results(self, job_id: str) -> List[ProviderResult]:
        return self._jobs.pop(job_id, [])

    async def health_check(self) -> str:
        return "OK"

    async def close(self) -> None:
        return None


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def workflow(fake_provider: FakeProvider) -> JobWorkflow:
    """대기 없는 잡 워크플로우 (폴링 최대 5회)"""
    return JobWorkflow(
        fake_provider,
        poll_policy=RetryPolicy(base_delay_ms=3000, multiplier=2.0, max_attempts=5),
        sleep=no_sleep,
    )


@pytest.fixture
def orchestrator(workflow: JobWorkflow) -> StreamOrchestrator:
    return StreamOrchestrator(workflow)
