"""Retry Policy - Explicit, testable retry schedule

재시도를 값(policy)으로 표현합니다. 실행 루프(HTTP 전송 계층, 잡 상태 폴링)는
이 값을 받아 지연/중단 여부만 물어봅니다.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from search_stream.core.exceptions import JobFailedException, ProviderError, SearchStreamException


def default_is_retryable(error: BaseException) -> bool:
    """기본 재시도 판별

    - ProviderError: 영구 오류(401/403/400/404)가 아니면 재시도
    - JobFailedException: 재시도하지 않음 (프로바이더가 실패를 확정)
    - 그 외 패키지 예외, 네트워크/타임아웃 예외: 재시도
    - 나머지(프로그래밍 오류 등): 재시도하지 않음
    """
    if isinstance(error, ProviderError):
        return not error.is_permanent
    if isinstance(error, JobFailedException):
        return False
    return isinstance(error, (SearchStreamException, asyncio.TimeoutError, OSError))


@dataclass(frozen=True)
class RetryPolicy:
    """지수 백오프 재시도 정책

    Attributes:
        base_delay_ms: 두 번째 시도 전 대기 시간
        multiplier: 시도마다 곱해지는 배수
        max_attempts: 최초 시도를 포함한 최대 시도 횟수
        max_delay_ms: 단일 대기 상한 (None이면 무제한)
        is_retryable: 오류 분류 함수

    Usage:
        policy = RetryPolicy(base_delay_ms=3000, max_attempts=30)
        for attempt, delay_ms in enumerate(policy.delays(), start=1):
            await asyncio.sleep(delay_ms / 1000)
            ...
    """

    base_delay_ms: float = 3000
    multiplier: float = 2.0
    max_attempts: int = 30
    max_delay_ms: Optional[float] = None
    is_retryable: Callable[[BaseException], bool] = default_is_retryable

    def __post_init__(self):
        """설정 검증"""
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1 (got {self.max_attempts})")
        if self.base_delay_ms < 0:
            raise ValueError(f"base_delay_ms must be >= 0 (got {self.base_delay_ms})")
        if self.multiplier < 1.0:
            raise ValueError(f"multiplier must be >= 1.0 (got {self.multiplier})")
        if self.max_delay_ms is not None and self.max_delay_ms < 0:
            raise ValueError(f"max_delay_ms must be >= 0 (got {self.max_delay_ms})")

    def delay_for(self, attempt: int) -> float:
        """attempt번째 시도 직전 대기 시간 (ms)

        첫 시도는 대기 없이 즉시 실행합니다.
        """
        if attempt <= 1:
            return 0.0
        delay = self.base_delay_ms * (self.multiplier ** (attempt - 2))
        if self.max_delay_ms is not None:
            delay = min(delay, self.max_delay_ms)
        return float(delay)

    def delays(self) -> Iterator[float]:
        """시도별 대기 시간 (ms) 시퀀스, 길이 = max_attempts"""
        for attempt in range(1, self.max_attempts + 1):
            yield self.delay_for(attempt)

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        """attempt번째 시도가 error로 끝났을 때 다음 시도를 할지"""
        return attempt < self.max_attempts and self.is_retryable(error)

    def total_delay_ms(self) -> float:
        """스케줄 전체 대기 시간 합 (ms)"""
        return sum(self.delays())
