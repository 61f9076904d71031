"""커스텀 예외 정의 (Structured Exception Hierarchy)"""
from enum import Enum
from typing import Any, Optional


# 기본 예외 클래스
class SearchStreamException(Exception):
    """기본 예외 클래스 - 모든 커스텀 예외의 부모

    state: 실패한 턴에 입력으로 주어졌던 StreamState (오케스트레이터가 채움).
    호출자는 이 값을 그대로 다시 넘겨 같은 턴을 안전하게 재시도할 수 있습니다.
    """
    def __init__(self, message: str, error_code: str = "UNKNOWN_ERROR", details: Optional[dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.state: Any = None
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


# 프로바이더 관련 예외
class ProviderErrorKind(str, Enum):
    """프로바이더 오류 분류 (HTTP 상태 기준)"""

    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"

    @classmethod
    def from_status(cls, status: int) -> "ProviderErrorKind":
        if status == 400:
            return cls.BAD_REQUEST
        if status == 401:
            return cls.UNAUTHORIZED
        if status == 403:
            return cls.FORBIDDEN
        if status == 404:
            return cls.NOT_FOUND
        return cls.SERVICE_UNAVAILABLE


PERMANENT_ERROR_KINDS = frozenset({
    ProviderErrorKind.UNAUTHORIZED,
    ProviderErrorKind.FORBIDDEN,
    ProviderErrorKind.BAD_REQUEST,
    ProviderErrorKind.NOT_FOUND,
})


class ProviderError(SearchStreamException):
    """프로바이더 API 오류

    Attributes:
        kind: 오류 분류
        status: HTTP 상태 코드 (전송 계층 실패 시 0)
        context: 실패한 작업 설명 (예: "Submit search job")
    """
    def __init__(
        self,
        kind: ProviderErrorKind,
        message: str,
        status: int = 0,
        context: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.kind = kind
        self.status = status
        self.context = context
        super().__init__(
            message,
            kind.value,
            details or {"provider_status": status, "context": context},
        )

    @classmethod
    def from_status(cls, status: int, message: str, context: Optional[str] = None) -> "ProviderError":
        return cls(ProviderErrorKind.from_status(status), message, status=status, context=context)

    @property
    def is_permanent(self) -> bool:
        """재시도해도 결과가 바뀌지 않는 오류인가?"""
        return self.kind in PERMANENT_ERROR_KINDS


# 잡 워크플로우 관련 예외
class JobFailedException(SearchStreamException):
    """프로바이더가 잡 상태를 error로 보고한 경우 (영구 실패)"""
    def __init__(self, job_id: str, method: str, query: str, details: Optional[dict[str, Any]] = None):
        message = f"Job failed: {method} for {query}"
        self.job_id = job_id
        super().__init__(message, "JOB_FAILED",
                         details or {"job_id": job_id, "method": method})


class JobTimeoutException(SearchStreamException):
    """폴링 스케줄이 소진될 때까지 잡이 완료되지 않은 경우"""
    def __init__(self, job_id: str, attempts: int, details: Optional[dict[str, Any]] = None):
        message = f"Job {job_id} did not complete after {attempts} status checks"
        self.job_id = job_id
        self.attempts = attempts
        super().__init__(message, "JOB_TIMEOUT",
                         details or {"job_id": job_id, "attempts": attempts})


# 예산/시간 관련 예외
class BudgetExceededException(SearchStreamException):
    """턴 실행이 벽시계 예산을 초과한 경우"""
    def __init__(self, budget_ms: int, elapsed_ms: float, details: Optional[dict[str, Any]] = None):
        message = f"Turn exceeded budget of {budget_ms}ms (elapsed: {elapsed_ms:.0f}ms)"
        self.budget_ms = budget_ms
        self.elapsed_ms = elapsed_ms
        super().__init__(message, "BUDGET_EXCEEDED",
                         details or {"budget_ms": budget_ms, "elapsed_ms": elapsed_ms})


# 유효성 검증 관련 예외
class ValidationException(SearchStreamException):
    """유효성 검증 예외"""
    def __init__(self, field: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Validation failed for '{field}': {reason}"
        super().__init__(message, "VALIDATION_ERROR",
                         details or {"field": field, "reason": reason})


class InvalidStateException(SearchStreamException):
    """역직렬화할 수 없는 StreamState"""
    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Invalid stream state: {reason}"
        super().__init__(message, "INVALID_STATE", details or {"reason": reason})
