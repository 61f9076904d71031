"""공유 HTTP 클라이언트 (curl_cffi)

- 요청마다 AsyncSession을 만들면 TLS/커넥션 오버헤드가 커지므로 클라이언트 단위로
  세션을 재사용합니다.
- 네트워크 실패와 5xx만 제한된 횟수로 재시도합니다 (4xx는 즉시 반환).
- 종료 시 close()로 정리합니다.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

from curl_cffi.requests import AsyncSession

from search_stream.core.config import settings
from search_stream.core.exceptions import ProviderError, ProviderErrorKind
from search_stream.core.logging import logger
from search_stream.core.retry import RetryPolicy


def _is_transport_retryable(error: BaseException) -> bool:
    return isinstance(error, ProviderError) and error.kind == ProviderErrorKind.SERVICE_UNAVAILABLE


def transport_retry_policy() -> RetryPolicy:
    """설정 기반 전송 계층 재시도 정책"""
    return RetryPolicy(
        base_delay_ms=settings.http_retry_base_delay_ms,
        multiplier=2.0,
        max_attempts=settings.http_retry_attempts,
        max_delay_ms=settings.http_retry_max_delay_ms,
        is_retryable=_is_transport_retryable,
    )


def _error_message(data: Any, fallback: str) -> str:
    if isinstance(data, dict):
        for key in ("error", "message", "detail"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return fallback


class ProviderHttpClient:
    """프로바이더 JSON API용 HTTP 클라이언트

    Args:
        base_url: API 베이스 URL (예: https://data.gopher-ai.com/api/v1)
        api_key: Bearer 토큰
        timeout_ms: 단일 요청 타임아웃
        retry_policy: 전송 계층 재시도 정책 (기본: 설정값)
        session: 주입할 세션 (테스트용, 없으면 lazy 생성)
        sleep: 재시도 대기 함수
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout_ms: int = 30000,
        retry_policy: Optional[RetryPolicy] = None,
        session: Optional[Any] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_s = (timeout_ms if timeout_ms > 0 else 30000) / 1000.0
        self.retry_policy = retry_policy or transport_retry_policy()
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._session: Optional[Any] = session
        self._owns_session = session is None

    async def _ensure_session(self) -> Any:
        async with self._lock:
            if self._session is not None:
                return self._session
            self._session = AsyncSession(
                headers=self.default_headers(),
                trust_env=False,
            )
            return self._session

    def default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _send_once(self, method: str, url: str, body: Optional[Any], context: str) -> Any:
        sess = await self._ensure_session()
        try:
            resp = await sess.request(
                method,
                url,
                json=body,
                headers=self.default_headers(),
                timeout=self.timeout_s,
            )
        except Exception as e:
            logger.info(f"[HTTP_CLIENT] {method} failed: {type(e).__name__}: {repr(e)}")
            raise ProviderError(
                ProviderErrorKind.SERVICE_UNAVAILABLE,
                f"Transport failure: {type(e).__name__}",
                status=0,
                context=context,
            ) from e

        status = getattr(resp, "status_code", 0) or 0
        try:
            data = resp.json()
        except ValueError:
            data = None

        if status >= 400:
            message = _error_message(data, f"HTTP {status}")
            logger.info(f"[HTTP_CLIENT] {method} {url} -> {status} ({message})")
            raise ProviderError.from_status(status, message, context=context)

        if data is None and (getattr(resp, "text", "") or "").strip():
            raise ProviderError(
                ProviderErrorKind.SERVICE_UNAVAILABLE,
                "Provider returned a non-JSON body",
                status=status,
                context=context,
            )
        return data

    async def request_json(
        self,
        method: str,
        path: str,
        *,
        body: Optional[Any] = None,
        context: str = "",
    ) -> Any:
        """JSON 요청 실행 (전송 계층 재시도 포함)

        Returns:
            파싱된 JSON (본문이 비어 있으면 None)

        Raises:
            ProviderError: 4xx는 즉시, 네트워크/5xx는 재시도 소진 후
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        policy = self.retry_policy

        for attempt, delay_ms in enumerate(policy.delays(), start=1):
            if delay_ms > 0:
                await self._sleep(delay_ms / 1000.0)
            try:
                return await self._send_once(method, url, body, context)
            except ProviderError as e:
                if not policy.should_retry(e, attempt):
                    raise
                logger.info(
                    f"[HTTP_CLIENT] Retrying {method} {path} "
                    f"(attempt {attempt}/{policy.max_attempts}): {e}"
                )

        # delays()는 최소 1회 이상 반복하므로 여기 도달하지 않음
        raise ProviderError(ProviderErrorKind.SERVICE_UNAVAILABLE, "Retry schedule empty", context=context)

    async def close(self) -> None:
        async with self._lock:
            if self._session is None or not self._owns_session:
                return
            try:
                await self._session.close()
            except Exception as e:
                logger.debug(f"[HTTP_CLIENT] Session close failed: {type(e).__name__}")
            self._session = None
