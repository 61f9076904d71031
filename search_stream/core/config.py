"""설정 관리 - 환경 변수 로드 및 검증"""
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    """애플리케이션 설정"""

    # 검색 프로바이더
    provider_base_url: str = "https://data.gopher-ai.com/api/v1"
    provider_api_key: str = ""
    provider_timeout_ms: int = 30000

    # HTTP 전송 계층 재시도 (네트워크/5xx 전용)
    # NOTE: 잡 상태 폴링 재시도와는 별개입니다.
    http_retry_attempts: int = 3
    http_retry_base_delay_ms: int = 1000
    http_retry_max_delay_ms: int = 10000

    # 잡 상태 폴링 (지수 백오프: 3초부터 시작, 최대 30회)
    job_poll_base_delay_ms: int = 3000
    job_poll_multiplier: float = 2.0
    job_poll_max_attempts: int = 30
    job_poll_max_delay_ms: Optional[int] = None

    # 스트림 기본값
    default_live_poll_ms: int = 60000

    # 로깅
    log_level: str = "INFO"

    @field_validator("provider_timeout_ms")
    @classmethod
    def validate_provider_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("provider_timeout_ms must be positive")
        return v

    @field_validator("http_retry_attempts", "job_poll_max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("retry attempts must be >= 1")
        return v

    @field_validator("http_retry_base_delay_ms", "http_retry_max_delay_ms", "job_poll_base_delay_ms")
    @classmethod
    def validate_delays(cls, v: int) -> int:
        if v < 0:
            raise ValueError("delays must be >= 0")
        return v

    @field_validator("job_poll_multiplier")
    @classmethod
    def validate_multiplier(cls, v: float) -> float:
        if v < 1.0:
            raise ValueError("job_poll_multiplier must be >= 1.0")
        return v

    @field_validator("default_live_poll_ms")
    @classmethod
    def validate_live_poll(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("default_live_poll_ms must be positive")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
