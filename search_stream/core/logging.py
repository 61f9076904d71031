"""로깅 설정 (Security Enhanced)

검색어와 프로바이더 응답 일부가 로그에 남으므로 자격 증명 값은 마스킹하고
개행은 제거합니다 (로그 한 줄 = 이벤트 하나).
"""
import logging
import os
import re
import sys
from typing import Optional

from search_stream.core.config import settings


# Production 환경에서는 DEBUG 로그 비활성화
IS_PRODUCTION = os.getenv("ENVIRONMENT", "development") == "production"

LOGGER_NAME = "search_stream"

# 값만 가리고 키/접두어는 남김: "Bearer abc" → "Bearer ***", "api_key=abc" → "api_key=***"
_SECRET_PATTERNS = [
    re.compile(r"(?i)(bearer\s+)[^\s,;]+"),
    re.compile(r"(?i)\b((?:api[_-]?key|token|secret|password)\s*[=:]\s*)[^\s,;&]+"),
]
_CONTROL_CHARS = re.compile(r"[\r\n\t]+")


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """패키지 로거 초기화

    Args:
        level: 로그 레벨 (없으면 settings.log_level). Production에서는 DEBUG를 INFO로 올림.
    """
    logger = logging.getLogger(LOGGER_NAME)

    log_level = (level or settings.log_level).upper()
    if IS_PRODUCTION and log_level == "DEBUG":
        log_level = "INFO"
    numeric_level = getattr(logging, log_level, logging.INFO)
    logger.setLevel(numeric_level)

    if IS_PRODUCTION:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    # 재호출 시 핸들러를 중복 추가하지 않고 레벨/포맷만 갱신
    if not logger.handlers:
        logger.addHandler(logging.StreamHandler(sys.stdout))
    for handler in logger.handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)

    return logger


logger = setup_logging()


def sanitize_for_log(value: Optional[str], max_length: int = 100) -> str:
    """로그에 넣을 검색어/ID 정리

    - 자격 증명 값 마스킹 (Bearer 토큰, api_key=, token=, secret=, password=)
    - 개행/탭은 공백 하나로
    - max_length 초과분 절단
    """
    if not value:
        return "[empty]"

    result = str(value)
    for pattern in _SECRET_PATTERNS:
        result = pattern.sub(r"\1***", result)
    result = _CONTROL_CHARS.sub(" ", result)

    if len(result) > max_length:
        result = result[:max_length] + "..."

    return result
