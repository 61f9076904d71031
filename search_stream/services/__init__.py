"""비즈니스 로직 서비스 - export only."""

from .source_service import SourceService

__all__ = ["SourceService"]
