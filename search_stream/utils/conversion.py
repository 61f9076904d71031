"""프로바이더 결과 → SourceItem 변환"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List

from search_stream.schemas.source_schema import Author, Profile, ProviderResult, SourceItem, Trend

from .snowflake import is_valid_timestamp, parse_snowflake_id, parse_timestamp, snowflake_to_timestamp

STATUS_URL_TEMPLATE = "https://twitter.com/i/status/{tweet_id}"


def convert_result_to_source_item(result: ProviderResult) -> SourceItem:
    """원본 결과 한 건을 정규화

    created_at은 프로바이더 값이 유효할 때만 사용하고, 아니면 ID에서 유도합니다.
    """
    metadata = result.metadata
    provider_created_at = metadata.created_at if metadata else None

    if is_valid_timestamp(provider_created_at):
        created_at = provider_created_at
    else:
        created_at = snowflake_to_timestamp(result.id)

    url = None
    if metadata and metadata.tweet_id:
        url = STATUS_URL_TEMPLATE.format(tweet_id=metadata.tweet_id)

    authors = None
    if metadata and metadata.username:
        authors = [
            Author(
                id=metadata.user_id,
                username=metadata.username,
                display_name=metadata.author or metadata.username,
            )
        ]

    return SourceItem(
        external_id=result.id,
        content=result.content,
        content_type="post",
        created_at=created_at,
        url=url,
        authors=authors,
        raw=result.model_dump(mode="json", exclude_unset=True),
    )


def _chronological_key(item: SourceItem) -> tuple[datetime, int]:
    # 같은 시각이면 ID 순서로 (ID와 created_at 순서는 일치해야 함)
    created = parse_timestamp(item.created_at)
    if created is None:
        created = parse_timestamp(snowflake_to_timestamp(item.external_id))
    return created, parse_snowflake_id(item.external_id)


def sort_ascending(items: Iterable[SourceItem]) -> List[SourceItem]:
    """오래된 것부터 정렬 (created_at, ID 기준)"""
    return sorted(items, key=_chronological_key)


def sort_newest_first(items: Iterable[SourceItem]) -> List[SourceItem]:
    """ID 내림차순 정렬 (백필 페이지 절단용)"""
    return sorted(items, key=lambda item: parse_snowflake_id(item.external_id), reverse=True)


def convert_result_to_profile(result: ProviderResult, username: str) -> Profile:
    author = result.metadata.author if result.metadata else None
    return Profile(
        id=result.id,
        username=username,
        display_name=author or username,
        bio=author,
        raw=result.model_dump(mode="json", exclude_unset=True),
    )


def convert_result_to_trend(result: ProviderResult) -> Trend:
    metadata = result.metadata
    return Trend(
        name=result.content,
        query=metadata.username if metadata else None,
        tweet_volume=metadata.likes if metadata else None,
        raw=result.model_dump(mode="json", exclude_unset=True),
    )
