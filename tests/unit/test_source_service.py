"""SourceService 퍼사드 테스트."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from search_stream.core.exceptions import ValidationException
from search_stream.engine.orchestrator import StreamOrchestrator
from search_stream.schemas.source_schema import (
    ProviderResult,
    SearchInput,
    SearchMethod,
    SimilaritySearchOptions,
    SourceType,
)
from search_stream.services.source_service import SourceService


@pytest.fixture
def service(fake_provider, workflow) -> SourceService:
    return SourceService(fake_provider, workflow=workflow, orchestrator=StreamOrchestrator(workflow))


def test_from_settings_requires_api_key():
    with pytest.raises(ValidationException) as exc_info:
        SourceService.from_settings(api_key="  ")

    assert exc_info.value.details["field"] == "provider_api_key"


def test_from_settings_builds_client():
    service = SourceService.from_settings(api_key="secret", base_url="https://provider.test/api/v1")

    assert service.client.base_url == "https://provider.test/api/v1"
    assert service.workflow.client is service.client
    assert service.orchestrator.workflow is service.workflow


@pytest.mark.asyncio
async def test_search_accepts_serialized_state(service, fake_provider):
    """저장된 dict 상태를 그대로 넘겨 이어서 진행"""
    fake_provider.add(range(851, 1001))
    saved = {"phase": "backfill", "oldestSeenId": "901", "mostRecentId": "1000", "totalProcessed": 100}

    result = await service.search(SearchInput(query="btc"), saved)

    assert len(result.items) == 50
    assert result.to_dict()["nextState"]["phase"] == "live"
    assert result.to_dict()["nextState"]["totalProcessed"] == 150
    assert result.to_dict()["items"][0]["externalId"] == "851"


@pytest.mark.asyncio
async def test_stream_delegates_to_orchestrator(service, fake_provider):
    fake_provider.add(range(1, 6))

    ids = [item.external_id async for item in service.stream(SearchInput(query="btc", enable_live=False))]

    assert ids == ["1", "2", "3", "4", "5"]


@pytest.mark.asyncio
async def test_get_by_id_converts_item(service, fake_provider):
    fake_provider.add([42])

    item = await service.get_by_id("42")

    assert item.external_id == "42"
    assert fake_provider.submitted[0].method == SearchMethod.GET_BY_ID.value


@pytest.mark.asyncio
async def test_get_bulk_drops_missing(service, fake_provider):
    fake_provider.add([1, 3])

    items = await service.get_bulk(["1", "2", "3"])

    assert [i.external_id for i in items] == ["1", "3"]


@pytest.mark.asyncio
async def test_get_bulk_empty_makes_no_calls(service, fake_provider):
    assert await service.get_bulk([]) == []
    assert fake_provider.submitted == []


@pytest.mark.asyncio
async def test_get_profile_strips_at_sign():
    workflow = MagicMock()
    workflow.get_profile = AsyncMock(
        return_value=ProviderResult.model_validate({"id": "7", "metadata": {"author": "Alice"}})
    )
    service = SourceService(MagicMock(), workflow=workflow, orchestrator=MagicMock())

    profile = await service.get_profile("@alice")

    workflow.get_profile.assert_awaited_once_with(SourceType.TWITTER, "alice")
    assert profile.username == "alice"
    assert profile.display_name == "Alice"


@pytest.mark.asyncio
async def test_get_trends_and_replies():
    workflow = MagicMock()
    workflow.get_trends = AsyncMock(return_value=[ProviderResult(id="1", content="#python")])
    workflow.get_replies = AsyncMock(return_value=[ProviderResult(id="11", content="reply")])
    service = SourceService(MagicMock(), workflow=workflow, orchestrator=MagicMock())

    trends = await service.get_trends()
    replies = await service.get_replies("10", max_results=5)

    assert [t.name for t in trends] == ["#python"]
    assert [r.external_id for r in replies] == ["11"]
    workflow.get_replies.assert_awaited_once_with(SourceType.TWITTER, "10", 5)


@pytest.mark.asyncio
async def test_similarity_search_skips_unconvertible_results():
    client = MagicMock()
    client.similarity_search = AsyncMock(
        return_value=[ProviderResult(id="12", content="ok"), ProviderResult(id="web-1", content="page")]
    )
    service = SourceService(client, workflow=MagicMock(), orchestrator=MagicMock())

    items = await service.similarity_search(SimilaritySearchOptions(query="ai"))

    assert [i.external_id for i in items] == ["12"]


@pytest.mark.asyncio
async def test_context_manager_closes_client():
    client = MagicMock()
    client.close = AsyncMock()
    client.health_check = AsyncMock(return_value="OK")

    async with SourceService(client, workflow=MagicMock(), orchestrator=MagicMock()) as service:
        assert await service.health_check() == "OK"

    client.close.assert_awaited_once()

