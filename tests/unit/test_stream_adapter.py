"""stream() 비동기 제너레이터 테스트."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from search_stream.core.exceptions import ProviderError, ProviderErrorKind
from search_stream.engine.state import LiveState
from search_stream.schemas.source_schema import SearchInput


def _input(**overrides) -> SearchInput:
    params = {"query": "bitcoin", "backfill_page_size": 100, "live_page_size": 50, "live_poll_ms": 60000}
    params.update(overrides)
    return SearchInput(**params)


async def _collect(iterator) -> list[int]:
    return [int(item.external_id) async for item in iterator]


@pytest.mark.asyncio
async def test_stream_runs_backfill_to_completion(orchestrator, fake_provider):
    """라이브 비활성: 백필이 끝나면 종료, 배치 내부는 오래된 것부터"""
    fake_provider.add(range(1, 251))
    sleep = AsyncMock()

    ids = await _collect(orchestrator.stream(_input(enable_live=False), sleep=sleep))

    assert ids == list(range(151, 251)) + list(range(51, 151)) + list(range(1, 51))
    assert len(fake_provider.submitted) == 3
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_max_items_stops_mid_batch(orchestrator, fake_provider):
    fake_provider.add(range(1, 251))

    ids = await _collect(orchestrator.stream(_input(), max_items=150, sleep=AsyncMock()))

    assert len(ids) == 150
    assert len(fake_provider.submitted) == 2


@pytest.mark.asyncio
async def test_state_callback_receives_each_state(orchestrator, fake_provider):
    fake_provider.add(range(1, 151))
    states = []

    def on_state_change(state, items):
        states.append((state, len(items)))

    await _collect(
        orchestrator.stream(_input(enable_live=False), on_state_change=on_state_change, sleep=AsyncMock())
    )

    assert [(s.phase, n) for s, n in states] == [("backfill", 100), ("live", 50)]


@pytest.mark.asyncio
async def test_async_callback_failure_is_ignored(orchestrator, fake_provider):
    fake_provider.add(range(1, 11))
    callback = AsyncMock(side_effect=RuntimeError("store unavailable"))

    ids = await _collect(orchestrator.stream(_input(enable_live=False), on_state_change=callback))

    assert ids == list(range(1, 11))
    callback.assert_awaited_once()


@pytest.mark.asyncio
async def test_resume_from_live_runs_gap_probe_and_stops_when_empty(orchestrator, fake_provider):
    fake_provider.add(range(1, 101))
    state = LiveState(most_recent_id="100", total_processed=100, next_poll_ms=60000)
    sleep = AsyncMock()

    ids = await _collect(orchestrator.stream(_input(), state, stop_when_empty=True, sleep=sleep))

    assert ids == []
    assert fake_provider.queries == ["bitcoin since_id:100"]
    assert fake_provider.submitted[0].max_results == 1
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_max_invocations_with_live_polling(orchestrator, fake_provider):
    """라이브 폴링 사이에는 next_poll_ms만큼 대기, 마지막 턴 뒤에는 대기하지 않음"""
    fake_provider.add(range(1, 101))
    state = LiveState(most_recent_id="100", total_processed=100, next_poll_ms=60000)
    sleep = AsyncMock()

    await _collect(orchestrator.stream(_input(), state, max_invocations=2, sleep=sleep))

    sleep.assert_awaited_once_with(60.0)
    # 첫 턴은 갭 프로브, 두 번째는 일반 since_id 폴링
    assert [job.max_results for job in fake_provider.submitted] == [1, 50]


@pytest.mark.asyncio
async def test_turn_errors_propagate_with_last_state(orchestrator, fake_provider):
    fake_provider.add(range(1, 201))
    callback = MagicMock()
    iterator = orchestrator.stream(_input(), on_state_change=callback, sleep=AsyncMock())

    first_batch = [await iterator.__anext__() for _ in range(100)]
    fake_provider.submit_error = ProviderError(ProviderErrorKind.SERVICE_UNAVAILABLE, "down", status=503)

    with pytest.raises(ProviderError) as exc_info:
        await iterator.__anext__()

    saved_state = callback.call_args.args[0]
    assert len(first_batch) == 100
    assert exc_info.value.state is saved_state
    assert saved_state.oldest_seen_id == "101"
