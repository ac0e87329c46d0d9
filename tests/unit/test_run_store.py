"""
Run Registry 단위 테스트

bounded 큐 backpressure(이벤트 drop 없음), 취소 후 상태 보존, 제거 검증
"""

import asyncio
from datetime import timedelta

import pytest

from core.pipeline.run_store import RunRegistry
from core.pipeline.schemas import EndOfStream, ErrorEvent, StatusEvent

STAGES = ["planner", "web-search", "report-writer"]


async def _status_stream(count: int):
    for i in range(count):
        yield {"type": "status", "message": f"event-{i}"}


@pytest.mark.asyncio
async def test_slow_consumer_receives_every_event():
    """큐 크기 2, 이벤트 5개: 프로듀서가 대기하며 모든 이벤트 전달"""
    registry = RunRegistry(queue_maxsize=2)
    run = await registry.create(STAGES, run_id="run-bp")
    registry.start(run, _status_stream(5))

    await asyncio.sleep(0.05)
    assert run.queue.qsize() <= 2
    assert run.running is True

    received = []
    while True:
        item = await registry.next_event("run-bp", timeout=1.0)
        assert item is not None
        received.append(item)
        if isinstance(item, EndOfStream):
            break
        await asyncio.sleep(0.01)

    messages = [i.message for i in received if isinstance(i, StatusEvent)]
    assert messages == [f"event-{i}" for i in range(5)]
    await asyncio.wait_for(run.task, timeout=1.0)
    assert run.running is False
    assert run.state.event_count == 5


@pytest.mark.asyncio
async def test_cancel_keeps_state_queryable():
    """cancel 후 run은 남아 있고 상태는 cancelled"""
    registry = RunRegistry(queue_maxsize=1)

    async def endless():
        yield {"type": "stage_change", "stage": "planner"}
        while True:
            yield {"type": "status", "message": "tick"}

    run = await registry.create(STAGES, run_id="run-cancel")
    registry.start(run, endless())
    first = await registry.next_event("run-cancel", timeout=1.0)
    assert first is not None

    assert await registry.cancel("run-cancel") is True
    assert "run-cancel" in registry
    assert run.running is False
    assert run.state.cancelled is True
    assert run.state.stage_machine.active_stage == "planner"
    assert await registry.cancel("run-cancel") is False


@pytest.mark.asyncio
async def test_discard_removes_run():
    registry = RunRegistry()
    run = await registry.create(STAGES, run_id="run-discard")
    registry.start(run, _status_stream(1))

    assert await registry.discard("run-discard") is True
    assert registry.get("run-discard") is None
    assert len(registry) == 0
    assert await registry.discard("run-discard") is False


@pytest.mark.asyncio
async def test_next_event_unknown_run_and_timeout():
    """없는 run / 대기 초과 → None"""
    registry = RunRegistry()
    assert await registry.next_event("missing", timeout=0.01) is None

    await registry.create(STAGES, run_id="idle")
    assert await registry.next_event("idle", timeout=0.01) is None


@pytest.mark.asyncio
async def test_create_same_run_id_replaces_previous():
    """같은 runId 재생성 시 기존 run 취소 후 새 상태"""
    registry = RunRegistry()

    async def endless():
        while True:
            yield {"type": "status", "message": "tick"}
            await asyncio.sleep(0)

    old = await registry.create(STAGES, run_id="same")
    registry.start(old, endless())
    new = await registry.create(["only"], run_id="same")

    assert old.running is False
    assert old.state.cancelled is True
    assert registry.get("same") is new
    assert new.state.stage_machine.declared == ["only"]


@pytest.mark.asyncio
async def test_start_twice_rejected():
    registry = RunRegistry()
    run = await registry.create(STAGES)
    registry.start(run, _status_stream(0))
    with pytest.raises(ValueError):
        registry.start(run, _status_stream(0))
    await registry.shutdown()
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_events_forwarded_to_sink():
    """sink가 있으면 모든 PipelineEvent를 전달하고 종료 시 flush"""

    class RecordingSink:
        def __init__(self):
            self.events = []
            self.flushed = 0

        async def add(self, event):
            self.events.append(event)

        async def flush(self):
            self.flushed += 1
            return True

    sink = RecordingSink()
    registry = RunRegistry()
    run = await registry.create(STAGES, run_id="run-sink", sink=sink)
    registry.start(run, _status_stream(3))

    while not isinstance(await registry.next_event("run-sink", timeout=1.0), EndOfStream):
        pass
    await asyncio.wait_for(run.task, timeout=1.0)

    assert len(sink.events) == 3
    assert sink.flushed == 1


async def _drain(registry: RunRegistry, run_id: str) -> list:
    items = []
    while True:
        item = await registry.next_event(run_id, timeout=1.0)
        assert item is not None
        items.append(item)
        if isinstance(item, EndOfStream):
            return items


@pytest.mark.asyncio
async def test_background_run_with_malformed_source_reaches_end():
    """url이 문자열이 아닌 검색 결과가 있어도 백그라운드 run은 END까지 전달"""
    registry = RunRegistry()
    run = await registry.create(STAGES, run_id="run-malformed")

    async def upstream():
        yield {"type": "stage_change", "stage": "planner"}
        yield {"type": "tool_use", "toolName": "x", "results": [{"url": 7}]}

    registry.start(run, upstream())
    items = await _drain(registry, "run-malformed")
    await asyncio.wait_for(run.task, timeout=1.0)

    assert [type(i).__name__ for i in items] == ["StageChangeEvent", "ToolUseEvent", "EndOfStream"]
    assert run.task.exception() is None


@pytest.mark.asyncio
async def test_background_run_relay_fault_forwarded_to_queue(monkeypatch):
    """상태 반영 실패 시 큐에 error 1건과 END가 들어가고 태스크는 정상 종료"""
    registry = RunRegistry()
    run = await registry.create(STAGES, run_id="run-fault")

    def failing_apply(event):
        raise AttributeError("broken state")

    monkeypatch.setattr(run.state, "apply", failing_apply)
    registry.start(run, _status_stream(3))
    items = await _drain(registry, "run-fault")
    await asyncio.wait_for(run.task, timeout=1.0)

    assert len(items) == 2
    assert isinstance(items[0], ErrorEvent)
    assert items[0].errorType == "RelayFault"
    assert run.task.exception() is None
    assert run.state.terminal is True
    assert run.state.error == items[0].error


@pytest.mark.asyncio
async def test_prune_evicts_only_expired_finished_runs():
    """run_ttl이 지난 종료 run만 제거, 실행 중·미종료 run은 유지"""
    registry = RunRegistry(run_ttl=60)
    finished = await registry.create(STAGES, run_id="finished")
    finished.state.mark_failed("boom")
    fresh = await registry.create(STAGES, run_id="fresh")
    fresh.state.mark_cancelled()
    await registry.create(STAGES, run_id="idle")

    later = finished.state.finished_at + timedelta(seconds=61)
    fresh.state.finished_at = later - timedelta(seconds=1)

    assert registry.prune(now=later) == 1
    assert "finished" not in registry
    assert "fresh" in registry
    assert "idle" in registry


@pytest.mark.asyncio
async def test_create_prunes_expired_runs():
    registry = RunRegistry(run_ttl=0.01)
    old = await registry.create(STAGES, run_id="old")
    old.state.mark_failed("boom")
    await asyncio.sleep(0.05)

    await registry.create(STAGES, run_id="new")

    assert "old" not in registry
    assert "new" in registry


@pytest.mark.asyncio
async def test_without_ttl_finished_runs_are_kept():
    registry = RunRegistry()
    run = await registry.create(STAGES, run_id="kept")
    run.state.mark_failed("boom")
    assert registry.prune() == 0
    assert "kept" in registry
