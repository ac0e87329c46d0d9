"""
Pipeline Run Store

runId별 PipelineState + 이벤트 큐 + 백그라운드 태스크.
POST가 백그라운드 run을 시작하고, SSE 스트림이 큐에서 이벤트를 읽어 전송합니다.
큐는 bounded이며 가득 차면 프로듀서가 대기합니다 (이벤트 drop 없음).
"""

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterable, Sequence

from core.pipeline.relay import relay_events
from core.pipeline.schemas import EndOfStream, PipelineEventBase
from core.pipeline.sink import EventSinkWriter
from core.pipeline.state import PipelineState

logger = logging.getLogger(__name__)

RelayItem = PipelineEventBase | EndOfStream


@dataclass
class PipelineRun:
    """run 1건: 상태, 이벤트 큐, 백그라운드 태스크"""
    state: PipelineState
    queue: asyncio.Queue[RelayItem]
    task: asyncio.Task[None] | None = None
    sink: EventSinkWriter | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def run_id(self) -> str:
        return self.state.run_id

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()


class RunRegistry:
    """
    run 레지스트리

    app.state에 보관되는 명시적 객체. run마다 독립된 PipelineState를 소유합니다.
    종료(완료·실패·취소)된 run은 run_ttl초 동안 조회 가능하며, 이후 새 run 생성 시 제거됩니다.
    run_ttl이 None이면 DELETE 전까지 보존합니다.
    """

    def __init__(self, queue_maxsize: int = 256, run_ttl: float | None = None) -> None:
        self._queue_maxsize = queue_maxsize
        self._run_ttl = run_ttl
        self._runs: dict[str, PipelineRun] = {}

    def __len__(self) -> int:
        return len(self._runs)

    def __contains__(self, run_id: object) -> bool:
        return run_id in self._runs

    def get(self, run_id: str) -> PipelineRun | None:
        return self._runs.get(run_id)

    async def create(
        self,
        stages: Sequence[str],
        run_id: str | None = None,
        sink: EventSinkWriter | None = None,
        **metadata: Any,
    ) -> PipelineRun:
        """새 run 등록. 같은 runId의 기존 run은 취소 후 교체."""
        self.prune()
        state = PipelineState(stages, run_id=run_id)
        if state.run_id in self._runs:
            await self.discard(state.run_id)
        run = PipelineRun(
            state=state,
            queue=asyncio.Queue(maxsize=self._queue_maxsize),
            sink=sink,
            metadata=metadata,
        )
        self._runs[state.run_id] = run
        logger.info("run_store: run created run_id=%s stages=%s", state.run_id, state.stage_machine.declared)
        return run

    def start(
        self,
        run: PipelineRun,
        upstream: AsyncIterable[Any],
        *,
        stage_markers: bool = False,
    ) -> asyncio.Task[None]:
        """업스트림을 릴레이하는 백그라운드 태스크 시작"""
        if run.task is not None:
            raise ValueError(f"Run {run.run_id} already started")
        run.task = asyncio.create_task(
            self._pump(run, upstream, stage_markers),
            name=f"pipeline-run-{run.run_id}",
        )
        return run.task

    async def _pump(self, run: PipelineRun, upstream: AsyncIterable[Any], stage_markers: bool) -> None:
        try:
            async with aclosing(relay_events(upstream, run.state, stage_markers=stage_markers)) as events:
                async for item in events:
                    await run.queue.put(item)
                    if run.sink is not None and isinstance(item, PipelineEventBase):
                        await run.sink.add(item)
        except asyncio.CancelledError:
            run.state.mark_cancelled()
            raise
        finally:
            if run.sink is not None:
                await run.sink.flush()
            logger.info(
                "run_store: run finished run_id=%s terminal=%s cancelled=%s events=%d",
                run.run_id, run.state.terminal, run.state.cancelled, run.state.event_count,
            )

    async def next_event(self, run_id: str, timeout: float | None = None) -> RelayItem | None:
        """
        큐에서 다음 이벤트 조회

        Returns:
            이벤트, 또는 run이 없거나 timeout 초과 시 None
        """
        run = self._runs.get(run_id)
        if run is None:
            return None
        try:
            return await asyncio.wait_for(run.queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    async def cancel(self, run_id: str) -> bool:
        """실행 중인 run 취소. 상태는 조회 가능하게 유지."""
        run = self._runs.get(run_id)
        if run is None or not run.running:
            return False
        run.task.cancel()
        try:
            await run.task
        except asyncio.CancelledError:
            pass
        # 시작 전에 취소된 태스크는 _pump 본문을 실행하지 않음
        if not run.state.terminal and not run.state.cancelled:
            run.state.mark_cancelled()
        return True

    async def discard(self, run_id: str) -> bool:
        """run 취소 후 상태 제거"""
        if run_id not in self._runs:
            return False
        await self.cancel(run_id)
        self._runs.pop(run_id, None)
        logger.info("run_store: run discarded run_id=%s", run_id)
        return True

    async def shutdown(self) -> None:
        """모든 run 정리 (애플리케이션 종료 시)"""
        for run_id in list(self._runs):
            await self.discard(run_id)

    def prune(self, now: datetime | None = None) -> int:
        """
        보존 시간이 지난 종료 run 제거

        Returns:
            제거된 run 수
        """
        if self._run_ttl is None:
            return 0
        now = now or datetime.now(timezone.utc)
        expired = [
            run_id
            for run_id, run in self._runs.items()
            if not run.running
            and run.state.finished_at is not None
            and (now - run.state.finished_at).total_seconds() > self._run_ttl
        ]
        for run_id in expired:
            self._runs.pop(run_id, None)
        if expired:
            logger.info("run_store: pruned %d expired runs", len(expired))
        return len(expired)
