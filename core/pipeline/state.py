"""
Pipeline State

run 단위로 소유되는 상태 값: stage 상태 머신, 누적 source, 최종 보고서.
해당 run의 릴레이만 변경하며, 소비자는 취소 이후에도 조회할 수 있습니다.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Sequence

from core.pipeline.schemas import (
    ErrorEvent,
    PipelineEvent,
    ResultEvent,
    StageChangeEvent,
    ToolUseEvent,
)
from core.pipeline.sources import SourceDeduplicator
from core.pipeline.stages import StageStateMachine

logger = logging.getLogger(__name__)


class PipelineState:
    """
    run 1건의 파이프라인 상태

    전역 공유 없음: run마다 독립 인스턴스를 생성해 릴레이에 전달합니다.
    """

    def __init__(self, stages: Sequence[str], run_id: str | None = None) -> None:
        self.run_id = run_id or str(uuid.uuid4())
        self.stage_machine = StageStateMachine(stages)
        self.sources = SourceDeduplicator()
        self.report = ""
        self.error: str | None = None
        self.cancelled = False
        self.event_count = 0
        self.created_at = datetime.now(timezone.utc)
        self.finished_at: datetime | None = None

    @property
    def terminal(self) -> bool:
        return self.stage_machine.terminal

    def apply(self, event: PipelineEvent) -> PipelineEvent:
        """
        분류된 이벤트를 상태에 반영하고 하류로 전달할 이벤트를 반환

        tool_use 이벤트의 sources는 이번에 새로 추가된 자료로 교체됩니다.

        Raises:
            UnknownStage, InvalidStageTransition: stage_change 거부 (상태 변경 없음)
        """
        if isinstance(event, StageChangeEvent):
            self.stage_machine.activate(event.stage, event.timestamp)
        elif isinstance(event, ToolUseEvent):
            added = self.sources.add_sources(event.sources)
            if len(added) != len(event.sources):
                event = event.model_copy(update={"sources": added})
        elif isinstance(event, ResultEvent):
            self.report = event.content
            self.stage_machine.finish(failed=False, now=event.timestamp)
            self._mark_finished(event.timestamp)
        elif isinstance(event, ErrorEvent):
            self.error = event.error
            self.stage_machine.finish(failed=True, now=event.timestamp)
            self._mark_finished(event.timestamp)
        self.event_count += 1
        return event

    def mark_failed(self, message: str) -> None:
        """프로듀서 또는 릴레이 실패로 run 종료"""
        self.error = message
        self.stage_machine.finish(failed=True)
        self._mark_finished()

    def mark_cancelled(self) -> None:
        """소비자 취소. 나머지 상태는 그대로 보존."""
        self.cancelled = True
        self._mark_finished()
        logger.info("Pipeline run cancelled: run_id=%s", self.run_id)

    def reset(self) -> None:
        """새 run 시작 또는 명시적 초기화"""
        self.stage_machine.reset()
        self.sources.clear()
        self.report = ""
        self.error = None
        self.cancelled = False
        self.event_count = 0
        self.created_at = datetime.now(timezone.utc)
        self.finished_at = None

    def _mark_finished(self, when: datetime | None = None) -> None:
        if self.finished_at is None:
            self.finished_at = when or datetime.now(timezone.utc)

    def snapshot(self) -> dict[str, Any]:
        """API 응답용 스냅샷 (JSON 호환)"""
        return {
            "runId": self.run_id,
            "stages": [s.model_dump(mode="json") for s in self.stage_machine.snapshot()],
            "activeStage": self.stage_machine.active_stage,
            "sources": [s.model_dump(mode="json") for s in self.sources.sources],
            "report": self.report,
            "error": self.error,
            "terminal": self.terminal,
            "cancelled": self.cancelled,
            "eventCount": self.event_count,
            "createdAt": self.created_at.isoformat(),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
        }
