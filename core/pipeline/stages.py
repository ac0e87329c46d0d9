"""
Stage State Machine

선언된 stage 목록의 진행 상태를 추적합니다.

pending → active → completed (결과 수신 시) | error (에러 수신 시)
- 동시에 active인 stage는 최대 1개
- 활성화 순서는 선언 순서를 역행하지 않음 (건너뛴 stage는 pending 유지)
- result/error 수신 후 종료 상태: 이후 stage_change는 거부
"""

import logging
from datetime import datetime
from typing import Sequence

from core.pipeline.errors import InvalidStageTransition, UnknownStage
from core.pipeline.schemas import StageDescriptor, StageStatus, utc_now

logger = logging.getLogger(__name__)


def normalize_stage_names(stages: Sequence[str]) -> list[str]:
    """stage 목록 정규화 (공백 제거). 비었거나 중복이면 ValueError."""
    names = [s.strip() for s in stages if isinstance(s, str) and s.strip()]
    if not names:
        raise ValueError("At least one stage must be declared")
    if len(set(names)) != len(names):
        raise ValueError(f"Duplicate stage names: {names}")
    return names


class StageStateMachine:
    """
    고정된 stage 목록의 상태 머신

    run 시작 시 선언된 순서로 모든 stage를 pending으로 초기화합니다.
    """

    def __init__(self, stages: Sequence[str]) -> None:
        self._names = normalize_stage_names(stages)
        self._index = {name: i for i, name in enumerate(self._names)}
        self._stages: list[StageDescriptor] = []
        self._last_activated = -1
        self._terminal = False
        self.reset()

    @property
    def declared(self) -> list[str]:
        return list(self._names)

    @property
    def terminal(self) -> bool:
        return self._terminal

    @property
    def active_stage(self) -> str | None:
        for stage in self._stages:
            if stage.status == StageStatus.ACTIVE:
                return stage.name
        return None

    def reset(self) -> None:
        """모든 stage를 pending으로 되돌림"""
        self._stages = [StageDescriptor(name=name) for name in self._names]
        self._last_activated = -1
        self._terminal = False

    def activate(self, name: str, now: datetime | None = None) -> StageDescriptor:
        """
        stage_change 적용

        Args:
            name: 활성화할 stage 이름
            now: 전환 시각 (None이면 현재 UTC)

        Returns:
            활성화된 stage의 스냅샷

        Raises:
            UnknownStage: 선언되지 않은 stage (상태 변경 없음)
            InvalidStageTransition: 종료 후, 완료된 stage, 선언 순서 역행 (상태 변경 없음)
        """
        if name not in self._index:
            raise UnknownStage(name, self._names)
        if self._terminal:
            raise InvalidStageTransition(name, "run already reached a terminal state")

        now = now or utc_now()
        idx = self._index[name]
        target = self._stages[idx]

        if target.status == StageStatus.ACTIVE:
            # 재진입: 타임스탬프만 갱신
            target.startTime = now
            return target.model_copy()
        if target.status != StageStatus.PENDING:
            raise InvalidStageTransition(name, f"stage is already {target.status.value}")
        if idx < self._last_activated:
            raise InvalidStageTransition(
                name,
                f"declared before already activated stage '{self._names[self._last_activated]}'",
            )

        for stage in self._stages:
            if stage.status == StageStatus.ACTIVE:
                stage.status = StageStatus.COMPLETED
                stage.endTime = now
        target.status = StageStatus.ACTIVE
        target.startTime = now
        target.endTime = None
        self._last_activated = idx
        logger.debug("Stage activated: %s", name)
        return target.model_copy()

    def finish(self, failed: bool = False, now: datetime | None = None) -> None:
        """
        종료 처리: active stage를 completed(failed면 error)로 전환하고 종료 상태로 표시.
        이미 종료 상태면 아무 것도 하지 않음.
        """
        if self._terminal:
            return
        now = now or utc_now()
        final_status = StageStatus.ERROR if failed else StageStatus.COMPLETED
        for stage in self._stages:
            if stage.status == StageStatus.ACTIVE:
                stage.status = final_status
                stage.endTime = now
        self._terminal = True

    def snapshot(self) -> list[StageDescriptor]:
        """선언 순서대로 stage 스냅샷 (복사본)"""
        return [stage.model_copy() for stage in self._stages]
