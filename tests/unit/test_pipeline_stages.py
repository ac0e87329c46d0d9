"""
Stage State Machine 단위 테스트

pending → active → completed/error 전이, 단일 active 보장, 선언 순서 보장 검증
"""

import pytest

from core.pipeline.errors import InvalidStageTransition, UnknownStage
from core.pipeline.schemas import StageStatus
from core.pipeline.stages import StageStateMachine, normalize_stage_names

STAGES = ["planner", "web-search", "report-writer"]


def _statuses(machine: StageStateMachine) -> dict[str, StageStatus]:
    return {s.name: s.status for s in machine.snapshot()}


def _active_count(machine: StageStateMachine) -> int:
    return sum(1 for s in machine.snapshot() if s.status == StageStatus.ACTIVE)


def test_initial_stages_pending_in_declared_order():
    """초기 상태: 선언 순서대로 모두 pending"""
    machine = StageStateMachine(STAGES)
    snapshot = machine.snapshot()
    assert [s.name for s in snapshot] == STAGES
    assert all(s.status == StageStatus.PENDING for s in snapshot)
    assert machine.active_stage is None
    assert machine.terminal is False


def test_activation_completes_previous_stage():
    """다음 stage 활성화 시 이전 active stage는 completed"""
    machine = StageStateMachine(STAGES)
    machine.activate("planner")
    machine.activate("web-search")

    statuses = _statuses(machine)
    assert statuses["planner"] == StageStatus.COMPLETED
    assert statuses["web-search"] == StageStatus.ACTIVE
    assert statuses["report-writer"] == StageStatus.PENDING

    planner = machine.snapshot()[0]
    assert planner.startTime is not None
    assert planner.endTime is not None
    assert planner.endTime >= planner.startTime


def test_result_example_leaves_skipped_stage_pending():
    """planner, web-search 후 result → completed, completed, pending / 종료 상태"""
    machine = StageStateMachine(STAGES)
    machine.activate("planner")
    machine.activate("web-search")
    machine.finish(failed=False)

    assert _statuses(machine) == {
        "planner": StageStatus.COMPLETED,
        "web-search": StageStatus.COMPLETED,
        "report-writer": StageStatus.PENDING,
    }
    assert machine.terminal is True
    assert machine.active_stage is None


def test_error_marks_active_stage_error():
    """error 수신 시 active stage는 error"""
    machine = StageStateMachine(STAGES)
    machine.activate("planner")
    machine.finish(failed=True)

    assert _statuses(machine)["planner"] == StageStatus.ERROR
    assert machine.terminal is True


def test_unknown_stage_leaves_state_unchanged():
    """선언되지 않은 stage → UnknownStage, 상태 변경 없음"""
    machine = StageStateMachine(STAGES)
    machine.activate("planner")
    before = machine.snapshot()

    with pytest.raises(UnknownStage) as exc_info:
        machine.activate("reviewer")

    assert exc_info.value.stage == "reviewer"
    assert machine.snapshot() == before


def test_reentry_refreshes_timestamp_only():
    """이미 active인 stage 재진입은 타임스탬프만 갱신"""
    machine = StageStateMachine(STAGES)
    first = machine.activate("planner")
    second = machine.activate("planner")

    assert second.status == StageStatus.ACTIVE
    assert second.startTime >= first.startTime
    assert _active_count(machine) == 1
    assert _statuses(machine)["web-search"] == StageStatus.PENDING


def test_completed_stage_cannot_reactivate():
    """completed stage 재활성화 거부"""
    machine = StageStateMachine(STAGES)
    machine.activate("planner")
    machine.activate("web-search")
    before = machine.snapshot()

    with pytest.raises(InvalidStageTransition):
        machine.activate("planner")
    assert machine.snapshot() == before


def test_backward_activation_of_skipped_stage_rejected():
    """건너뛴 stage를 뒤늦게 활성화하면 선언 순서 역행으로 거부"""
    machine = StageStateMachine(STAGES)
    machine.activate("planner")
    machine.activate("report-writer")

    with pytest.raises(InvalidStageTransition):
        machine.activate("web-search")
    assert _statuses(machine)["web-search"] == StageStatus.PENDING
    assert machine.active_stage == "report-writer"


def test_no_stage_change_after_terminal():
    """종료 상태 이후 stage_change 거부"""
    machine = StageStateMachine(STAGES)
    machine.activate("planner")
    machine.finish()

    with pytest.raises(InvalidStageTransition):
        machine.activate("web-search")
    assert _statuses(machine)["web-search"] == StageStatus.PENDING


def test_at_most_one_active_and_order_non_decreasing():
    """임의 입력 시퀀스에서 active ≤ 1, 활성화 순서 비감소"""
    sequence = [
        "planner", "planner", "reviewer", "report-writer", "web-search",
        "planner", "report-writer", "unknown", "web-search",
    ]
    machine = StageStateMachine(STAGES)
    activated: list[int] = []
    for name in sequence:
        try:
            stage = machine.activate(name)
        except (UnknownStage, InvalidStageTransition):
            pass
        else:
            activated.append(STAGES.index(stage.name))
        assert _active_count(machine) <= 1

    assert activated == sorted(activated)


def test_reset_restores_pending():
    """reset: 모든 stage pending, 종료 해제"""
    machine = StageStateMachine(STAGES)
    machine.activate("planner")
    machine.finish()
    machine.reset()

    assert all(s.status == StageStatus.PENDING for s in machine.snapshot())
    assert machine.terminal is False
    machine.activate("web-search")
    assert machine.active_stage == "web-search"


def test_normalize_stage_names_rejects_empty_and_duplicates():
    """stage 목록 검증"""
    assert normalize_stage_names([" planner ", "web-search"]) == ["planner", "web-search"]
    with pytest.raises(ValueError):
        normalize_stage_names([])
    with pytest.raises(ValueError):
        normalize_stage_names(["planner", "planner"])
