"""
Pipeline Error Taxonomy

릴레이가 처리하는 오류 분류.
- 복구 가능(recoverable): status 이벤트로 변환되어 전달되고 실행은 계속됨
- 치명적(UpstreamFault): error 이벤트 1건 + 종료 마커 후 스트림 종료
"""

from typing import Any, Sequence


class PipelineError(Exception):
    """파이프라인 오류 기본 클래스"""

    error_type: str = "PipelineError"
    recoverable: bool = True


class UnrecognizedEvent(PipelineError):
    """분류할 수 없는 원본 이벤트 (raw 페이로드 보존)"""

    error_type = "UnrecognizedEvent"

    def __init__(self, raw: Any, reason: str = "unrecognized event") -> None:
        self.raw = raw
        self.reason = reason
        super().__init__(reason)


class UnknownStage(PipelineError):
    """선언되지 않은 stage 이름으로 stage_change 수신"""

    error_type = "UnknownStage"

    def __init__(self, stage: str, declared: Sequence[str]) -> None:
        self.stage = stage
        self.declared = list(declared)
        super().__init__(
            f"Unknown stage '{stage}' (declared: {', '.join(self.declared)})"
        )


class InvalidStageTransition(PipelineError):
    """선언된 stage지만 현재 상태에서 활성화할 수 없음 (역행, 완료됨, 종료 후)"""

    error_type = "InvalidStageTransition"

    def __init__(self, stage: str, reason: str) -> None:
        self.stage = stage
        self.reason = reason
        super().__init__(f"Cannot activate stage '{stage}': {reason}")


class UpstreamFault(PipelineError):
    """프로듀서(에이전트 런타임) 실패. 해당 run에 치명적."""

    error_type = "UpstreamFault"
    recoverable = False

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        detail = str(cause) or cause.__class__.__name__
        super().__init__(f"Upstream failed: {cause.__class__.__name__}: {detail}")


class RelayFault(PipelineError):
    """릴레이 내부 처리(분류 이후 상태 반영 등) 중 예상치 못한 실패. 해당 run에 치명적."""

    error_type = "RelayFault"
    recoverable = False

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        detail = str(cause) or cause.__class__.__name__
        super().__init__(f"Relay failed: {cause.__class__.__name__}: {detail}")
