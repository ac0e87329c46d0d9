"""
Run-scoped context for async operations.

이벤트 sink push 시 run/trace 헤더를 전달하기 위해
run 스코프 컨텍스트를 제공합니다. (백그라운드 태스크는 생성 시점의 컨텍스트를 복사)
"""

from contextvars import ContextVar
from typing import Any

# run 스코프: run_id, trace_id, request_id
_run_context: ContextVar[dict[str, Any]] = ContextVar(
    "run_context",
    default={},
)


def set_run_context(
    run_id: str,
    trace_id: str | None = None,
    request_id: str | None = None,
    **extra: Any,
) -> None:
    """run 컨텍스트 설정 (run 시작 시 호출)"""
    ctx: dict[str, Any] = {
        "run_id": run_id,
        "trace_id": trace_id,
        "request_id": request_id,
    }
    ctx.update(extra)
    _run_context.set(ctx)


def get_run_context() -> dict[str, Any]:
    """run 컨텍스트 조회"""
    return _run_context.get().copy()


def get_sink_headers() -> dict[str, str]:
    """
    이벤트 sink 호출용 헤더 반환.

    X-Run-ID, X-Trace-ID, X-Request-ID 포함 (설정된 값만).
    """
    ctx = get_run_context()
    headers: dict[str, str] = {
        "Content-Type": "application/json",
        "Accept": "application/json",
    }
    if ctx.get("run_id"):
        headers["X-Run-ID"] = ctx["run_id"]
    if ctx.get("trace_id"):
        headers["X-Trace-ID"] = ctx["trace_id"]
    if ctx.get("request_id"):
        headers["X-Request-ID"] = ctx["request_id"]
    return headers
