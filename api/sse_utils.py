"""
SSE(Server-Sent Events) 공통 유틸

라우트 간 중복을 줄이기 위한 헤더·포맷 헬퍼.
"""

import json
from typing import Any

from core.pipeline.schemas import EndOfStream, PipelineEventBase

# 스트리밍 응답에 공통으로 사용하는 헤더 (프록시·nginx 버퍼링 비활성화)
SSE_HEADERS = {
    "Content-Type": "text/event-stream; charset=utf-8",
    "Cache-Control": "no-cache, no-store",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

# 종료 센티널 (어떤 데이터 이벤트와도 구별됨)
SSE_DONE = "data: [DONE]\n\n"
# 연결 직후/대기 중 전송하는 코멘트 라인 (클라이언트·프록시가 스트림을 인식하도록)
SSE_CONNECTED = ": connected\n\n"
SSE_KEEPALIVE = ": keep-alive\n\n"


def format_sse_line(event_type: str, payload: dict[str, Any]) -> str:
    """
    SSE 한 줄 형식: event + data (ensure_ascii=False).
    """
    return f"event: {event_type}\ndata: {json.dumps(payload, ensure_ascii=False)}\n\n"


def format_sse_event(event_type: str, data: dict[str, Any], event_id: str | None = None) -> str:
    """
    SSE 이벤트 형식으로 변환

        id: {event_id}  # 재연결 지원을 위한 이벤트 ID
        event: {event_type}
        data: {json_data}

    event_id가 None이면 id 라인을 생략합니다.
    """
    if event_id is None:
        return format_sse_line(event_type, data)
    return f"id: {event_id}\nevent: {event_type}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


def format_pipeline_event(
    event: PipelineEventBase | EndOfStream,
    event_id: str | None = None,
    extra: dict[str, Any] | None = None,
) -> str:
    """
    릴레이 출력 1건 → SSE 프레임. EndOfStream은 [DONE] 센티널.

    Args:
        event: PipelineEvent 또는 EndOfStream
        event_id: SSE id
        extra: data에 추가할 필드 (runId 등)
    """
    if isinstance(event, EndOfStream):
        return SSE_DONE
    payload = event.to_payload()
    if extra:
        payload.update(extra)
    return format_sse_event(payload["type"], payload, event_id)
