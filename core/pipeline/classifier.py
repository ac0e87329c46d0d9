"""
Event Classifier

에이전트 런타임이 발행한 원본 이벤트를 PipelineEvent 하나로 분류합니다.
부수 효과 없음. 분류 불가 시 UnrecognizedEvent를 발생시키고, 릴레이가 status 이벤트로 변환합니다.

지원하는 원본 형식:
- 구조화 레코드: {"type": "stage_change" | "status" | "tool_use" | "result" | "error", ...}
- Agent SDK 메시지: {"type": "assistant" | "system" | "result", ...}
- LangGraph 스트림 튜플: ("custom", chunk) / ("updates", {node: data})
- 자유 텍스트: "STAGE: <name>" 마커 라인 (stage_markers=True일 때만)
"""

import json
import re
from typing import Any

from core.pipeline.errors import UnrecognizedEvent
from core.pipeline.schemas import (
    ErrorEvent,
    PipelineEvent,
    PipelineEventType,
    ResultEvent,
    SourceRecord,
    StageChangeEvent,
    StatusEvent,
    StatusLevel,
    ToolUseEvent,
)

# 한 줄 전체가 마커여야 함 (본문 중간의 "STAGE:" 문자열은 무시)
STAGE_MARKER_PATTERN = re.compile(r"^[ \t]*STAGE:[ \t]*([A-Za-z0-9][\w-]*)[ \t]*$", re.MULTILINE)

# 검색 결과 발췌 최대 길이
SNIPPET_MAX_CHARS = 500

_LEVELS = {level.value for level in StatusLevel}


def classify_event(raw: Any, *, stage_markers: bool = False) -> PipelineEvent:
    """
    원본 이벤트 1건을 PipelineEvent로 분류

    Args:
        raw: 에이전트 런타임 이벤트 (dict, (mode, chunk) 튜플, 텍스트)
        stage_markers: 자유 텍스트의 "STAGE: X" 마커를 stage_change로 해석할지 여부

    Returns:
        PipelineEvent (stage_change, status, tool_use, result, error 중 하나)

    Raises:
        UnrecognizedEvent: 분류 불가 (필드 타입 오류 포함)
    """
    try:
        return _classify_record(raw, stage_markers)
    except UnrecognizedEvent:
        raise
    except (TypeError, ValueError, AttributeError) as e:
        # pydantic ValidationError는 ValueError 하위 클래스
        raise UnrecognizedEvent(raw, f"Malformed event record: {e.__class__.__name__}") from e


def _classify_record(raw: Any, stage_markers: bool) -> PipelineEvent:
    if isinstance(raw, tuple) and len(raw) == 2 and isinstance(raw[0], str):
        return _classify_graph_chunk(raw[0], raw[1], stage_markers)
    if isinstance(raw, str):
        return _classify_text(raw, stage_markers, raw)
    if not isinstance(raw, dict):
        raise UnrecognizedEvent(raw, f"Unsupported event record: {type(raw).__name__}")

    event_type = raw.get("type")
    metadata = raw.get("metadata") if isinstance(raw.get("metadata"), dict) else {}

    if event_type == PipelineEventType.STAGE_CHANGE:
        stage = raw.get("stage")
        if not isinstance(stage, str) or not stage.strip():
            raise UnrecognizedEvent(raw, "stage_change event without stage name")
        return StageChangeEvent(
            stage=stage.strip(),
            message=str(raw.get("message") or ""),
            metadata=metadata,
        )

    if event_type == PipelineEventType.STATUS:
        return StatusEvent(
            message=str(raw.get("message") or ""),
            level=_normalize_level(raw.get("level")),
            metadata=metadata,
        )

    if event_type == PipelineEventType.TOOL_USE:
        return _classify_tool_use(raw, metadata)

    if event_type == PipelineEventType.RESULT:
        content = raw.get("content", raw.get("result"))
        if raw.get("is_error"):
            return ErrorEvent(
                error=str(content or "Agent run reported an error"),
                errorType=str(raw.get("subtype") or "result_error"),
                metadata=metadata,
            )
        if content is None:
            raise UnrecognizedEvent(raw, "result event without content")
        return ResultEvent(content=str(content), metadata=metadata)

    if event_type == PipelineEventType.ERROR:
        return ErrorEvent(
            error=str(raw.get("error") or raw.get("message") or "Unknown error"),
            errorType=str(raw.get("errorType") or "unknown"),
            metadata=metadata,
        )

    if event_type == "assistant":
        return _classify_assistant(raw, stage_markers)

    if event_type == "system":
        return StatusEvent(
            message=str(raw.get("message") or raw.get("subtype") or "system"),
            metadata={k: v for k, v in raw.items() if k not in ("type", "message")},
        )

    raise UnrecognizedEvent(raw, f"Unknown event type: {event_type!r}")


def extract_sources(results: Any) -> list[SourceRecord]:
    """
    검색 결과 목록 → SourceRecord 목록.
    문자열 url/link/locator가 없는 항목은 건너뜀. title/author는 문자열로 변환.
    """
    if not isinstance(results, list):
        return []
    sources: list[SourceRecord] = []
    for r in results:
        if isinstance(r, SourceRecord):
            sources.append(r)
            continue
        if not isinstance(r, dict):
            continue
        locator = _first_text(r, "locator", "url", "link", strings_only=True)
        if not locator:
            continue
        snippet = _first_text(r, "snippet", "content", "body")
        sources.append(
            SourceRecord(
                locator=locator,
                title=_first_text(r, "title", "name"),
                author=_first_text(r, "author") or None,
                snippet=snippet[:SNIPPET_MAX_CHARS] if snippet else None,
            )
        )
    return sources


def _first_text(record: dict[str, Any], *keys: str, strings_only: bool = False) -> str:
    """keys 순서대로 첫 번째 비어 있지 않은 값 (문자열 아닌 스칼라는 str 변환, 목록/dict는 무시)"""
    for key in keys:
        value = record.get(key)
        if value is None or isinstance(value, (dict, list, tuple, set, bool)):
            continue
        if strings_only and not isinstance(value, str):
            continue
        text = value.strip() if isinstance(value, str) else str(value).strip()
        if text:
            return text
    return ""


def preserve_raw(raw: Any) -> Any:
    """진단 이벤트에 실을 수 있도록 원본을 JSON 호환 값으로 변환"""
    try:
        return json.loads(json.dumps(raw, default=str, ensure_ascii=False))
    except (TypeError, ValueError):
        return repr(raw)


def _normalize_level(level: Any) -> StatusLevel:
    if isinstance(level, str) and level.upper() in _LEVELS:
        return StatusLevel(level.upper())
    if isinstance(level, str) and level.upper() == "WARNING":
        return StatusLevel.WARN
    return StatusLevel.INFO


def _classify_tool_use(raw: dict[str, Any], metadata: dict[str, Any]) -> ToolUseEvent:
    tool_name = raw.get("toolName") or raw.get("name")
    if not isinstance(tool_name, str) or not tool_name:
        raise UnrecognizedEvent(raw, "tool_use event without tool name")
    tool_input = raw.get("toolInput", raw.get("input"))
    return ToolUseEvent(
        toolName=tool_name,
        toolInput=tool_input if isinstance(tool_input, dict) else {},
        sources=extract_sources(raw.get("results", raw.get("sources"))),
        metadata=metadata,
    )


def _classify_assistant(raw: dict[str, Any], stage_markers: bool) -> PipelineEvent:
    """assistant 메시지: stage 마커 > tool_use 블록 > 텍스트 순으로 분류"""
    message = raw.get("message")
    content = message.get("content") if isinstance(message, dict) else raw.get("content")

    if isinstance(content, str):
        return _classify_text(content, stage_markers, raw)
    if not isinstance(content, list):
        raise UnrecognizedEvent(raw, "assistant message without content")

    texts: list[str] = []
    tool_block: dict[str, Any] | None = None
    for block in content:
        if not isinstance(block, dict):
            continue
        if block.get("type") == "text" and isinstance(block.get("text"), str):
            texts.append(block["text"])
        elif block.get("type") == "tool_use" and tool_block is None:
            tool_block = block

    text = "\n".join(texts)
    if stage_markers and STAGE_MARKER_PATTERN.search(text):
        return _classify_text(text, stage_markers, raw)
    if tool_block is not None:
        return _classify_tool_use(tool_block, {"toolUseId": tool_block.get("id")} if tool_block.get("id") else {})
    return _classify_text(text, stage_markers, raw)


def _classify_text(text: str, stage_markers: bool, raw: Any) -> PipelineEvent:
    stripped = text.strip()
    if not stripped:
        raise UnrecognizedEvent(raw, "empty text event")
    if stage_markers:
        match = STAGE_MARKER_PATTERN.search(stripped)
        if match:
            return StageChangeEvent(stage=match.group(1), message=stripped)
    return StatusEvent(message=stripped)


def _classify_graph_chunk(mode: str, chunk: Any, stage_markers: bool) -> PipelineEvent:
    """LangGraph astream(stream_mode=[...]) 튜플 분류"""
    if mode == "custom":
        if isinstance(chunk, tuple):
            raise UnrecognizedEvent((mode, chunk), "nested stream tuple")
        return classify_event(chunk, stage_markers=stage_markers)

    if mode == "updates":
        if not isinstance(chunk, dict) or not chunk:
            raise UnrecognizedEvent((mode, chunk), "empty graph update")
        nodes = [str(n) for n in chunk]
        keys = sorted({k for v in chunk.values() if isinstance(v, dict) for k in v})
        return StatusEvent(
            message=f"{', '.join(nodes)} updated",
            metadata={"nodes": nodes, "keys": keys},
        )

    raise UnrecognizedEvent((mode, chunk), f"Unsupported stream mode: {mode!r}")
