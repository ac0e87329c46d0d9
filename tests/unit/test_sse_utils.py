"""
SSE 유틸 단위 테스트
"""

import json

from api.sse_utils import (
    SSE_DONE,
    format_pipeline_event,
    format_sse_event,
    format_sse_line,
)
from core.pipeline.schemas import END_OF_STREAM, StageChangeEvent, ToolUseEvent


def _data(frame: str) -> dict:
    line = next(l for l in frame.splitlines() if l.startswith("data: "))
    return json.loads(line[len("data: "):])


def test_format_sse_event_with_and_without_id():
    with_id = format_sse_event("status", {"message": "안녕"}, event_id="7")
    without_id = format_sse_event("status", {"message": "안녕"})

    assert with_id.startswith("id: 7\nevent: status\n")
    assert with_id.endswith("\n\n")
    assert "안녕" in with_id
    assert without_id == format_sse_line("status", {"message": "안녕"})


def test_pipeline_event_frame_uses_type_as_event_name():
    frame = format_pipeline_event(StageChangeEvent(stage="planner"), "1", {"runId": "r1"})

    assert "event: stage_change\n" in frame
    data = _data(frame)
    assert data["type"] == "stage_change"
    assert data["stage"] == "planner"
    assert data["runId"] == "r1"
    assert data["version"] == "1.0"


def test_none_fields_excluded_from_payload():
    frame = format_pipeline_event(ToolUseEvent(toolName="web_search", sources=[{"locator": "https://a"}]))
    source = _data(frame)["sources"][0]
    assert source["locator"] == "https://a"
    assert "author" not in source


def test_end_of_stream_is_done_sentinel():
    assert format_pipeline_event(END_OF_STREAM, "9") == SSE_DONE
