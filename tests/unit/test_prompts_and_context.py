"""
프롬프트 로더 / run 컨텍스트 단위 테스트
"""

import pytest

from core.context import get_run_context, get_sink_headers, set_run_context
from core.llm.prompts import get_research_prompt, reload_yaml_prompts


def test_planner_prompt_formats_max_queries():
    """YAML 프롬프트 로드 + 템플릿 변수 치환"""
    reload_yaml_prompts()
    prompt = get_research_prompt("planner", max_queries=4)
    assert "at most 4" in prompt
    assert "{max_queries}" not in prompt


def test_report_writer_prompt_and_unknown_stage():
    assert "[title](url)" in get_research_prompt("report_writer")
    with pytest.raises(KeyError):
        get_research_prompt("reviewer")


def test_run_context_and_sink_headers():
    """설정된 값만 헤더에 포함"""
    set_run_context(run_id="run-ctx", request_id="req-1", tenant="t1")

    ctx = get_run_context()
    assert ctx["run_id"] == "run-ctx"
    assert ctx["tenant"] == "t1"

    headers = get_sink_headers()
    assert headers["X-Run-ID"] == "run-ctx"
    assert headers["X-Request-ID"] == "req-1"
    assert "X-Trace-ID" not in headers
    assert headers["Content-Type"] == "application/json"
