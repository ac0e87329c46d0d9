"""
Settings 단위 테스트
"""

import pytest
from pydantic import ValidationError

from core.config import Settings


def test_default_pipeline_stages():
    config = Settings()
    assert config.stage_list == ["planner", "web-search", "report-writer"]
    assert config.stage_marker_enabled is False
    assert config.event_sink_config is None
    assert config.run_ttl_seconds == 3600.0


def test_pipeline_stages_from_env(monkeypatch):
    """PIPELINE_STAGES 환경변수: 공백 정규화"""
    monkeypatch.setenv("PIPELINE_STAGES", " outline , draft ,review")
    config = Settings()
    assert config.stage_list == ["outline", "draft", "review"]


@pytest.mark.parametrize("value", ["", " , ", "planner,planner"])
def test_invalid_pipeline_stages_rejected(value):
    with pytest.raises(ValidationError):
        Settings(pipeline_stages=value)


def test_app_env_and_log_level_validation():
    config = Settings(app_env="Production", log_level="debug")
    assert config.is_production is True
    assert config.log_level == "DEBUG"

    with pytest.raises(ValidationError):
        Settings(app_env="qa")
    with pytest.raises(ValidationError):
        Settings(log_level="verbose")


def test_event_sink_config_when_url_set():
    config = Settings(event_sink_url="http://sink.local/events", event_sink_max_retries=0)
    assert config.event_sink_config == {
        "push_url": "http://sink.local/events",
        "batch_size": 10,
        "timeout": 10.0,
        "max_retries": 0,
    }
