"""
System Prompts Module

research agent의 stage별 시스템 프롬프트를 정의합니다.

YAML 기반 외부 프롬프트 파일(prompts/research.yaml)을 우선 로드하여
코드 수정 없이 프롬프트를 관리할 수 있습니다. 파일이 없으면 코드 내 기본값을 사용합니다.
"""
import logging
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

# ==================== YAML Prompt Loader ====================
_PROMPTS_DIR = Path(__file__).parent / "prompts"
_yaml_prompt_cache: dict[str, dict[str, Any]] = {}


def _load_yaml_prompt(filename: str) -> dict[str, Any] | None:
    """
    YAML 프롬프트 파일을 로드합니다. 캐싱 적용.

    Args:
        filename: 프롬프트 파일명 (예: "research.yaml")

    Returns:
        파싱된 YAML dict 또는 None (파일 없음/파싱 실패)
    """
    if filename in _yaml_prompt_cache:
        return _yaml_prompt_cache[filename]

    filepath = _PROMPTS_DIR / filename
    if not filepath.exists():
        logger.debug("YAML prompt file not found: %s", filepath)
        return None

    try:
        with open(filepath, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to load YAML prompt %s: %s", filename, e)
        return None

    if not isinstance(data, dict):
        logger.warning("YAML prompt %s is not a mapping, ignoring", filename)
        return None
    _yaml_prompt_cache[filename] = data
    logger.info("Loaded YAML prompt: %s (version: %s)", filename, data.get("version", "unknown"))
    return data


def reload_yaml_prompts() -> None:
    """YAML 프롬프트 캐시를 클리어하여 다음 호출 시 재로드합니다."""
    _yaml_prompt_cache.clear()
    logger.info("YAML prompt cache cleared")


# ==================== Default Prompts ====================
DEFAULT_RESEARCH_PROMPTS: dict[str, str] = {
    "planner": """
You are the planning stage of a research pipeline.
Break the user's research question into at most {max_queries} focused web search queries.
Return one query per line, with no numbering and no commentary.
""",
    "report_writer": """
You are the report-writing stage of a research pipeline.
Write a concise, well-structured markdown report answering the user's question.
Base every claim on the provided sources and cite them inline as [title](url).
If the sources are insufficient, say so explicitly.
""",
}


def get_research_prompt(stage: str, **kwargs: Any) -> str:
    """
    research agent stage별 시스템 프롬프트 반환

    Args:
        stage: "planner" | "report_writer"
        **kwargs: 프롬프트 템플릿 변수 (예: max_queries)

    Returns:
        포맷된 시스템 프롬프트

    Raises:
        KeyError: 알 수 없는 stage
    """
    yaml_data = _load_yaml_prompt("research.yaml")
    prompts = (yaml_data or {}).get("prompts", {})
    template = prompts.get(stage) or DEFAULT_RESEARCH_PROMPTS[stage]
    return template.format(**kwargs).strip() if kwargs else template.strip()
