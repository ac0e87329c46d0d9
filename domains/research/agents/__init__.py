"""
Research Domain Agents

리서치 파이프라인 에이전트 (planner → web-search → report-writer)
"""

from domains.research.agents.research_agent import (
    RESEARCH_STAGES,
    ResearchAgent,
    get_research_agent,
)

__all__ = ["RESEARCH_STAGES", "ResearchAgent", "get_research_agent"]
