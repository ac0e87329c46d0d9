"""
LLM (Large Language Model) Module

OpenAI 및 기타 LLM 프로바이더와의 통합을 관리합니다.
"""

from core.llm.client import get_llm_client, LLMClient
from core.llm.prompts import get_research_prompt

__all__ = ["get_llm_client", "get_research_prompt", "LLMClient"]
