"""
Tools Module

research agent가 사용하는 도구들을 포함합니다.
- Web Search Tool: Tavily 기반 외부 검색
"""

__all__ = []
