"""
Web Search Tool

research agent의 web-search stage에서 사용하는 외부 검색. Tavily Search API (langchain-community).
검색 결과는 url/title/content 구조를 유지한 dict 목록으로 반환하여
릴레이가 SourceRecord(locator=url)로 변환·중복 제거할 수 있도록 합니다.
"""

import logging
from typing import Any

from langchain_community.tools.tavily_search import TavilySearchResults
from langchain_community.utilities.tavily_search import TavilySearchAPIWrapper

from core.config import settings

logger = logging.getLogger(__name__)

_tavily_tool: TavilySearchResults | None = None


def _get_tavily_tool() -> TavilySearchResults | None:
    """TavilySearchResults 도구 (TAVILY_API_KEY 설정 시). 미설정이면 None."""
    global _tavily_tool
    if _tavily_tool is not None:
        return _tavily_tool
    if not settings.tavily_api_key:
        return None
    _tavily_tool = TavilySearchResults(
        max_results=settings.web_search_max_results,
        api_wrapper=TavilySearchAPIWrapper(tavily_api_key=settings.tavily_api_key),
        include_answer=False,
        include_raw_content=False,
    )
    return _tavily_tool


def _normalize_results(raw: Any) -> list[dict[str, Any]]:
    """Tavily 응답(list 또는 {"results": [...]}) → url이 있는 결과만"""
    if isinstance(raw, dict):
        raw = raw.get("results", [])
    if not isinstance(raw, list):
        return []
    results: list[dict[str, Any]] = []
    for r in raw:
        if not isinstance(r, dict):
            continue
        url = (r.get("url") or r.get("link") or "").strip()
        if not url:
            continue
        results.append({
            "url": url,
            "title": (r.get("title") or r.get("name") or "").strip(),
            "content": r.get("content") or r.get("snippet") or "",
            **({"author": r["author"]} if r.get("author") else {}),
        })
    return results


async def search_web(query: str) -> list[dict[str, Any]]:
    """
    외부 웹 검색 실행

    Args:
        query: 검색 쿼리

    Returns:
        [{"url", "title", "content", "author"?}, ...]. 검색 불가/실패 시 빈 목록.
    """
    tavily = _get_tavily_tool()
    if tavily is None:
        logger.warning("Web search skipped (TAVILY_API_KEY not configured): %s", query)
        return []
    try:
        raw = await tavily.ainvoke({"query": query})
    except Exception as e:
        logger.warning("Tavily search failed for %r: %s", query, e)
        return []
    return _normalize_results(raw)


def format_search_results(results: list[dict[str, Any]], max_chars: int = 500) -> str:
    """
    검색 결과를 원문 URL이 유지된 문자열로 포맷.
    LLM이 인용 시 [title](url) 마크다운 링크로 사용할 수 있도록 함.
    """
    parts: list[str] = []
    for i, r in enumerate(results, 1):
        title = r.get("title") or f"Result {i}"
        url = r.get("url") or ""
        content = (r.get("content") or "")[:max_chars]
        parts.append(f"[{title}]({url})\n{content}" if url else f"{title}\n{content}")
    return "\n\n---\n\n".join(parts) if parts else "No search results."
