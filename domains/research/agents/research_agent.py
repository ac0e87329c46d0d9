"""
Research Agent Module

LangGraph 기반 3단계 리서치 파이프라인 (planner → web-search → report-writer).
각 노드는 LangGraph custom stream으로 구조화 레코드를 발행합니다:
stage_change, status, tool_use(검색 결과 포함), result.
이 레코드들이 Stream Relay의 입력(프로듀서)입니다.
"""

import logging
import re
from typing import Any, AsyncIterator, Awaitable, Callable, TypedDict

from langgraph.config import get_stream_writer
from langgraph.graph import END, StateGraph

from core.config import settings
from core.llm import get_llm_client, get_research_prompt
from tools.tool_names import TOOL_WEB_SEARCH
from tools.web_search_tool import format_search_results, search_web

logger = logging.getLogger(__name__)

# 선언 stage 이름 (core.config pipeline_stages 기본값과 동일)
STAGE_PLANNER = "planner"
STAGE_WEB_SEARCH = "web-search"
STAGE_REPORT_WRITER = "report-writer"
RESEARCH_STAGES = [STAGE_PLANNER, STAGE_WEB_SEARCH, STAGE_REPORT_WRITER]

# planner 응답의 목록 접두사 ("1.", "-", "*" 등)
_LIST_PREFIX = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")

SearchFn = Callable[[str], Awaitable[list[dict[str, Any]]]]


class ResearchState(TypedDict):
    """에이전트 상태"""
    query: str
    context: dict[str, Any]
    plan: list[str]
    search_results: list[dict[str, Any]]
    report: str


def parse_search_queries(text: str, max_queries: int) -> list[str]:
    """planner 응답 → 검색 쿼리 목록 (목록 접두사 제거, 중복 제거, 최대 개수 제한)"""
    queries: list[str] = []
    for line in text.splitlines():
        q = _LIST_PREFIX.sub("", line).strip().strip('"')
        if q and q not in queries:
            queries.append(q)
        if len(queries) >= max_queries:
            break
    return queries


class ResearchAgent:
    """
    리서치 에이전트

    LangGraph StateGraph로 planner → web_search → report_writer 노드를 순서대로 실행하며,
    stream()은 (mode, chunk) 튜플을 그대로 내보냅니다.
    """

    def __init__(
        self,
        llm_client: Any | None = None,
        search: SearchFn | None = None,
        max_queries: int | None = None,
    ):
        """
        ResearchAgent 초기화

        Args:
            llm_client: ainvoke(messages) -> str 를 제공하는 클라이언트 (None이면 전역 LLMClient)
            search: 검색 함수 (None이면 Tavily search_web)
            max_queries: planner 최대 쿼리 수 (None이면 설정값)
        """
        self.llm_client = llm_client or get_llm_client()
        self.search = search or search_web
        self.max_queries = max_queries or settings.research_max_queries
        self.stages = list(RESEARCH_STAGES)
        self.graph = self._build_graph()

    def _build_graph(self):
        """LangGraph 워크플로우 구성"""
        workflow = StateGraph(ResearchState)

        workflow.add_node("planner", self._planner_node)
        workflow.add_node("web_search", self._web_search_node)
        workflow.add_node("report_writer", self._report_writer_node)

        workflow.set_entry_point("planner")
        workflow.add_edge("planner", "web_search")
        workflow.add_edge("web_search", "report_writer")
        workflow.add_edge("report_writer", END)

        return workflow.compile()

    async def _planner_node(self, state: ResearchState) -> dict[str, Any]:
        """planner 노드: 검색 쿼리 계획"""
        writer = get_stream_writer()
        writer({"type": "stage_change", "stage": STAGE_PLANNER, "message": "Planning search queries"})

        response = await self.llm_client.ainvoke([
            {"role": "system", "content": get_research_prompt("planner", max_queries=self.max_queries)},
            {"role": "user", "content": state["query"]},
        ])
        plan = parse_search_queries(response, self.max_queries) or [state["query"]]

        writer({
            "type": "status",
            "message": f"Planned {len(plan)} search queries",
            "metadata": {"queries": plan},
        })
        return {"plan": plan}

    async def _web_search_node(self, state: ResearchState) -> dict[str, Any]:
        """web_search 노드: 쿼리별 검색, 결과를 tool_use 레코드로 발행"""
        writer = get_stream_writer()
        writer({"type": "stage_change", "stage": STAGE_WEB_SEARCH, "message": "Searching the web"})

        collected: list[dict[str, Any]] = []
        for query in state["plan"]:
            results = await self.search(query)
            writer({
                "type": "tool_use",
                "toolName": TOOL_WEB_SEARCH,
                "toolInput": {"query": query},
                "results": results,
            })
            collected.extend(results)

        logger.debug("web_search collected %d results for %d queries", len(collected), len(state["plan"]))
        return {"search_results": collected}

    async def _report_writer_node(self, state: ResearchState) -> dict[str, Any]:
        """report_writer 노드: 검색 결과 기반 보고서 작성"""
        writer = get_stream_writer()
        writer({"type": "stage_change", "stage": STAGE_REPORT_WRITER, "message": "Writing report"})

        report = await self.llm_client.ainvoke([
            {"role": "system", "content": get_research_prompt("report_writer")},
            {
                "role": "user",
                "content": (
                    f"Question: {state['query']}\n\n"
                    f"Sources:\n{format_search_results(state['search_results'])}"
                ),
            },
        ])

        writer({"type": "result", "content": report})
        return {"report": report}

    async def run(self, query: str, context: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        에이전트 실행 (일반 모드)

        Returns:
            {"report", "plan", "search_results"}
        """
        result = await self.graph.ainvoke(self._initial_state(query, context))
        return {
            "report": result["report"],
            "plan": result["plan"],
            "search_results": result["search_results"],
        }

    async def stream(
        self,
        query: str,
        context: dict[str, Any] | None = None,
    ) -> AsyncIterator[tuple[str, Any]]:
        """
        에이전트 실행 (스트리밍 모드)

        Yields:
            ("custom", record) 또는 ("updates", {node: data}) 튜플
        """
        async for mode, chunk in self.graph.astream(
            self._initial_state(query, context),
            stream_mode=["custom", "updates"],
        ):
            yield (mode, chunk)

    @staticmethod
    def _initial_state(query: str, context: dict[str, Any] | None) -> ResearchState:
        return {
            "query": query,
            "context": context or {},
            "plan": [],
            "search_results": [],
            "report": "",
        }


# 전역 에이전트 인스턴스
_research_agent: ResearchAgent | None = None


def get_research_agent() -> ResearchAgent:
    """ResearchAgent 인스턴스 반환"""
    global _research_agent
    if _research_agent is None:
        _research_agent = ResearchAgent()
    return _research_agent
