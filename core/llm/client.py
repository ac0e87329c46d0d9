"""
LLM Client Module

OpenAI 클라이언트를 관리하고 LangChain과의 통합을 제공합니다.
research agent의 planner / report-writer 노드에서 사용합니다.
"""

from functools import lru_cache
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from core.config import settings


class LLMClient:
    """
    LLM 클라이언트 래퍼 클래스

    ChatOpenAI를 lazy하게 생성하여 API 키 없이도 import/테스트가 가능합니다.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any,
    ) -> None:
        """
        LLMClient 초기화

        Args:
            api_key: OpenAI API 키 (None이면 설정에서 로드)
            model: 모델 이름 (None이면 설정에서 로드)
            temperature: 온도 파라미터 (None이면 설정에서 로드)
            max_tokens: 최대 토큰 수 (None이면 설정에서 로드)
            **kwargs: ChatOpenAI에 전달할 추가 파라미터
        """
        config = settings.openai_config
        self.api_key = api_key or config["api_key"]
        self.model = model or config["model"]
        self.temperature = temperature if temperature is not None else config["temperature"]
        self.max_tokens = max_tokens or config["max_tokens"]
        self.extra_kwargs = kwargs

        self._client: BaseChatModel | None = None

    @property
    def client(self) -> BaseChatModel:
        """LangChain ChatOpenAI 클라이언트 (최초 접근 시 생성)"""
        if self._client is None:
            self._client = ChatOpenAI(
                api_key=self.api_key,
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                **self.extra_kwargs,
            )
        return self._client

    async def ainvoke(
        self,
        messages: list[dict[str, str]] | str,
        **kwargs: Any,
    ) -> str:
        """
        비동기로 LLM을 호출합니다.

        Args:
            messages: 메시지 리스트 ({"role", "content"}) 또는 단일 프롬프트 문자열
            **kwargs: ainvoke에 전달할 추가 파라미터

        Returns:
            LLM 응답 텍스트
        """
        if isinstance(messages, str):
            messages = [{"role": "user", "content": messages}]

        response = await self.client.ainvoke(self._convert_messages(messages), **kwargs)
        content = response.content
        return content if isinstance(content, str) else str(content)

    def _convert_messages(self, messages: list[dict[str, str]]) -> list[BaseMessage]:
        """딕셔너리 메시지를 LangChain 메시지 객체로 변환"""
        converted: list[BaseMessage] = []
        for msg in messages:
            role = msg.get("role", "user")
            content = msg.get("content", "")
            if role == "system":
                converted.append(SystemMessage(content=content))
            elif role == "assistant":
                converted.append(AIMessage(content=content))
            else:  # user or default
                converted.append(HumanMessage(content=content))
        return converted


@lru_cache()
def get_llm_client() -> LLMClient:
    """전역 LLMClient 인스턴스"""
    return LLMClient()
