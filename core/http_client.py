"""
공통 HTTP 클라이언트

이벤트 sink push 등 외부 API 호출용 비동기 POST 헬퍼.
연결 오류·5xx는 지수 backoff로 재시도하고, 최종 실패는 (False, status, text)로 반환합니다.
"""

import asyncio
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


async def post_json(
    url: str,
    json_body: Any,
    *,
    headers: dict[str, str] | None = None,
    timeout: float = 10.0,
    max_retries: int = 0,
    backoff_base: float = 0.5,
) -> tuple[bool, int, str]:
    """
    JSON POST 요청 수행.

    Args:
        url: 전송 대상 URL
        json_body: JSON body
        headers: 요청 헤더
        timeout: 요청 타임아웃 (초)
        max_retries: 연결 오류/5xx 시 추가 시도 횟수
        backoff_base: 재시도 대기 기본값 (초, 시도마다 2배)

    Returns:
        (성공 여부, status_code, response.text)
    """
    status_code, text = 0, ""
    for attempt in range(max_retries + 1):
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                resp = await client.post(url, json=json_body, headers=headers or {})
            status_code, text = resp.status_code, resp.text
            if status_code < 500:
                return (200 <= status_code < 400, status_code, text)
            logger.warning("HTTP POST attempt %s got %s: %s", attempt + 1, status_code, text[:200])
        except httpx.HTTPError as e:
            status_code, text = 0, str(e)
            logger.warning("HTTP POST attempt %s failed: %s", attempt + 1, e)
        if attempt < max_retries:
            await asyncio.sleep(backoff_base * (2 ** attempt))
    return (False, status_code, text)
