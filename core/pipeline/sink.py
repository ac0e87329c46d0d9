"""
Event Sink Writer

릴레이된 PipelineEvent를 외부 로그/대시보드 수집기로 REST push 합니다.
POST {event_sink_url}  body: {"runId": ..., "events": [...]}  (batch)
실패 시 로그만 남기며 run에는 영향을 주지 않습니다.
"""

import logging
from typing import Any

from core.config import Settings, settings as default_settings
from core.context import get_sink_headers
from core.http_client import post_json
from core.pipeline.schemas import PipelineEventBase

logger = logging.getLogger(__name__)


class EventSinkWriter:
    """
    PipelineEvent 배치 전송기

    add()로 버퍼링하고 batch_size에 도달하면 push. run 종료 시 flush() 호출.
    """

    def __init__(
        self,
        push_url: str,
        run_id: str,
        *,
        batch_size: int = 10,
        timeout: float = 10.0,
        max_retries: int = 0,
    ) -> None:
        self._push_url = push_url.rstrip("/")
        self._run_id = run_id
        self._batch: list[PipelineEventBase] = []
        self._batch_max = batch_size
        self._timeout = timeout
        self._max_retries = max_retries
        self.pushed = 0
        self.failed = 0

    @property
    def pending(self) -> int:
        return len(self._batch)

    async def add(self, event: PipelineEventBase) -> None:
        """버퍼에 추가, 배치가 차면 push"""
        self._batch.append(event)
        if len(self._batch) >= self._batch_max:
            await self.flush()

    async def flush(self) -> bool:
        """버퍼에 남은 이벤트 push"""
        if not self._batch:
            return True
        events, self._batch = self._batch, []
        return await self.push(events)

    async def push(self, events: list[PipelineEventBase]) -> bool:
        """배치 push"""
        if not events:
            return True

        payload: list[dict[str, Any]] = [e.to_payload() for e in events]
        body: dict[str, Any] = {"runId": self._run_id, "events": payload}
        logger.debug(
            "Event sink push: url=%s run_id=%s count=%d types=%s",
            self._push_url[:60], self._run_id, len(payload), [e.get("type") for e in payload],
        )

        ok, status_code, text = await post_json(
            self._push_url,
            body,
            headers=get_sink_headers(),
            timeout=self._timeout,
            max_retries=self._max_retries,
        )
        if ok:
            self.pushed += len(events)
        else:
            self.failed += len(events)
            logger.warning(
                "Event sink push failed: %s - %s",
                status_code,
                (text[:200] if text else ""),
            )
        return ok


def create_event_sink(run_id: str, config: Settings | None = None) -> EventSinkWriter | None:
    """설정된 경우에만 EventSinkWriter 생성 (event_sink_url 미지정 시 None)"""
    sink_config = (config or default_settings).event_sink_config
    if sink_config is None:
        return None
    return EventSinkWriter(
        sink_config["push_url"],
        run_id,
        batch_size=sink_config["batch_size"],
        timeout=sink_config["timeout"],
        max_retries=sink_config["max_retries"],
    )
