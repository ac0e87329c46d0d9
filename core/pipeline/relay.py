"""
Stream Relay

에이전트 런타임(단일 프로듀서)의 이벤트를 순서대로 소비하여
분류 → 상태 반영 → 정규화 이벤트 전달을 수행하는 async generator.

- 정상 종료: 마지막에 END_OF_STREAM
- 프로듀서 실패(UpstreamFault) / 릴레이 내부 실패(RelayFault): error 이벤트 1건 → END_OF_STREAM → 종료
- 소비자 취소: 전달 중단, 업스트림 iterator 정리, 상태는 조회 가능하게 보존
- END_OF_STREAM 이후에는 어떤 이벤트도 내보내지 않음
"""

import asyncio
import logging
from typing import Any, AsyncIterable, AsyncIterator

from core.pipeline.classifier import classify_event, preserve_raw
from core.pipeline.errors import (
    InvalidStageTransition,
    RelayFault,
    UnknownStage,
    UnrecognizedEvent,
    UpstreamFault,
)
from core.pipeline.schemas import (
    END_OF_STREAM,
    EndOfStream,
    ErrorEvent,
    PipelineEvent,
    StatusEvent,
    StatusLevel,
)
from core.pipeline.state import PipelineState

logger = logging.getLogger(__name__)


def normalize_event(raw: Any, state: PipelineState, *, stage_markers: bool = False) -> PipelineEvent:
    """
    원본 이벤트 1건을 분류하고 상태에 반영한 뒤 전달할 이벤트를 반환.
    복구 가능한 오류는 status 진단 이벤트로 변환됩니다.
    """
    try:
        event = classify_event(raw, stage_markers=stage_markers)
    except UnrecognizedEvent as e:
        logger.warning("Unrecognized event in run %s: %s", state.run_id, e.reason)
        return StatusEvent(
            message=e.reason,
            level=StatusLevel.WARN,
            errorType=e.error_type,
            raw=preserve_raw(e.raw),
        )

    try:
        return state.apply(event)
    except (UnknownStage, InvalidStageTransition) as e:
        logger.warning("Stage change rejected in run %s: %s", state.run_id, e)
        return StatusEvent(
            message=str(e),
            level=StatusLevel.WARN,
            errorType=e.error_type,
            metadata={"stage": e.stage},
        )


async def relay_events(
    upstream: AsyncIterable[Any],
    state: PipelineState,
    *,
    stage_markers: bool = False,
) -> AsyncIterator[PipelineEvent | EndOfStream]:
    """
    업스트림 이벤트 릴레이

    소비자가 다음 이벤트를 요청할 때만 업스트림을 진행시킵니다 (pull 기반 backpressure).

    Args:
        upstream: 에이전트 런타임 이벤트 시퀀스
        state: 이 run이 소유하는 PipelineState
        stage_markers: 자유 텍스트 "STAGE: X" 마커 해석 여부

    Yields:
        정규화된 PipelineEvent, 마지막으로 END_OF_STREAM
    """
    iterator = upstream.__aiter__()
    finished = False
    try:
        while True:
            try:
                raw = await iterator.__anext__()
            except StopAsyncIteration:
                break
            except asyncio.CancelledError:
                raise
            except Exception as e:
                fault = UpstreamFault(e)
                logger.error("Upstream fault in run %s: %s", state.run_id, fault, exc_info=True)
                state.mark_failed(str(fault))
                yield ErrorEvent(
                    error=str(fault),
                    errorType=fault.error_type,
                    metadata={"cause": e.__class__.__name__},
                )
                finished = True
                yield END_OF_STREAM
                return

            try:
                event = normalize_event(raw, state, stage_markers=stage_markers)
            except Exception as e:
                fault = RelayFault(e)
                logger.error("Relay fault in run %s: %s", state.run_id, fault, exc_info=True)
                state.mark_failed(str(fault))
                yield ErrorEvent(
                    error=str(fault),
                    errorType=fault.error_type,
                    metadata={"cause": e.__class__.__name__},
                )
                finished = True
                yield END_OF_STREAM
                return

            yield event

        finished = True
        yield END_OF_STREAM
    except (GeneratorExit, asyncio.CancelledError):
        if not finished:
            state.mark_cancelled()
        raise
    finally:
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()


class StreamRelay:
    """
    PipelineState와 릴레이 옵션을 묶은 래퍼

    Example:
        ```python
        relay = StreamRelay(PipelineState(["planner", "web-search", "report-writer"]))
        async for event in relay.stream(agent.stream(query)):
            ...
        ```
    """

    def __init__(self, state: PipelineState, stage_markers: bool = False) -> None:
        self.state = state
        self.stage_markers = stage_markers

    def stream(self, upstream: AsyncIterable[Any]) -> AsyncIterator[PipelineEvent | EndOfStream]:
        return relay_events(upstream, self.state, stage_markers=self.stage_markers)
