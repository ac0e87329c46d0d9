"""
Pipeline Runs Routes

리서치 파이프라인 run 시작·SSE 스트림·상태 조회 API.

POST   /pipeline/runs                  - 백그라운드 run 시작 (runId 반환)
GET    /pipeline/runs/{runId}/stream   - runId 기반 SSE 스트림
GET    /pipeline/runs/{runId}          - 상태 스냅샷 (stage, sources, report)
POST   /pipeline/runs/{runId}/cancel   - 실행 취소 (상태는 유지)
DELETE /pipeline/runs/{runId}          - 취소 후 상태 제거
POST   /pipeline/stream                - 인라인 실행 + SSE 스트림
"""

import asyncio
import logging
import uuid
from contextlib import aclosing
from typing import Any

from fastapi import APIRouter, Request, status
from fastapi.responses import StreamingResponse

from api.dependencies import PipelineRunDep, RunRegistryDep, SettingsDep
from api.schemas.pipeline import RunCreatedResponse, RunRequest, RunStateResponse
from api.sse_utils import (
    SSE_CONNECTED,
    SSE_DONE,
    SSE_HEADERS,
    SSE_KEEPALIVE,
    format_pipeline_event,
)
from core.context import set_run_context
from core.pipeline.relay import StreamRelay
from core.pipeline.run_store import PipelineRun
from core.pipeline.schemas import EndOfStream, PipelineEventBase
from core.pipeline.sink import create_event_sink
from domains.research.agents.research_agent import get_research_agent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pipeline", tags=["pipeline"])


def _bind_run_context(req: Request, run_id: str) -> None:
    """sink push 헤더용 run 컨텍스트 설정 (백그라운드 태스크가 복사해 감)"""
    set_run_context(
        run_id=run_id,
        trace_id=str(uuid.uuid4()),
        request_id=getattr(req.state, "request_id", None),
    )


def _state_response(run: PipelineRun) -> RunStateResponse:
    return RunStateResponse(**run.state.snapshot(), running=run.running)


@router.post("/runs", response_model=RunCreatedResponse, status_code=status.HTTP_201_CREATED)
async def start_run(
    request: RunRequest,
    registry: RunRegistryDep,
    config: SettingsDep,
    req: Request,
) -> RunCreatedResponse:
    """
    백그라운드 run 시작

    에이전트 이벤트는 run 큐에 쌓이며 GET .../stream 으로 소비합니다.
    같은 runId를 지정하면 기존 run은 취소되고 새 상태로 교체됩니다.
    """
    agent = get_research_agent()
    run_id = request.runId or str(uuid.uuid4())
    _bind_run_context(req, run_id)

    run = await registry.create(
        request.stages or config.stage_list,
        run_id=run_id,
        sink=create_event_sink(run_id, config),
        prompt=request.prompt,
    )
    registry.start(
        run,
        agent.stream(request.prompt, request.context),
        stage_markers=config.stage_marker_enabled,
    )
    logger.info("Pipeline run started: run_id=%s", run.run_id)

    return RunCreatedResponse(
        runId=run.run_id,
        stages=run.state.stage_machine.declared,
        streamUrl=f"{router.prefix}/runs/{run.run_id}/stream",
    )


@router.get("/runs/{run_id}/stream")
async def stream_run(run: PipelineRunDep, registry: RunRegistryDep, config: SettingsDep):
    """
    runId 기반 SSE 스트림

    stage_change → status/tool_use → ... → result | error → [DONE]
    run당 소비자는 하나입니다. 클라이언트가 연결을 끊으면 run은 취소되지만
    상태는 GET /pipeline/runs/{runId} 로 계속 조회할 수 있습니다.
    """
    run_id = run.run_id
    logger.info("stream_run: start consuming run_id=%s", run_id)

    async def event_generator():
        # 연결 직후 한 줄 전송해 클라이언트/프록시가 스트림을 인식하도록 함
        yield SSE_CONNECTED
        event_id = 0
        finished = False
        try:
            while True:
                item = await registry.next_event(run_id, timeout=config.stream_wait_timeout)
                if item is None:
                    if run.running:
                        yield SSE_KEEPALIVE
                        continue
                    # 프로듀서 종료 후 큐가 비었음 (이미 소비됐거나 취소된 run)
                    logger.info("stream_run: no more events run_id=%s", run_id)
                    finished = True
                    yield SSE_DONE
                    break
                event_id += 1
                yield format_pipeline_event(item, str(event_id), {"runId": run_id})
                if isinstance(item, EndOfStream):
                    finished = True
                    break
                if config.stream_event_delay:
                    await asyncio.sleep(config.stream_event_delay)
        finally:
            if not finished:
                logger.info("stream_run: consumer disconnected, cancelling run_id=%s", run_id)
                await registry.cancel(run_id)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={**SSE_HEADERS, "X-Run-ID": run_id},
    )


@router.get("/runs/{run_id}", response_model=RunStateResponse)
async def get_run_state(run: PipelineRunDep) -> RunStateResponse:
    """run 상태 스냅샷 (취소·종료 이후에도 제거 전까지 조회 가능)"""
    return _state_response(run)


@router.post("/runs/{run_id}/cancel", response_model=RunStateResponse)
async def cancel_run(run: PipelineRunDep, registry: RunRegistryDep) -> RunStateResponse:
    """실행 중인 run 취소. 상태는 유지됩니다."""
    cancelled = await registry.cancel(run.run_id)
    logger.info("cancel_run: run_id=%s cancelled=%s", run.run_id, cancelled)
    return _state_response(run)


@router.delete("/runs/{run_id}")
async def discard_run(run: PipelineRunDep, registry: RunRegistryDep) -> dict[str, Any]:
    """run 취소 후 상태 제거"""
    was_running = run.running
    await registry.discard(run.run_id)
    return {"runId": run.run_id, "discarded": True, "wasRunning": was_running}


@router.post("/stream")
async def pipeline_stream(
    request: RunRequest,
    registry: RunRegistryDep,
    config: SettingsDep,
    req: Request,
):
    """
    인라인 실행 + SSE 스트림

    요청 연결에서 바로 에이전트를 실행하고 릴레이 결과를 전송합니다.
    상태는 레지스트리에 등록되어 스트림 종료/끊김 이후에도 조회할 수 있습니다.
    """
    agent = get_research_agent()
    run_id = request.runId or str(uuid.uuid4())
    _bind_run_context(req, run_id)

    run = await registry.create(request.stages or config.stage_list, run_id=run_id, prompt=request.prompt)
    relay = StreamRelay(run.state, stage_markers=config.stage_marker_enabled)
    sink = create_event_sink(run_id, config)

    async def event_generator():
        yield SSE_CONNECTED
        event_id = 0
        try:
            async with aclosing(relay.stream(agent.stream(request.prompt, request.context))) as events:
                async for item in events:
                    event_id += 1
                    if sink is not None and isinstance(item, PipelineEventBase):
                        await sink.add(item)
                    yield format_pipeline_event(item, str(event_id), {"runId": run_id})
        finally:
            if sink is not None:
                await sink.flush()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={**SSE_HEADERS, "X-Run-ID": run_id},
    )
