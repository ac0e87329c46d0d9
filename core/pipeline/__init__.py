"""
Pipeline Stage Tracker

에이전트 런타임 이벤트를 분류하고 stage 진행 상태·참조 자료를 추적하며
정규화된 이벤트 스트림을 하류(SSE, 이벤트 sink)로 전달합니다.
"""

from core.pipeline.classifier import classify_event, extract_sources
from core.pipeline.errors import (
    InvalidStageTransition,
    PipelineError,
    RelayFault,
    UnknownStage,
    UnrecognizedEvent,
    UpstreamFault,
)
from core.pipeline.relay import StreamRelay, normalize_event, relay_events
from core.pipeline.run_store import PipelineRun, RunRegistry
from core.pipeline.schemas import (
    END_OF_STREAM,
    EndOfStream,
    ErrorEvent,
    PipelineEvent,
    ResultEvent,
    SourceRecord,
    StageChangeEvent,
    StageDescriptor,
    StageStatus,
    StatusEvent,
    ToolUseEvent,
)
from core.pipeline.sources import SourceDeduplicator
from core.pipeline.stages import StageStateMachine
from core.pipeline.state import PipelineState

__all__ = [
    "END_OF_STREAM",
    "EndOfStream",
    "ErrorEvent",
    "InvalidStageTransition",
    "PipelineError",
    "PipelineEvent",
    "PipelineRun",
    "PipelineState",
    "RelayFault",
    "ResultEvent",
    "RunRegistry",
    "SourceDeduplicator",
    "SourceRecord",
    "StageChangeEvent",
    "StageDescriptor",
    "StageStateMachine",
    "StageStatus",
    "StatusEvent",
    "StreamRelay",
    "ToolUseEvent",
    "UnknownStage",
    "UnrecognizedEvent",
    "UpstreamFault",
    "classify_event",
    "extract_sources",
    "normalize_event",
    "relay_events",
]
