"""
Pipeline Event Schemas

에이전트 런타임 이벤트를 정규화한 PipelineEvent 모델과 stage/source 데이터 모델.
이벤트 페이로드에는 스키마 버전(version) 필드를 포함하여 호환성 관리를 지원합니다.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# 페이로드 스키마 버전
PIPELINE_EVENT_PAYLOAD_VERSION = "1.0"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PipelineEventType(str, Enum):
    """정규화된 이벤트 종류"""
    STAGE_CHANGE = "stage_change"
    STATUS = "status"
    TOOL_USE = "tool_use"
    RESULT = "result"
    ERROR = "error"


class StageStatus(str, Enum):
    """Stage 상태"""
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    ERROR = "error"


class StatusLevel(str, Enum):
    """status 이벤트 레벨"""
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class StageDescriptor(BaseModel):
    """선언된 stage 하나의 진행 상태"""
    name: str = Field(..., description="stage 이름 (선언 목록 중 하나)")
    status: StageStatus = Field(default=StageStatus.PENDING, description="stage 상태")
    startTime: datetime | None = Field(default=None, description="활성화 시각")
    endTime: datetime | None = Field(default=None, description="완료 시각")


class SourceRecord(BaseModel):
    """발견된 참조 자료. locator(URL)가 중복 제거 키."""
    model_config = ConfigDict(frozen=True)

    locator: str = Field(..., description="고유 위치 (URL)")
    title: str = Field(default="", description="제목")
    author: str | None = Field(default=None, description="작성자")
    snippet: str | None = Field(default=None, description="본문 발췌")

    @field_validator("locator")
    @classmethod
    def strip_locator(cls, v: str) -> str:
        return v.strip()


class PipelineEventBase(BaseModel):
    """PipelineEvent 공통 필드. 발행 후 불변."""
    model_config = ConfigDict(frozen=True)

    version: str = Field(default=PIPELINE_EVENT_PAYLOAD_VERSION, description="페이로드 스키마 버전")
    timestamp: datetime = Field(default_factory=utc_now, description="타임스탬프")
    metadata: dict[str, Any] = Field(default_factory=dict, description="추가 메타데이터")

    def to_payload(self) -> dict[str, Any]:
        """SSE data / push 페이로드용 JSON 호환 dict"""
        return self.model_dump(mode="json", exclude_none=True)


class StageChangeEvent(PipelineEventBase):
    """stage 전환 이벤트"""
    type: Literal["stage_change"] = "stage_change"
    stage: str = Field(..., description="활성화할 stage 이름")
    message: str = Field(default="", description="표시용 메시지")


class StatusEvent(PipelineEventBase):
    """상태/진단 이벤트 (분류 실패, 알 수 없는 stage 포함)"""
    type: Literal["status"] = "status"
    message: str = Field(default="", description="상태 메시지")
    level: StatusLevel = Field(default=StatusLevel.INFO, description="INFO/WARN/ERROR")
    errorType: str | None = Field(default=None, description="진단 이벤트일 때 오류 분류")
    raw: Any = Field(default=None, description="분류 실패 시 원본 페이로드")


class ToolUseEvent(PipelineEventBase):
    """도구 실행 이벤트. 릴레이 이후 sources는 새로 추가된 자료만 포함."""
    type: Literal["tool_use"] = "tool_use"
    toolName: str = Field(..., description="도구 이름")
    toolInput: dict[str, Any] = Field(default_factory=dict, description="도구 인자")
    sources: list[SourceRecord] = Field(default_factory=list, description="발견된 참조 자료")


class ResultEvent(PipelineEventBase):
    """최종 결과 이벤트 (보고서 본문)"""
    type: Literal["result"] = "result"
    content: str = Field(..., description="최종 보고서")


class ErrorEvent(PipelineEventBase):
    """에러 이벤트"""
    type: Literal["error"] = "error"
    error: str = Field(..., description="에러 메시지")
    errorType: str = Field(default="unknown", description="에러 타입")


PipelineEvent = Annotated[
    Union[StageChangeEvent, StatusEvent, ToolUseEvent, ResultEvent, ErrorEvent],
    Field(discriminator="type"),
]


class EndOfStream(BaseModel):
    """스트림 종료 마커. 어떤 데이터 이벤트와도 구별됨."""
    model_config = ConfigDict(frozen=True)

    type: Literal["end"] = "end"


END_OF_STREAM = EndOfStream()
