"""
Pipeline API Schemas

run 시작/조회 요청·응답 모델.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from core.pipeline.stages import normalize_stage_names


class RunRequest(BaseModel):
    """run 시작 요청"""
    prompt: str = Field(..., min_length=1, description="리서치 질문")
    stages: list[str] | None = Field(
        default=None,
        description="선언 stage 목록 (미지정 시 설정의 pipeline_stages)",
    )
    context: dict[str, Any] = Field(default_factory=dict, description="추가 컨텍스트")
    runId: str | None = Field(default=None, description="runId 지정 (같은 runId의 기존 run은 교체)")

    @field_validator("stages")
    @classmethod
    def validate_stages(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return None
        return normalize_stage_names(v)


class RunCreatedResponse(BaseModel):
    """run 시작 응답"""
    runId: str = Field(..., description="run ID")
    stages: list[str] = Field(..., description="선언된 stage 목록")
    streamUrl: str = Field(..., description="SSE 스트림 경로")


class StageSnapshot(BaseModel):
    name: str
    status: str
    startTime: str | None = None
    endTime: str | None = None


class SourceSnapshot(BaseModel):
    locator: str
    title: str = ""
    author: str | None = None
    snippet: str | None = None


class RunStateResponse(BaseModel):
    """run 상태 스냅샷"""
    runId: str
    stages: list[StageSnapshot]
    activeStage: str | None = None
    sources: list[SourceSnapshot] = Field(default_factory=list)
    report: str = ""
    error: str | None = None
    terminal: bool = False
    cancelled: bool = False
    running: bool = False
    eventCount: int = 0
    createdAt: str
    finishedAt: str | None = None
