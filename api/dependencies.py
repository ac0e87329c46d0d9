"""
API Dependencies Module

FastAPI 의존성 주입을 위한 함수들을 정의합니다.
"""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Path, Request, status

from core.config import Settings, get_settings
from core.pipeline.run_store import PipelineRun, RunRegistry

logger = logging.getLogger(__name__)


def get_run_registry(request: Request) -> RunRegistry:
    """
    애플리케이션 RunRegistry 반환

    lifespan에서 app.state.run_registry에 생성됩니다.
    """
    registry = getattr(request.app.state, "run_registry", None)
    if registry is None:
        logger.error("RunRegistry not initialized (lifespan not started?)")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Run registry not available",
        )
    return registry


def get_pipeline_run(
    registry: Annotated[RunRegistry, Depends(get_run_registry)],
    run_id: str = Path(..., description="run ID"),
) -> PipelineRun:
    """
    path의 run_id로 PipelineRun 조회

    Raises:
        HTTPException: 404 (없는 runId 또는 이미 제거된 run)
    """
    run = registry.get(run_id)
    if run is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Run not found: {run_id}",
        )
    return run


# 타입 별칭
RunRegistryDep = Annotated[RunRegistry, Depends(get_run_registry)]
PipelineRunDep = Annotated[PipelineRun, Depends(get_pipeline_run)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
