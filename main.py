"""
Stage-Relay Main Entry Point

FastAPI 애플리케이션의 진입점입니다.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import settings
from api.middleware import setup_middlewares
from core.pipeline.run_store import RunRegistry

# 로깅 설정
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    애플리케이션 라이프사이클 관리

    시작 시: RunRegistry 생성 (app.state.run_registry)
    종료 시: 실행 중인 run 취소 및 정리
    """
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.app_env}")
    logger.info(f"Declared stages: {settings.stage_list}")

    app.state.run_registry = RunRegistry(
        queue_maxsize=settings.run_queue_maxsize,
        run_ttl=settings.run_ttl_seconds,
    )

    yield

    # Shutdown
    logger.info("Shutting down application")
    await app.state.run_registry.shutdown()


# FastAPI 애플리케이션 초기화
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Pipeline stage tracker and SSE relay for multi-stage research agents",
    debug=settings.debug and not settings.is_production,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    lifespan=lifespan,
)

# CORS 미들웨어 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Run-ID", "X-Request-ID"],
)

# 커스텀 미들웨어 설정
setup_middlewares(app)

# API 라우터 등록
from api.routes.pipeline_runs import router as pipeline_router

app.include_router(pipeline_router)


@app.get("/")
async def root() -> dict[str, str]:
    """
    루트 엔드포인트

    Returns:
        환영 메시지
    """
    return {
        "message": f"Welcome to {settings.app_name}!",
        "version": settings.app_version,
        "status": "operational",
    }


@app.get("/health")
async def health_check() -> dict[str, str]:
    """
    헬스체크 엔드포인트

    Returns:
        서버 상태
    """
    return {
        "status": "healthy",
        "environment": settings.app_env,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower(),
    )
