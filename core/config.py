"""
Core Configuration Module

환경변수 및 전역 설정을 관리하는 모듈.
Pydantic Settings를 사용하여 타입 안전성과 검증을 보장합니다.
"""

from functools import lru_cache
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    애플리케이션 전역 설정 클래스

    환경변수에서 값을 로드하며, .env 파일을 지원합니다.
    모든 설정은 타입 안전하며 자동으로 검증됩니다.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="",
    )

    # ==================== LLM Configuration ====================
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API Key (research agent 실행 시 필수)",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI 모델 이름",
    )
    openai_temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=2.0,
        description="LLM 응답의 창의성 제어 (0.0-2.0)",
    )
    openai_max_tokens: int = Field(
        default=2000,
        gt=0,
        description="LLM 응답의 최대 토큰 수",
    )

    # ==================== Search Configuration ====================
    tavily_api_key: str | None = Field(
        default=None,
        description="Tavily Search API Key (미설정 시 web search 결과 없음)",
    )
    web_search_max_results: int = Field(
        default=5,
        gt=0,
        le=20,
        description="검색 쿼리당 최대 결과 수",
    )
    research_max_queries: int = Field(
        default=3,
        gt=0,
        le=10,
        description="planner가 생성하는 최대 검색 쿼리 수",
    )

    # ==================== Application Configuration ====================
    app_env: str = Field(
        default="development",
        description="애플리케이션 환경 (development, staging, production)"
    )
    app_name: str = Field(
        default="Stage-Relay",
        description="애플리케이션 이름"
    )
    app_version: str = Field(
        default="0.1.0",
        description="애플리케이션 버전"
    )
    debug: bool = Field(
        default=True,
        description="디버그 모드 활성화 여부"
    )

    # ==================== API Configuration ====================
    api_host: str = Field(
        default="0.0.0.0",
        description="API 서버 호스트"
    )
    api_port: int = Field(
        default=9000,
        gt=0,
        lt=65536,
        description="API 서버 포트"
    )
    api_reload: bool = Field(
        default=True,
        description="자동 리로드 활성화 (개발 모드용)"
    )
    allowed_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="CORS 허용 Origin"
    )

    # ==================== Pipeline Configuration ====================
    pipeline_stages: str = Field(
        default="planner,web-search,report-writer",
        description="run 시작 시 선언하는 stage 목록 (쉼표 구분, 순서 = 활성화 순서)",
    )
    stage_marker_enabled: bool = Field(
        default=False,
        description="자유 텍스트의 'STAGE: <name>' 마커를 stage_change로 해석 (레거시 프로듀서 호환)",
    )
    run_queue_maxsize: int = Field(
        default=256,
        gt=0,
        description="run별 이벤트 큐 크기 (가득 차면 프로듀서 대기)",
    )
    run_ttl_seconds: float = Field(
        default=3600.0,
        gt=0,
        description="종료된 run 상태 보존 시간 (초). 이후 새 run 생성 시 제거",
    )
    stream_wait_timeout: float = Field(
        default=15.0,
        gt=0,
        description="SSE 스트림 이벤트 대기 시간 (초). 초과 시 keep-alive 코멘트 전송",
    )
    stream_event_delay: float = Field(
        default=0.0,
        ge=0.0,
        description="SSE 이벤트 간 지연 (초, 프론트 렌더링용)",
    )

    # ==================== Event Sink Configuration ====================
    event_sink_url: str | None = Field(
        default=None,
        description="릴레이 이벤트 push URL (미지정 시 push 비활성화)",
    )
    event_sink_batch_size: int = Field(
        default=10,
        gt=0,
        description="push 배치 크기",
    )
    event_sink_timeout: float = Field(
        default=10.0,
        gt=0,
        description="push HTTP 타임아웃 (초)",
    )
    event_sink_max_retries: int = Field(
        default=2,
        ge=0,
        description="5xx/연결 오류 시 재시도 횟수",
    )

    # ==================== Logging Configuration ====================
    log_level: str = Field(
        default="INFO",
        description="로그 레벨 (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """애플리케이션 환경 검증"""
        allowed_envs = {"development", "staging", "production"}
        if v.lower() not in allowed_envs:
            raise ValueError(f"app_env must be one of {allowed_envs}")
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """로그 레벨 검증"""
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed_levels:
            raise ValueError(f"log_level must be one of {allowed_levels}")
        return v_upper

    @field_validator("pipeline_stages")
    @classmethod
    def validate_pipeline_stages(cls, v: str) -> str:
        """stage 목록: 1개 이상, 중복 불가"""
        names = [s.strip() for s in v.split(",") if s.strip()]
        if not names:
            raise ValueError("pipeline_stages must declare at least one stage")
        if len(set(names)) != len(names):
            raise ValueError(f"pipeline_stages contains duplicates: {names}")
        return ",".join(names)

    @property
    def stage_list(self) -> list[str]:
        """선언된 stage 목록"""
        return self.pipeline_stages.split(",")

    @property
    def is_production(self) -> bool:
        """프로덕션 환경 여부 확인"""
        return self.app_env == "production"

    @property
    def openai_config(self) -> dict[str, Any]:
        """OpenAI 설정을 딕셔너리로 반환"""
        return {
            "model": self.openai_model,
            "temperature": self.openai_temperature,
            "max_tokens": self.openai_max_tokens,
            "api_key": self.openai_api_key,
        }

    @property
    def event_sink_config(self) -> dict[str, Any] | None:
        """이벤트 sink 설정 (URL 미지정 시 None)"""
        if not self.event_sink_url:
            return None
        return {
            "push_url": self.event_sink_url,
            "batch_size": self.event_sink_batch_size,
            "timeout": self.event_sink_timeout,
            "max_retries": self.event_sink_max_retries,
        }


@lru_cache()
def get_settings() -> Settings:
    """
    Settings 인스턴스를 반환하는 캐시된 함수

    이 함수는 애플리케이션 전체에서 단일 Settings 인스턴스를 공유합니다.
    FastAPI의 의존성 주입에서 사용됩니다.

    Returns:
        Settings 인스턴스
    """
    return Settings()


# 전역 설정 인스턴스
settings = get_settings()
