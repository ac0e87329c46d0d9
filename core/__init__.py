"""
Stage-Relay Core Module

공통 핵심 로직을 제공하는 모듈:
- 파이프라인 stage 추적 및 이벤트 릴레이
- LLM 설정 및 클라이언트
- 전역 설정
"""

from core.config import settings

__all__ = ["settings"]
