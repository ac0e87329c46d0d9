"""
API Middleware Module

FastAPI 미들웨어를 구현합니다.
- 로깅 (raw ASGI: SSE 스트림 본문을 건드리지 않음)
- request id 전달
- 예외 처리
"""

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger(__name__)


class RawRequestLoggingMiddleware:
    """
    로깅만 수행하는 raw ASGI 미들웨어.
    응답 본문을 읽거나 버퍼링하지 않아 SSE 스트림이 그대로 클라이언트로 전달됩니다.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return
        request_id = str(uuid.uuid4())
        scope["request_id"] = request_id
        start_time = time.time()
        method = scope.get("method", "")
        path = scope.get("path", "")
        client = scope.get("client")
        client_host = client[0] if client else "unknown"
        logger.info("[%s] %s %s - Client: %s", request_id, method, path, client_host)
        status_code: int | None = None

        async def send_wrapper(message: dict) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 0)
                headers = list(message.get("headers", []))
                headers.append((b"x-request-id", request_id.encode("latin-1")))
                message = {**message, "headers": headers}
            await send(message)
            if message["type"] == "http.response.body" and not message.get("more_body", False):
                duration = time.time() - start_time
                logger.info(
                    "[%s] %s %s - Status: %s - Duration: %.3fs",
                    request_id, method, path, status_code, duration,
                )

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                "[%s] Request failed after %.3fs: %s", request_id, duration, e,
                exc_info=True,
            )
            raise


class RequestIdStateMiddleware(BaseHTTPMiddleware):
    """scope.request_id → request.state.request_id (run 컨텍스트 등에서 사용)."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.scope.get("request_id")
        request.state.request_id = request_id if isinstance(request_id, str) else str(uuid.uuid4())
        return await call_next(request)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    에러 처리 미들웨어

    예외를 캐치하고 일관된 형식의 에러 응답을 반환합니다.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        try:
            return await call_next(request)
        except ValueError as e:
            logger.warning("Validation error: %s", e)
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={
                    "detail": str(e),
                    "error_type": "validation_error",
                },
            )
        except Exception as e:
            logger.error("Unhandled exception: %s", e, exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "detail": "Internal server error",
                    "error_type": "server_error",
                },
            )


def setup_middlewares(app) -> None:
    """
    FastAPI 앱에 미들웨어 추가.
    로깅은 raw ASGI로 해서 SSE 스트림 본문이 그대로 전달되도록 함.
    """
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestIdStateMiddleware)
    app.add_middleware(RawRequestLoggingMiddleware)
    logger.info("Middlewares configured")
