"""
post_json 단위 테스트 (httpx.MockTransport 사용)
"""

from unittest.mock import patch

import httpx
import pytest

from core.http_client import post_json

_RealAsyncClient = httpx.AsyncClient


def _client_factory(handler):
    def factory(*args, **kwargs):
        return _RealAsyncClient(transport=httpx.MockTransport(handler), **kwargs)
    return factory


@pytest.mark.asyncio
async def test_post_json_success():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="accepted")

    with patch("core.http_client.httpx.AsyncClient", _client_factory(handler)):
        ok, status_code, text = await post_json("http://sink.local", {"a": 1})

    assert (ok, status_code, text) == (True, 200, "accepted")


@pytest.mark.asyncio
async def test_post_json_retries_5xx_then_succeeds():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(503 if len(calls) == 1 else 200)

    with patch("core.http_client.httpx.AsyncClient", _client_factory(handler)):
        ok, status_code, _ = await post_json("http://sink.local", {}, max_retries=2, backoff_base=0)

    assert ok is True
    assert status_code == 200
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_post_json_4xx_not_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(400, text="bad")

    with patch("core.http_client.httpx.AsyncClient", _client_factory(handler)):
        ok, status_code, text = await post_json("http://sink.local", {}, max_retries=3, backoff_base=0)

    assert (ok, status_code, text) == (False, 400, "bad")
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_post_json_connection_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with patch("core.http_client.httpx.AsyncClient", _client_factory(handler)):
        ok, status_code, text = await post_json("http://sink.local", {}, max_retries=1, backoff_base=0)

    assert ok is False
    assert status_code == 0
    assert "refused" in text
