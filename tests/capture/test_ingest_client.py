"""IngestClient 测试 -- httpx.MockTransport 模拟上报服务

测试内容：
1. 成功上报返回 IngestResult，请求体为 {"events": [...]}
2. 5xx / 429 可重试，其余 4xx 不可重试
3. 连接失败转换为 IngestUnreachableError
4. 响应无法解析时不可重试
5. health_check 永不抛出
"""

import json

import httpx
import pytest
from patternforge.capture import (
    CaptureError,
    IngestClient,
    IngestRejectedError,
    IngestUnreachableError,
)

EVENTS = [{"id": "e1", "sessionId": "S1", "type": "system", "timestamp": 1}]


def _client(handler) -> IngestClient:
    return IngestClient(
        "http://ingest.test/",
        timeout_s=1.0,
        client_id="web-1",
        transport=httpx.MockTransport(handler),
    )


class TestSubmitBatch:
    async def test_success(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["client_id"] = request.headers.get("x-client-id")
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"accepted": 1, "rejected": 0, "duplicates": 0, "errors": []})

        result = await _client(handler).submit_batch(EVENTS)

        assert result.accepted == 1
        assert result.duplicates == 0
        assert captured["url"] == "http://ingest.test/api/events"
        assert captured["client_id"] == "web-1"
        assert captured["body"] == {"events": EVENTS}

    @pytest.mark.parametrize("status_code", [500, 503, 429])
    async def test_retryable_rejections(self, status_code):
        def handler(request):
            return httpx.Response(status_code, text="busy")

        with pytest.raises(IngestRejectedError) as exc_info:
            await _client(handler).submit_batch(EVENTS)
        assert exc_info.value.recoverable is True
        assert exc_info.value.status_code == status_code

    @pytest.mark.parametrize("status_code", [400, 413, 422])
    async def test_permanent_rejections(self, status_code):
        def handler(request):
            return httpx.Response(status_code, json={"error": {"code": "VALIDATION_FAILED"}})

        with pytest.raises(IngestRejectedError) as exc_info:
            await _client(handler).submit_batch(EVENTS)
        assert exc_info.value.recoverable is False

    async def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(IngestUnreachableError) as exc_info:
            await _client(handler).submit_batch(EVENTS)
        assert exc_info.value.recoverable is True
        assert exc_info.value.ingest_url == "http://ingest.test"

    async def test_unparsable_response(self):
        def handler(request):
            return httpx.Response(200, text="not json")

        with pytest.raises(CaptureError) as exc_info:
            await _client(handler).submit_batch(EVENTS)
        assert exc_info.value.recoverable is False


class TestHealthCheck:
    async def test_healthy(self):
        def handler(request):
            assert request.url.path == "/health"
            return httpx.Response(200, json={"status": "ok"})

        assert await _client(handler).health_check() is True

    async def test_unhealthy_status(self):
        assert await _client(lambda request: httpx.Response(503)).health_check() is False

    async def test_unreachable_does_not_raise(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        assert await _client(handler).health_check() is False
