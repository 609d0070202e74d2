"""请求日志测试

测试内容：
1. pipeline_stage 路径 -> 流水线阶段映射
2. 每个响应带 X-Request-ID（ULID），不同请求不同
3. request_* 日志携带 stage / policy；>= 400 记 request_failed，异常记录后继续抛出
4. logging_config：service 字段、第三方库日志降噪
"""

import logging

import pytest
import structlog
from httpx import AsyncClient
from patternforge.gateway.middleware.logging_config import (
    add_service_name,
    resolve_level,
    setup_logging,
)
from patternforge.gateway.middleware.logging_mw import pipeline_stage
from structlog.testing import LogCapture


@pytest.fixture
def captured(client: AsyncClient):
    """在 app 创建（setup_logging）之后接管 structlog，保留 contextvars 合并"""
    capture = LogCapture()
    structlog.configure(processors=[structlog.contextvars.merge_contextvars, capture])
    yield capture
    structlog.reset_defaults()


def _entries(capture: LogCapture, event: str) -> list[dict]:
    return [e for e in capture.entries if e["event"] == event]


class TestPipelineStage:
    @pytest.mark.parametrize(
        ("method", "path", "stage"),
        [
            ("POST", "/api/events", "ingest"),
            ("GET", "/api/events", "events"),
            ("GET", "/api/events/e1", "events"),
            ("POST", "/api/sessions/S1/recognize", "recognition"),
            ("POST", "/api/sessions/S1/close", "sessions"),
            ("GET", "/api/patterns/definitions", "patterns"),
            ("POST", "/api/models/synthesize", "synthesis"),
            ("GET", "/api/models/m1/versions", "models"),
            ("POST", "/api/generate/export", "generation"),
            ("GET", "/api/stream/session/S1", "stream"),
            ("GET", "/health", "health"),
            ("GET", "/ready", "health"),
            ("GET", "/", None),
            ("GET", "/docs", None),
            ("GET", "/api/unknown", None),
        ],
    )
    def test_mapping(self, method, path, stage):
        assert pipeline_stage(method, path) == stage


class TestRequestLogging:
    async def test_request_id_in_response_header(self, client: AsyncClient):
        ids = set()
        for _ in range(3):
            resp = await client.get("/health")
            assert resp.status_code == 200
            # ULID 格式：26 字符
            assert len(resp.headers["x-request-id"]) == 26
            ids.add(resp.headers["x-request-id"])
        assert len(ids) == 3

    async def test_recognition_request_binds_stage_and_policy(
        self, client: AsyncClient, captured: LogCapture, s1_raw_events
    ):
        await client.post("/api/events", json={"events": s1_raw_events})
        resp = await client.post("/api/sessions/S1/recognize")
        assert resp.status_code == 200

        completed = _entries(captured, "request_completed")
        assert [e["stage"] for e in completed] == ["ingest", "recognition"]
        assert all(e["policy"] == "default@1.0.0" for e in completed)
        assert completed[1]["request_id"] == resp.headers["x-request-id"]

    async def test_query_request_has_no_policy(self, client: AsyncClient, captured: LogCapture):
        await client.get("/api/patterns")
        (entry,) = _entries(captured, "request_completed")
        assert entry["stage"] == "patterns"
        assert "policy" not in entry

    async def test_error_status_logged_as_failed(self, client: AsyncClient, captured: LogCapture):
        resp = await client.get("/api/sessions/nope")
        assert resp.status_code == 404

        (entry,) = _entries(captured, "request_failed")
        assert entry["log_level"] == "warning"
        assert entry["status_code"] == 404
        assert entry["stage"] == "sessions"
        assert _entries(captured, "request_completed") == []

    async def test_unhandled_exception_logged_and_reraised(
        self, app, client: AsyncClient, captured: LogCapture
    ):
        async def boom():
            raise RuntimeError("boom")

        app.add_api_route("/api/boom", boom)

        with pytest.raises(RuntimeError):
            await client.get("/api/boom")

        (entry,) = _entries(captured, "request_errored")
        assert entry["path"] == "/api/boom"
        assert "duration_ms" in entry


class TestLoggingConfig:
    def test_service_name_added_once(self):
        assert add_service_name(None, "info", {"event": "x"})["service"] == "patternforge"
        assert add_service_name(None, "info", {"service": "sdk"})["service"] == "sdk"

    def test_resolve_level(self):
        assert resolve_level("debug") == logging.DEBUG
        assert resolve_level(None) == logging.INFO
        assert resolve_level("verbose") == logging.INFO

    def test_noisy_loggers_quieted_unless_debug(self):
        try:
            setup_logging(log_format="json", log_level="INFO")
            assert logging.getLogger("aiosqlite").level == logging.WARNING
            assert logging.getLogger().level == logging.INFO

            setup_logging(log_format="dev", log_level="DEBUG")
            assert logging.getLogger("aiosqlite").level == logging.DEBUG
        finally:
            structlog.reset_defaults()
            setup_logging(log_format="dev", log_level="INFO")
