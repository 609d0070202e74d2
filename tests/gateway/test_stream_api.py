"""SSE 事件流测试

测试内容：
1. 会话不存在 404
2. 已关闭会话：推送全部历史后结束
3. Last-Event-ID 断点续传
4. 入库事件经 SSEHub 广播给订阅者
"""

import asyncio
import json

from httpx import AsyncClient


async def _read_stream(client: AsyncClient, url: str, headers: dict | None = None) -> list[dict]:
    received = []
    async with client.stream("GET", url, headers=headers) as response:
        assert response.status_code == 200
        async for line in response.aiter_lines():
            if line.startswith("data:"):
                received.append(json.loads(line[len("data:"):].strip()))
    return received


class TestSessionStream:
    async def test_unknown_session(self, client: AsyncClient):
        resp = await client.get("/api/stream/session/nope")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "SESSION_NOT_FOUND"

    async def test_closed_session_history(self, client: AsyncClient, s1_raw_events):
        await client.post("/api/events", json={"events": s1_raw_events})
        await client.post("/api/sessions/S1/close")

        received = await _read_stream(client, "/api/stream/session/S1")
        assert [e["event_id"] for e in received] == ["e1", "e2", "e3"]
        assert received[0]["type"] == "navigation"

    async def test_resume_after_last_event_id(self, client: AsyncClient, s1_raw_events):
        await client.post("/api/events", json={"events": s1_raw_events})
        await client.post("/api/sessions/S1/close")

        full = await _read_stream(client, "/api/stream/session/S1")
        resumed = await _read_stream(
            client,
            "/api/stream/session/S1",
            headers={"Last-Event-ID": str(full[0]["seq"])},
        )
        assert [e["event_id"] for e in resumed] == ["e2", "e3"]

    async def test_ingest_broadcasts_to_subscribers(
        self, app, client: AsyncClient, s1_raw_events
    ):
        sse_hub = app.state.sse_hub
        queue = await sse_hub.subscribe("S1")
        try:
            await client.post("/api/events", json={"events": s1_raw_events})

            received = [await asyncio.wait_for(queue.get(), timeout=2.0) for _ in range(3)]
            assert [e.event_id for e in received] == ["e1", "e2", "e3"]
            assert queue.empty()
        finally:
            await sse_hub.unsubscribe("S1", queue)
        assert sse_hub.subscriber_count("S1") == 0


async def _wait_for_subscriber(sse_hub, session_id: str) -> None:
    for _ in range(200):
        if sse_hub.subscriber_count(session_id):
            return
        await asyncio.sleep(0.01)
    raise AssertionError("stream never subscribed")


class TestStreamEndsOnClose:
    """流打开期间会话被关闭时，事件流结束而不是无限心跳"""

    async def test_close_endpoint_ends_stream(self, app, client: AsyncClient, s1_raw_events):
        await client.post("/api/events", json={"events": s1_raw_events})

        reader = asyncio.create_task(_read_stream(client, "/api/stream/session/S1"))
        await _wait_for_subscriber(app.state.sse_hub, "S1")
        resp = await client.post("/api/sessions/S1/close")
        assert resp.json()["closed"] is True

        received = await asyncio.wait_for(reader, timeout=5.0)
        assert [e["event_id"] for e in received] == ["e1", "e2", "e3"]
        assert app.state.sse_hub.subscriber_count("S1") == 0

    async def test_session_end_event_ends_stream(self, app, client: AsyncClient, s1_raw_events):
        await client.post("/api/events", json={"events": s1_raw_events[:1]})

        reader = asyncio.create_task(_read_stream(client, "/api/stream/session/S1"))
        await _wait_for_subscriber(app.state.sse_hub, "S1")
        end = {
            "id": "end",
            "sessionId": "S1",
            "type": "system",
            "timestamp": s1_raw_events[-1]["timestamp"] + 100,
            "metadata": {"action": "session_end"},
        }
        await client.post("/api/events", json={"events": [*s1_raw_events[1:], end]})

        received = await asyncio.wait_for(reader, timeout=5.0)
        assert [e["event_id"] for e in received] == ["e1", "e2", "e3", "end"]

    async def test_close_outside_gateway_ends_at_heartbeat(
        self, app, client: AsyncClient, s1_raw_events, monkeypatch
    ):
        """close-idle 在网关进程外关闭会话：心跳时复查状态后结束"""
        from patternforge.core.store.transaction import close_sessions

        monkeypatch.setattr("patternforge.gateway.routes.stream.SSE_HEARTBEAT_INTERVAL", 0.05)
        await client.post("/api/events", json={"events": s1_raw_events})

        reader = asyncio.create_task(_read_stream(client, "/api/stream/session/S1"))
        await _wait_for_subscriber(app.state.sse_hub, "S1")
        store_group = app.state.store_group
        await close_sessions(store_group.conn, store_group.session_store, ["S1"])

        received = await asyncio.wait_for(reader, timeout=5.0)
        assert len(received) == 3

    async def test_hub_close_marker(self, app):
        sse_hub = app.state.sse_hub
        first = await sse_hub.subscribe("S1")
        second = await sse_hub.subscribe("S1")

        await sse_hub.close_session("S1")

        assert first.get_nowait() is None
        assert second.get_nowait() is None
        assert sse_hub.subscriber_count("S1") == 0
        await sse_hub.unsubscribe("S1", first)
