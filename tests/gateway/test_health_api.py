"""健康检查与请求 ID 测试"""

from httpx import AsyncClient


class TestHealth:
    async def test_liveness(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    async def test_readiness(self, client: AsyncClient):
        resp = await client.get("/ready")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ready"
        assert data["checks"]["sqlite"] == "ok"
        assert data["checks"]["wal_mode"] == "ok"
        assert isinstance(data["checks"]["disk_space_mb"], int)

    async def test_readiness_without_store(self, app, client: AsyncClient):
        app.state.store_group = None
        resp = await client.get("/ready")
        assert resp.status_code == 503
        assert resp.json()["status"] == "not_ready"


class TestRequestId:
    async def test_request_id_header(self, client: AsyncClient):
        first = await client.get("/health")
        second = await client.get("/health")

        assert len(first.headers["x-request-id"]) == 26
        assert first.headers["x-request-id"] != second.headers["x-request-id"]

    async def test_request_id_on_errors(self, client: AsyncClient):
        resp = await client.get("/api/sessions/nope")
        assert resp.status_code == 404
        assert "x-request-id" in resp.headers
