"""事件上报限流测试

测试内容：
1. RateLimitStore 固定窗口计数、窗口过期清理、limit<=0 不限流
2. 中间件：超限返回 429 + Retry-After，按 X-Client-Id 区分调用方
3. 只限制 POST /api/events
"""

from httpx import AsyncClient
from patternforge.gateway.services.rate_limit import RateLimitStore


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestRateLimitStore:
    def test_window_counting(self):
        clock = FakeClock()
        store = RateLimitStore(limit=2, window_s=10, clock=clock)

        assert store.hit("a") == (True, 10.0)
        clock.now += 4
        assert store.hit("a") == (True, 6.0)
        assert store.hit("a") == (False, 6.0)
        # 不同调用方各自计数
        assert store.hit("b")[0] is True

    def test_window_expiry_sweeps(self):
        clock = FakeClock()
        store = RateLimitStore(limit=1, window_s=10, clock=clock)
        store.hit("a")
        store.hit("b")
        assert len(store) == 2

        clock.now += 10
        assert store.hit("a") == (True, 10.0)
        assert len(store) == 1

    def test_disabled(self):
        store = RateLimitStore(limit=0, window_s=10)
        for _ in range(100):
            assert store.hit("a") == (True, 0.0)
        assert len(store) == 0


class TestRateLimitMiddleware:
    async def test_limit_exceeded(self, app, client: AsyncClient):
        app.state.rate_limit_store = RateLimitStore(limit=2, window_s=60)
        batch = {"events": [{"id": "x", "sessionId": "S1", "type": "system", "timestamp": 1}]}
        headers = {"X-Client-Id": "tab-1"}

        for _ in range(2):
            resp = await client.post("/api/events", json=batch, headers=headers)
            assert resp.status_code == 200

        resp = await client.post("/api/events", json=batch, headers=headers)
        assert resp.status_code == 429
        assert 1 <= int(resp.headers["retry-after"]) <= 60
        error = resp.json()["error"]
        assert error["code"] == "RATE_LIMITED"
        assert error["retryable"] is True

        resp = await client.post("/api/events", json=batch, headers={"X-Client-Id": "tab-2"})
        assert resp.status_code == 200

    async def test_other_routes_not_limited(self, app, client: AsyncClient):
        app.state.rate_limit_store = RateLimitStore(limit=1, window_s=60)
        for _ in range(3):
            assert (await client.get("/api/events")).status_code == 200
            assert (await client.get("/health")).status_code == 200
