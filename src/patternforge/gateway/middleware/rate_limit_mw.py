"""RateLimitMiddleware -- 事件上报限流

只作用于 POST /api/events。调用方标识取 X-Client-Id 请求头，缺省为客户端地址。
RateLimitStore 从 app.state 读取，未注入时不限流。
"""

import math

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

log = structlog.get_logger()

_LIMITED_ROUTES = {("POST", "/api/events")}


def caller_identity(request: Request) -> str:
    client_id = request.headers.get("x-client-id")
    if client_id:
        return client_id
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """事件上报限流中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if (request.method, request.url.path) not in _LIMITED_ROUTES:
            return await call_next(request)

        store = getattr(request.app.state, "rate_limit_store", None)
        if store is None:
            return await call_next(request)

        caller = caller_identity(request)
        allowed, retry_after = store.hit(caller)
        if not allowed:
            await log.awarning("rate_limited", caller=caller, limit=store.limit)
            return JSONResponse(
                status_code=429,
                headers={"Retry-After": str(max(1, math.ceil(retry_after)))},
                content={
                    "error": {
                        "code": "RATE_LIMITED",
                        "message": f"Too many requests; limit is {store.limit} per {store.window_s:g}s",
                        "retryable": True,
                    }
                },
            )
        return await call_next(request)
