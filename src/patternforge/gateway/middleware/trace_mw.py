"""TraceMiddleware -- 资源级日志上下文

从路径中提取 session_id / model_id 绑定到 structlog contextvars，
同一会话或模型相关的日志可以按字段聚合。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# 路径段 -> 绑定的上下文字段
_RESOURCE_SEGMENTS = {
    "sessions": "session_id",
    "session": "session_id",
    "models": "model_id",
}

# 集合路由下的非 ID 子路径
_RESERVED = {"stats", "synthesize"}


class TraceMiddleware(BaseHTTPMiddleware):
    """资源级追踪中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        parts = [p for p in request.url.path.split("/") if p]
        bound: dict[str, str] = {}
        for i, part in enumerate(parts[:-1]):
            key = _RESOURCE_SEGMENTS.get(part)
            if key and parts[i + 1] not in _RESERVED:
                bound.setdefault(key, parts[i + 1])

        if bound:
            structlog.contextvars.bind_contextvars(**bound)

        return await call_next(request)
