"""LoggingMiddleware -- 请求级日志

为每个 HTTP 请求生成 request_id，连同流水线阶段（stage）绑定到 structlog contextvars，
并通过 X-Request-ID 响应头返回。会触发识别的请求额外绑定当前打分策略标签（policy）。
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

# 可能触发识别的阶段：上报的 session_end 事件与手动识别
_POLICY_STAGES = {"ingest", "recognition"}


def pipeline_stage(method: str, path: str) -> str | None:
    """把请求映射到流水线阶段，未知路径返回 None

    采集 (ingest) -> 识别 (recognition) -> 合成 (synthesis) -> 生成 (generation)，
    其余为查询类阶段。
    """
    parts = [p for p in path.split("/") if p]
    if not parts:
        return None
    if parts[0] in ("health", "ready"):
        return "health"
    if parts[0] != "api" or len(parts) < 2:
        return None

    resource, rest = parts[1], parts[2:]
    if resource == "events":
        return "ingest" if method == "POST" and not rest else "events"
    if resource == "sessions":
        return "recognition" if rest[-1:] == ["recognize"] else "sessions"
    if resource == "patterns":
        return "patterns"
    if resource == "models":
        return "synthesis" if rest == ["synthesize"] else "models"
    if resource == "generate":
        return "generation"
    if resource == "stream":
        return "stream"
    return None


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求级日志中间件 -- 为每个请求生成 request_id"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = str(ULID())
        start = time.monotonic()

        structlog.contextvars.clear_contextvars()
        context: dict[str, str] = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
        }
        stage = pipeline_stage(request.method, request.url.path)
        if stage is not None:
            context["stage"] = stage
        if stage in _POLICY_STAGES:
            recognition = getattr(request.app.state, "recognition_service", None)
            if recognition is not None:
                context["policy"] = recognition.policy.label
        structlog.contextvars.bind_contextvars(**context)

        log = structlog.get_logger()
        await log.ainfo("request_started")

        try:
            response = await call_next(request)
        except Exception:
            await log.aexception(
                "request_errored",
                duration_ms=int((time.monotonic() - start) * 1000),
            )
            raise

        duration_ms = int((time.monotonic() - start) * 1000)
        if response.status_code >= 400:
            await log.awarning(
                "request_failed", status_code=response.status_code, duration_ms=duration_ms
            )
        else:
            await log.ainfo(
                "request_completed", status_code=response.status_code, duration_ms=duration_ms
            )

        response.headers["X-Request-ID"] = request_id
        return response
