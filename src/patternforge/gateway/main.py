"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭、服务组件初始化、路由注册、
PipelineError 统一渲染为 {"error": {"code", "message", "retryable"}}。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from patternforge.core.config import DEFAULT_TARGET, RATE_LIMIT, RATE_WINDOW_S, get_db_path
from patternforge.core.exceptions import PipelineError
from patternforge.core.store import StoreGroup, create_store_group
from patternforge.engine import RecognitionEngine, load_scoring_policy
from starlette.responses import JSONResponse

from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.rate_limit_mw import RateLimitMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import events, generate, health, models, patterns, sessions, stream
from .services.generation_service import GenerationService
from .services.rate_limit import RateLimitStore
from .services.recognition_service import RecognitionService
from .services.session_locks import SessionLockRegistry
from .services.sse_hub import SSEHub

log = structlog.get_logger()


def init_app_state(
    app: FastAPI,
    store_group: StoreGroup,
    engine: RecognitionEngine | None = None,
    rate_limit_store: RateLimitStore | None = None,
) -> None:
    """把 Store 与服务组件挂到 app.state

    lifespan 与测试共用；测试可以注入自定义策略或限流配置。
    """
    app.state.store_group = store_group
    app.state.sse_hub = SSEHub()
    app.state.session_locks = SessionLockRegistry()
    app.state.rate_limit_store = rate_limit_store or RateLimitStore(RATE_LIMIT, RATE_WINDOW_S)
    app.state.recognition_service = RecognitionService(
        store_group, engine or RecognitionEngine(load_scoring_policy())
    )
    app.state.generation_service = GenerationService(store_group, default_target=DEFAULT_TARGET)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 DB 与服务组件，关闭时清理连接"""
    db_path = get_db_path()
    store_group = await create_store_group(db_path)
    init_app_state(app, store_group)
    log.info(
        "gateway_started",
        db_path=db_path,
        policy=app.state.recognition_service.policy.label,
        rate_limit=app.state.rate_limit_store.limit,
    )

    yield

    # 关闭：等待后台识别结束，再关闭数据库连接
    if getattr(app.state, "recognition_service", None) is not None:
        await app.state.recognition_service.drain()
    if getattr(app.state, "store_group", None) is not None:
        await app.state.store_group.conn.close()


async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    error: dict = {"code": exc.code, "message": exc.message}
    if exc.recoverable:
        error["retryable"] = True
    if exc.status_code >= 500:
        await log.aerror("pipeline_error", code=exc.code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": error})


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [
        {"loc": list(err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "code": "VALIDATION_FAILED",
                "message": "Request validation failed",
                "details": details,
            }
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PipelineError, pipeline_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="PatternForge Gateway",
        version="0.1.0",
        description="行为事件采集 -> 模式识别 -> 应用模型 -> 代码生成",
        lifespan=lifespan,
    )

    # 注册中间件（后注册的先执行：Logging -> Trace -> RateLimit）
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    setup_logging()
    setup_logfire(app)

    register_error_handlers(app)

    app.include_router(events.router, tags=["events"])
    app.include_router(sessions.router, tags=["sessions"])
    app.include_router(patterns.router, tags=["patterns"])
    app.include_router(models.router, tags=["models"])
    app.include_router(generate.router, tags=["generate"])
    app.include_router(stream.router, tags=["stream"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
