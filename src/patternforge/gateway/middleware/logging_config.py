"""structlog 配置模块

dev 模式：pretty print 可读输出
json 模式：结构化 JSON 输出，每条日志带 service 字段，便于与采集端日志合并检索
Logfire APM：LOGFIRE_SEND_TO_LOGFIRE 环境变量控制，false 时降级为纯本地日志。
"""

import logging
import os
from collections.abc import MutableMapping
from typing import Any

import structlog

SERVICE_NAME = "patternforge"

# 第三方库日志，非 DEBUG 级别下只保留 WARNING 及以上
# aiosqlite 每条 SQL 都会打 DEBUG；uvicorn.access 与 LoggingMiddleware 的 request_* 重复
_NOISY_LOGGERS = ("aiosqlite", "httpx", "httpcore", "sse_starlette", "uvicorn.access")


def add_service_name(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor：补充 service 字段（已有则保留）"""
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def resolve_level(value: str | None) -> int:
    """PATTERNFORGE_LOG_LEVEL -> logging 级别，无法识别时回落到 INFO"""
    level = logging.getLevelName((value or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(log_format: str | None = None, log_level: str | None = None) -> None:
    """初始化 structlog 配置

    参数缺省时读取环境变量：
    - PATTERNFORGE_LOG_FORMAT: "json" 结构化输出（生产环境）/ "dev"（默认）可读输出
    - PATTERNFORGE_LOG_LEVEL: 日志级别（默认 INFO）
    """
    log_format = log_format or os.environ.get("PATTERNFORGE_LOG_FORMAT", "dev")
    level = resolve_level(log_level or os.environ.get("PATTERNFORGE_LOG_LEVEL"))

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        shared_processors.append(add_service_name)
        # JSON 输出里异常展开为 exception 字段
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # 标准库 logging（uvicorn 等第三方日志）走同一渲染器
    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    noisy_level = level if level <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)


def setup_logfire(app: Any = None) -> None:
    """Logfire 可选初始化

    LOGFIRE_SEND_TO_LOGFIRE 环境变量控制：
    - "true": 启用 Logfire APM（需要 LOGFIRE_TOKEN，安装 apm extra）
    - "false" (默认): 纯本地日志
    """
    send_to_logfire = os.environ.get("LOGFIRE_SEND_TO_LOGFIRE", "false").lower()
    if send_to_logfire == "true":
        try:
            import logfire

            logfire.configure(service_name=SERVICE_NAME)
            if app is not None:
                logfire.instrument_fastapi(app)
        except Exception as e:
            structlog.get_logger().warning(
                "logfire_init_failed",
                error=str(e),
                message="Logfire 初始化失败，降级为纯本地日志",
            )
