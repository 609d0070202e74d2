"""CaptureConfig -- 采集端配置加载

从环境变量加载，非法数值记录告警并回退默认值，不阻塞启动。
"""

import os

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()


class CaptureConfig(BaseModel):
    """采集端配置 -- 从环境变量加载

    环境变量:
        PATTERNFORGE_INGEST_URL: 上报服务基础 URL（默认 http://localhost:8000）
        PATTERNFORGE_CAPTURE_BATCH_SIZE: 触发 flush 的队列长度（默认 50）
        PATTERNFORGE_CAPTURE_FLUSH_INTERVAL_S: 定时 flush 间隔（秒，默认 5）
        PATTERNFORGE_CAPTURE_TIMEOUT_S: 上报请求超时（秒，默认 10）
        PATTERNFORGE_CAPTURE_MAX_QUEUE: 队列上限，超出丢弃最旧事件（默认 5000）
    """

    ingest_url: str = Field(default="http://localhost:8000", description="上报服务基础 URL")
    batch_size: int = Field(default=50, ge=1, description="触发 flush 的队列长度")
    flush_interval_s: float = Field(default=5.0, gt=0, description="定时 flush 间隔（秒）")
    timeout_s: float = Field(default=10.0, gt=0, description="上报请求超时（秒）")
    max_queue: int = Field(default=5000, ge=1, description="队列上限")


_NUMERIC_ENV: dict[str, tuple[str, type]] = {
    "PATTERNFORGE_CAPTURE_BATCH_SIZE": ("batch_size", int),
    "PATTERNFORGE_CAPTURE_FLUSH_INTERVAL_S": ("flush_interval_s", float),
    "PATTERNFORGE_CAPTURE_TIMEOUT_S": ("timeout_s", float),
    "PATTERNFORGE_CAPTURE_MAX_QUEUE": ("max_queue", int),
}


def load_capture_config() -> CaptureConfig:
    """从环境变量加载采集端配置

    Returns:
        CaptureConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("PATTERNFORGE_INGEST_URL"):
        kwargs["ingest_url"] = val

    for env_var, (field_name, cast) in _NUMERIC_ENV.items():
        val = os.environ.get(env_var)
        if not val:
            continue
        try:
            number = cast(val)
        except ValueError:
            number = None
        if number is None or number <= 0:
            log.warning(
                "invalid_capture_config",
                env_var=env_var,
                value=val,
                fallback=CaptureConfig.model_fields[field_name].default,
            )
            continue
        kwargs[field_name] = number

    return CaptureConfig(**kwargs)
