"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、批量上限、会话超时、事件保留期、限流等可配置常量。
"""

import os
from pathlib import Path


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("PATTERNFORGE_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "PATTERNFORGE_DB_PATH",
        str(_get_base_dir() / "sqlite" / "patternforge.db"),
    )


def get_scoring_policy_path() -> Path | None:
    """获取打分策略 JSON 文件路径，未配置时返回 None（使用内置默认策略）"""
    value = os.environ.get("PATTERNFORGE_SCORING_POLICY")
    return Path(value) if value else None


def recognize_on_close() -> bool:
    """会话关闭后是否自动触发后台识别"""
    return os.environ.get("PATTERNFORGE_RECOGNIZE_ON_CLOSE", "true").lower() == "true"


# 单次 POST /api/events 允许的最大事件数
MAX_BATCH_SIZE: int = int(os.environ.get("PATTERNFORGE_MAX_BATCH_SIZE", "1000"))

# 会话无活动超时（毫秒），close-idle 命令据此关闭会话
SESSION_IDLE_TIMEOUT_MS: int = int(
    os.environ.get("PATTERNFORGE_SESSION_IDLE_TIMEOUT_MS", str(30 * 60 * 1000))
)

# 事件保留天数，prune-events 命令默认值
EVENT_RETENTION_DAYS: int = int(os.environ.get("PATTERNFORGE_EVENT_RETENTION_DAYS", "90"))

# 事件上报限流：每个调用方在窗口内的最大请求数（0 表示关闭限流）
RATE_LIMIT: int = int(os.environ.get("PATTERNFORGE_RATE_LIMIT", "1000"))
RATE_WINDOW_S: int = int(os.environ.get("PATTERNFORGE_RATE_WINDOW_S", "60"))

# SSE 心跳间隔（秒）
SSE_HEARTBEAT_INTERVAL: int = int(os.environ.get("PATTERNFORGE_SSE_HEARTBEAT_INTERVAL", "15"))

# 默认代码生成目标
DEFAULT_TARGET: str = os.environ.get("PATTERNFORGE_DEFAULT_TARGET", "nextjs-app")

# 列表查询分页
DEFAULT_PAGE_LIMIT: int = 50
MAX_PAGE_LIMIT: int = 500
