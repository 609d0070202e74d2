"""SQLite 数据库初始化

PRAGMA 配置 + 六张表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# sessions 表 DDL（events 的物化视图）
_SESSIONS_DDL = """
CREATE TABLE IF NOT EXISTS sessions (
    session_id       TEXT PRIMARY KEY,
    user_id          TEXT,
    start_time       INTEGER NOT NULL,
    end_time         INTEGER,
    last_event_time  INTEGER NOT NULL,
    event_count      INTEGER NOT NULL DEFAULT 0,
    metadata         TEXT NOT NULL DEFAULT '{}',
    created_at       TEXT NOT NULL
);
"""

_SESSIONS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_sessions_user_id ON sessions(user_id);",
    "CREATE INDEX IF NOT EXISTS idx_sessions_start_time ON sessions(start_time DESC);",
    "CREATE INDEX IF NOT EXISTS idx_sessions_active ON sessions(end_time) WHERE end_time IS NULL;",
]

# events 表 DDL
# seq 为全局到达序号，同一时间戳的事件按提交顺序排列
_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS events (
    seq          INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id     TEXT NOT NULL,
    session_id   TEXT NOT NULL,
    user_id      TEXT,
    type         TEXT NOT NULL,
    ts           INTEGER NOT NULL,
    metadata     TEXT NOT NULL DEFAULT '{}',
    received_at  TEXT NOT NULL,

    FOREIGN KEY (session_id) REFERENCES sessions(session_id)
);
"""

_EVENTS_INDEXES = [
    # 会话内事件 ID 唯一约束（重复提交静默忽略）
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_events_session_event ON events(session_id, event_id);",
    # 会话内事件时间排序索引
    "CREATE INDEX IF NOT EXISTS idx_events_session_ts ON events(session_id, ts, seq);",
    "CREATE INDEX IF NOT EXISTS idx_events_type ON events(type);",
    "CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);",
]

# patterns 表 DDL
_PATTERNS_DDL = """
CREATE TABLE IF NOT EXISTS patterns (
    pattern_id    TEXT PRIMARY KEY,
    session_id    TEXT NOT NULL,
    pattern_type  TEXT NOT NULL,
    confidence    REAL NOT NULL,
    event_ids     TEXT NOT NULL DEFAULT '[]',
    start_time    INTEGER NOT NULL,
    end_time      INTEGER NOT NULL,
    metadata      TEXT NOT NULL DEFAULT '{}',
    created_at    TEXT NOT NULL,

    FOREIGN KEY (session_id) REFERENCES sessions(session_id)
);
"""

_PATTERNS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_patterns_session ON patterns(session_id, start_time);",
    "CREATE INDEX IF NOT EXISTS idx_patterns_type ON patterns(pattern_type);",
    "CREATE INDEX IF NOT EXISTS idx_patterns_confidence ON patterns(confidence DESC);",
]

# app_models 表 DDL（当前版本）
_APP_MODELS_DDL = """
CREATE TABLE IF NOT EXISTS app_models (
    model_id            TEXT PRIMARY KEY,
    version             TEXT NOT NULL,
    name                TEXT NOT NULL,
    description         TEXT,
    entities            TEXT NOT NULL DEFAULT '[]',
    screens             TEXT NOT NULL DEFAULT '[]',
    workflows           TEXT NOT NULL DEFAULT '[]',
    source_pattern_ids  TEXT NOT NULL DEFAULT '[]',
    confidence          REAL NOT NULL,
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL
);
"""

_APP_MODELS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_app_models_confidence ON app_models(confidence DESC);",
    "CREATE INDEX IF NOT EXISTS idx_app_models_created_at ON app_models(created_at DESC);",
]

# app_model_versions 表 DDL（append-only 版本历史）
_APP_MODEL_VERSIONS_DDL = """
CREATE TABLE IF NOT EXISTS app_model_versions (
    model_id    TEXT NOT NULL,
    version     TEXT NOT NULL,
    snapshot    TEXT NOT NULL,
    recorded_at TEXT NOT NULL,

    PRIMARY KEY (model_id, version)
);
"""


# pattern_definitions 表 DDL（数据驱动的识别规则）
_PATTERN_DEFINITIONS_DDL = """
CREATE TABLE IF NOT EXISTS pattern_definitions (
    definition_id  TEXT PRIMARY KEY,
    name           TEXT NOT NULL,
    description    TEXT,
    pattern_type   TEXT NOT NULL,
    rules          TEXT NOT NULL,
    is_active      INTEGER NOT NULL DEFAULT 1,
    created_at     TEXT NOT NULL,
    updated_at     TEXT NOT NULL
);
"""

async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    await conn.execute(_SESSIONS_DDL)
    await conn.execute(_EVENTS_DDL)
    await conn.execute(_PATTERNS_DDL)
    await conn.execute(_APP_MODELS_DDL)
    await conn.execute(_APP_MODEL_VERSIONS_DDL)
    await conn.execute(_PATTERN_DEFINITIONS_DDL)

    # 创建索引
    for idx_sql in (
        _SESSIONS_INDEXES + _EVENTS_INDEXES + _PATTERNS_INDEXES + _APP_MODELS_INDEXES
    ):
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
