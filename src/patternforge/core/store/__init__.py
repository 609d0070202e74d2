"""PatternForge Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

import asyncio
from pathlib import Path

import aiosqlite

from .definition_store import SqliteDefinitionStore
from .event_store import SqliteEventStore
from .model_store import SqliteModelStore
from .pattern_store import SqlitePatternStore
from .session_store import SqliteSessionStore
from .sqlite_init import init_db
from .transaction import (
    append_events_and_update_sessions,
    close_sessions,
    delete_definition,
    delete_model,
    delete_session_cascade,
    replace_session_patterns,
    save_definition,
    save_model_version,
)


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接

    同一连接上的事务不能交错，write_lock 串行化每个事务单元。
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn = conn
        self.write_lock = asyncio.Lock()
        self.event_store = SqliteEventStore(conn)
        self.session_store = SqliteSessionStore(conn)
        self.pattern_store = SqlitePatternStore(conn)
        self.model_store = SqliteModelStore(conn)
        self.definition_store = SqliteDefinitionStore(conn)


async def create_store_group(db_path: str) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径

    Returns:
        StoreGroup 实例
    """
    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(conn=conn)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "SqliteEventStore",
    "SqliteSessionStore",
    "SqlitePatternStore",
    "SqliteModelStore",
    "SqliteDefinitionStore",
    "init_db",
    "append_events_and_update_sessions",
    "replace_session_patterns",
    "save_model_version",
    "delete_model",
    "delete_session_cascade",
    "save_definition",
    "delete_definition",
    "close_sessions",
]
