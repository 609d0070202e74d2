"""CLI 入口模块 -- python -m patternforge.core <command>

支持的命令：
  rebuild-sessions     从 events 表重建 sessions 表
  prune-events [days]  删除超过保留期的事件（默认 PATTERNFORGE_EVENT_RETENTION_DAYS）
  close-idle           关闭超过无活动超时的会话
"""

import asyncio
import sys
import time

from .config import EVENT_RETENTION_DAYS, SESSION_IDLE_TIMEOUT_MS, get_db_path

_USAGE = """用法: python -m patternforge.core <command>
命令:
  rebuild-sessions     从 events 表重建 sessions 表
  prune-events [days]  删除超过保留期的事件
  close-idle           关闭超过无活动超时的会话"""


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print(_USAGE)
        sys.exit(1)

    command = sys.argv[1]

    if command == "rebuild-sessions":
        asyncio.run(rebuild_sessions())
    elif command == "prune-events":
        days = EVENT_RETENTION_DAYS
        if len(sys.argv) > 2:
            try:
                days = int(sys.argv[2])
            except ValueError:
                print(f"无效的天数: {sys.argv[2]}")
                sys.exit(1)
        asyncio.run(prune_events(days))
    elif command == "close-idle":
        asyncio.run(close_idle())
    else:
        print(f"未知命令: {command}")
        print("可用命令: rebuild-sessions, prune-events, close-idle")
        sys.exit(1)


async def rebuild_sessions() -> None:
    """执行 sessions Projection 重建"""
    from .projection import rebuild_all
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")
    print("开始重建 sessions...")

    store_group = await create_store_group(db_path)

    try:
        event_count = await rebuild_all(
            store_group.conn,
            store_group.event_store,
            store_group.session_store,
        )
        print(f"重建完成，处理 {event_count} 条事件")
    finally:
        await store_group.conn.close()


async def prune_events(days: int) -> None:
    """删除早于保留期的事件，随后重建会话聚合"""
    from .projection import rebuild_all
    from .store import create_store_group

    cutoff_ts = int(time.time() * 1000) - days * 24 * 60 * 60 * 1000
    store_group = await create_store_group(get_db_path())

    try:
        deleted = await store_group.event_store.delete_events_before(cutoff_ts)
        await store_group.conn.commit()
        print(f"已删除 {deleted} 条超过 {days} 天的事件")
        if deleted:
            await rebuild_all(
                store_group.conn,
                store_group.event_store,
                store_group.session_store,
            )
    finally:
        await store_group.conn.close()


async def close_idle() -> None:
    """关闭最后事件早于无活动超时的会话"""
    from .store import close_sessions, create_store_group

    idle_before = int(time.time() * 1000) - SESSION_IDLE_TIMEOUT_MS
    store_group = await create_store_group(get_db_path())

    try:
        idle_ids = await store_group.session_store.list_idle_session_ids(idle_before)
        closed = await close_sessions(
            store_group.conn, store_group.session_store, idle_ids
        )
        print(f"已关闭 {len(closed)} 个无活动会话")
    finally:
        await store_group.conn.close()


if __name__ == "__main__":
    main()
