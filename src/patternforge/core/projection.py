"""Projection 重建模块

从 events 表重建 sessions 表的聚合字段（start_time、last_event_time、event_count）。
会话 metadata、user_id、created_at 与关闭状态不来自事件，重建时保留原值；
事件已被保留期清理的会话 event_count 归零，时间字段保持不变。
"""

import time
from datetime import UTC, datetime

import aiosqlite
import structlog

from .models.event import Event
from .models.session import Session
from .store.event_store import SqliteEventStore
from .store.session_store import SqliteSessionStore

log = structlog.get_logger()


def apply_event(sessions: dict[str, Session], event: Event) -> None:
    """将单个事件应用到会话聚合（内存中操作）

    Args:
        sessions: session_id -> Session 的映射表（会被就地修改）
        event: 要应用的事件
    """
    session = sessions.get(event.session_id)
    if session is None:
        sessions[event.session_id] = Session(
            session_id=event.session_id,
            user_id=event.user_id,
            start_time=event.timestamp,
            last_event_time=event.timestamp,
            event_count=1,
            created_at=datetime.now(UTC),
        )
        return

    sessions[event.session_id] = session.model_copy(
        update={
            "start_time": min(session.start_time, event.timestamp),
            "last_event_time": max(session.last_event_time, event.timestamp),
            "event_count": session.event_count + 1,
            "user_id": session.user_id or event.user_id,
        }
    )


def merge_with_existing(rebuilt: Session, existing: Session | None) -> Session:
    """合并重建结果与库中原有会话的非事件字段"""
    if existing is None:
        return rebuilt
    end_time = existing.end_time
    if end_time is not None:
        end_time = max(end_time, rebuilt.last_event_time)
    return rebuilt.model_copy(
        update={
            "user_id": existing.user_id or rebuilt.user_id,
            "metadata": existing.metadata,
            "created_at": existing.created_at,
            "end_time": end_time,
        }
    )


async def rebuild_all(
    conn: aiosqlite.Connection,
    event_store: SqliteEventStore,
    session_store: SqliteSessionStore,
) -> int:
    """从 events 表重建 sessions 表

    流程：
    1. 读取所有事件（按 session_id, ts, seq 排序）
    2. 在内存中应用所有事件，构建会话聚合
    3. 读取现有会话，保留非事件字段
    4. 清空 sessions 表后写入重建结果

    Args:
        conn: 数据库连接
        event_store: EventStore 实例
        session_store: SessionStore 实例

    Returns:
        处理的事件总数
    """
    start_time = time.monotonic()

    # 1. 读取所有事件
    events = await event_store.get_all_events()
    event_count = len(events)

    await log.ainfo(
        "projection_rebuild_started",
        event_count=event_count,
    )

    # 2. 在内存中应用所有事件
    rebuilt: dict[str, Session] = {}
    for event in events:
        apply_event(rebuilt, event)

    # 3. 读取现有会话
    existing_sessions: dict[str, Session] = {}
    offset = 0
    while True:
        page, _ = await session_store.list_sessions(limit=500, offset=offset)
        if not page:
            break
        existing_sessions.update({s.session_id: s for s in page})
        offset += len(page)

    merged = {
        session_id: merge_with_existing(session, existing_sessions.get(session_id))
        for session_id, session in rebuilt.items()
    }
    for session_id, session in existing_sessions.items():
        if session_id not in merged:
            merged[session_id] = session.model_copy(update={"event_count": 0})

    # 4. 临时禁用外键约束，清空 sessions 表后重建
    await conn.execute("PRAGMA foreign_keys = OFF")
    try:
        await conn.execute("DELETE FROM sessions")
        for session in merged.values():
            await session_store.create_session(session)
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise
    finally:
        # 5. 恢复外键约束
        await conn.execute("PRAGMA foreign_keys = ON")

    elapsed_ms = int((time.monotonic() - start_time) * 1000)
    await log.ainfo(
        "projection_rebuild_completed",
        event_count=event_count,
        session_count=len(merged),
        elapsed_ms=elapsed_ms,
    )

    return event_count
