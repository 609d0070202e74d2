"""原子事务封装

事件写入与会话 projection 更新、模式集合替换、模型版本写入、
会话级联删除、模式定义写入都在同一 SQLite 事务内提交，失败整体回滚。
数据库操作性错误（锁超时、磁盘 I/O 等）统一转换为 StorageUnavailableError。
"""

from collections.abc import Sequence
from datetime import UTC, datetime

import aiosqlite

from ..exceptions import StorageUnavailableError
from ..models.app_model import ApplicationModel
from ..models.definition import PatternDefinition
from ..models.event import Event
from ..models.pattern import RecognizedPattern
from ..models.session import Session, SessionMetadata
from .definition_store import SqliteDefinitionStore
from .event_store import SqliteEventStore
from .model_store import SqliteModelStore
from .pattern_store import SqlitePatternStore
from .session_store import SqliteSessionStore


async def append_events_and_update_sessions(
    conn: aiosqlite.Connection,
    event_store: SqliteEventStore,
    session_store: SqliteSessionStore,
    events: Sequence[Event],
    session_metadata: dict[str, SessionMetadata] | None = None,
    closing_session_ids: set[str] | None = None,
) -> list[Event]:
    """在同一事务内写入一批事件并更新涉及的会话

    - 首次出现的会话在此创建
    - event_count 只累加实际新插入的事件（重复事件忽略）
    - closing_session_ids 中的会话在事件写入后关闭

    Args:
        conn: 数据库连接（需在同一连接上操作以保证事务性）
        event_store: EventStore 实例
        session_store: SessionStore 实例
        events: 已规范化的事件，按提交顺序
        session_metadata: session_id -> 采集端附带的会话 metadata
        closing_session_ids: 本批次内需要关闭的会话

    Returns:
        新插入的事件（带 seq），按提交顺序

    Raises:
        StorageUnavailableError: 数据库不可用，事务已回滚
    """
    session_metadata = session_metadata or {}
    closing_session_ids = closing_session_ids or set()
    inserted: list[Event] = []

    try:
        # 1. 确保会话存在（外键约束要求先于事件写入）
        first_seen: dict[str, Event] = {}
        for event in events:
            first_seen.setdefault(event.session_id, event)

        now = datetime.now(UTC)
        for session_id, event in first_seen.items():
            existing = await session_store.get_session(session_id)
            if existing is None:
                timestamps = [e.timestamp for e in events if e.session_id == session_id]
                await session_store.create_session(
                    Session(
                        session_id=session_id,
                        user_id=event.user_id,
                        start_time=min(timestamps),
                        last_event_time=max(timestamps),
                        event_count=0,
                        metadata=session_metadata.get(session_id, SessionMetadata()),
                        created_at=now,
                    )
                )
            elif session_id in session_metadata:
                await session_store.update_metadata(session_id, session_metadata[session_id])

        # 2. 追加事件（重复事件静默忽略）
        for event in events:
            seq = await event_store.append_event(event)
            if seq is not None:
                inserted.append(event.model_copy(update={"seq": seq}))

        # 3. 合并新事件到会话聚合字段
        for session_id in first_seen:
            new_events = [e for e in inserted if e.session_id == session_id]
            if not new_events:
                continue
            await session_store.update_aggregates(
                session_id=session_id,
                added_events=len(new_events),
                earliest_ts=min(e.timestamp for e in new_events),
                latest_ts=max(e.timestamp for e in new_events),
            )

        # 4. 关闭会话
        for session_id in sorted(closing_session_ids):
            await session_store.close_session(session_id)

        # 原子提交
        await conn.commit()
    except aiosqlite.OperationalError as e:
        await conn.rollback()
        raise StorageUnavailableError(e) from e
    except Exception:
        await conn.rollback()
        raise

    return inserted


async def replace_session_patterns(
    conn: aiosqlite.Connection,
    pattern_store: SqlitePatternStore,
    session_id: str,
    patterns: list[RecognizedPattern],
) -> None:
    """原子替换会话的模式集合"""
    try:
        await pattern_store.replace_session_patterns(session_id, patterns)
        await conn.commit()
    except aiosqlite.OperationalError as e:
        await conn.rollback()
        raise StorageUnavailableError(e) from e
    except Exception:
        await conn.rollback()
        raise


async def save_model_version(
    conn: aiosqlite.Connection,
    model_store: SqliteModelStore,
    model: ApplicationModel,
) -> None:
    """原子写入模型当前版本与版本快照"""
    try:
        await model_store.save_model(model)
        await conn.commit()
    except aiosqlite.OperationalError as e:
        await conn.rollback()
        raise StorageUnavailableError(e) from e
    except Exception:
        await conn.rollback()
        raise


async def delete_model(
    conn: aiosqlite.Connection,
    model_store: SqliteModelStore,
    model_id: str,
) -> bool:
    """删除模型及其版本历史"""
    try:
        deleted = await model_store.delete_model(model_id)
        await conn.commit()
    except aiosqlite.OperationalError as e:
        await conn.rollback()
        raise StorageUnavailableError(e) from e
    except Exception:
        await conn.rollback()
        raise
    return deleted


async def delete_session_cascade(
    conn: aiosqlite.Connection,
    event_store: SqliteEventStore,
    session_store: SqliteSessionStore,
    pattern_store: SqlitePatternStore,
    session_id: str,
) -> bool:
    """级联删除会话：模式 -> 事件 -> 会话

    已引用这些模式的模型不受影响（允许悬空引用）。

    Returns:
        True 如果会话存在并已删除
    """
    try:
        await pattern_store.delete_patterns_for_session(session_id)
        await event_store.delete_events_for_session(session_id)
        deleted = await session_store.delete_session(session_id)
        await conn.commit()
    except aiosqlite.OperationalError as e:
        await conn.rollback()
        raise StorageUnavailableError(e) from e
    except Exception:
        await conn.rollback()
        raise
    return deleted


async def close_sessions(
    conn: aiosqlite.Connection,
    session_store: SqliteSessionStore,
    session_ids: Sequence[str],
) -> list[str]:
    """关闭一组会话

    Returns:
        实际由活跃变为关闭的会话 ID
    """
    closed: list[str] = []
    try:
        for session_id in session_ids:
            if await session_store.close_session(session_id):
                closed.append(session_id)
        await conn.commit()
    except aiosqlite.OperationalError as e:
        await conn.rollback()
        raise StorageUnavailableError(e) from e
    except Exception:
        await conn.rollback()
        raise
    return closed


async def save_definition(
    conn: aiosqlite.Connection,
    definition_store: SqliteDefinitionStore,
    definition: PatternDefinition,
) -> None:
    """写入模式定义并提交"""
    try:
        await definition_store.save_definition(definition)
        await conn.commit()
    except aiosqlite.OperationalError as e:
        await conn.rollback()
        raise StorageUnavailableError(e) from e
    except Exception:
        await conn.rollback()
        raise


async def delete_definition(
    conn: aiosqlite.Connection,
    definition_store: SqliteDefinitionStore,
    definition_id: str,
) -> bool:
    """删除模式定义；已识别出的模式不受影响"""
    try:
        deleted = await definition_store.delete_definition(definition_id)
        await conn.commit()
    except aiosqlite.OperationalError as e:
        await conn.rollback()
        raise StorageUnavailableError(e) from e
    except Exception:
        await conn.rollback()
        raise
    return deleted
