"""EventStore SQLite 实现

事件表 append-only：只允许插入（重复 (session_id, event_id) 静默忽略），
唯一的删除路径是保留期清理与会话删除。
会话内读取顺序固定为 (ts, seq)。
"""

import json
from datetime import UTC, datetime

import aiosqlite

from ..models.enums import EventType
from ..models.event import Event, EventMetadata

_SELECT_COLUMNS = "seq, event_id, session_id, user_id, type, ts, metadata"


class SqliteEventStore:
    """EventStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def append_event(self, event: Event) -> int | None:
        """追加事件，重复事件忽略

        注意：此方法不自动提交事务，需由调用方管理事务。

        Returns:
            新分配的 seq；重复事件返回 None
        """
        cursor = await self._conn.execute(
            """
            INSERT OR IGNORE INTO events (event_id, session_id, user_id, type, ts,
                                          metadata, received_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event.event_id,
                event.session_id,
                event.user_id,
                event.type.value,
                event.timestamp,
                event.metadata.model_dump_json(exclude_none=True),
                datetime.now(UTC).isoformat(),
            ),
        )
        if cursor.rowcount == 0:
            return None
        return cursor.lastrowid

    async def get_events_for_session(self, session_id: str) -> list[Event]:
        """查询指定会话的所有事件，按 (ts, seq) 正序"""
        cursor = await self._conn.execute(
            f"SELECT {_SELECT_COLUMNS} FROM events WHERE session_id = ? ORDER BY ts ASC, seq ASC",
            (session_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def get_events_after(self, session_id: str, after_seq: int) -> list[Event]:
        """查询 seq 之后到达的增量事件（用于 SSE 断线重连），按到达顺序"""
        cursor = await self._conn.execute(
            f"""
            SELECT {_SELECT_COLUMNS} FROM events
            WHERE session_id = ? AND seq > ?
            ORDER BY seq ASC
            """,
            (session_id, after_seq),
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def get_events_by_ids(self, session_id: str, event_ids: list[str]) -> list[Event]:
        """按 ID 批量查询同一会话内的事件，按 (ts, seq) 正序"""
        if not event_ids:
            return []
        placeholders = ", ".join("?" for _ in event_ids)
        cursor = await self._conn.execute(
            f"""
            SELECT {_SELECT_COLUMNS} FROM events
            WHERE session_id = ? AND event_id IN ({placeholders})
            ORDER BY ts ASC, seq ASC
            """,
            (session_id, *event_ids),
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def get_event(self, event_id: str, session_id: str | None = None) -> Event | None:
        """根据 event_id 查询事件（event_id 仅在会话内唯一，可用 session_id 限定）"""
        if session_id is not None:
            cursor = await self._conn.execute(
                f"SELECT {_SELECT_COLUMNS} FROM events WHERE event_id = ? AND session_id = ?",
                (event_id, session_id),
            )
        else:
            cursor = await self._conn.execute(
                f"SELECT {_SELECT_COLUMNS} FROM events WHERE event_id = ? ORDER BY seq LIMIT 1",
                (event_id,),
            )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_event(row)

    async def query_events(
        self,
        session_id: str | None = None,
        event_type: str | None = None,
        start_time: int | None = None,
        end_time: int | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Event], int]:
        """条件查询事件

        Returns:
            (当前页事件, 满足条件的总数)
        """
        clauses: list[str] = []
        params: list = []
        if session_id is not None:
            clauses.append("session_id = ?")
            params.append(session_id)
        if event_type is not None:
            clauses.append("type = ?")
            params.append(event_type)
        if start_time is not None:
            clauses.append("ts >= ?")
            params.append(start_time)
        if end_time is not None:
            clauses.append("ts <= ?")
            params.append(end_time)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        cursor = await self._conn.execute(f"SELECT COUNT(*) FROM events {where}", params)
        row = await cursor.fetchone()
        total = row[0] if row else 0

        cursor = await self._conn.execute(
            f"""
            SELECT {_SELECT_COLUMNS} FROM events {where}
            ORDER BY ts DESC, seq DESC
            LIMIT ? OFFSET ?
            """,
            (*params, limit, offset),
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows], total

    async def count_by_type(self) -> dict[str, int]:
        """按事件类型统计数量"""
        cursor = await self._conn.execute(
            "SELECT type, COUNT(*) FROM events GROUP BY type ORDER BY type"
        )
        rows = await cursor.fetchall()
        return {row[0]: row[1] for row in rows}

    async def get_all_events(self) -> list[Event]:
        """查询所有事件，按 session_id, ts, seq 排序（用于 Projection 重建）"""
        cursor = await self._conn.execute(
            f"SELECT {_SELECT_COLUMNS} FROM events ORDER BY session_id, ts ASC, seq ASC"
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def delete_events_before(self, cutoff_ts: int) -> int:
        """删除早于 cutoff_ts 的事件（保留期清理），不自动提交

        Returns:
            删除的事件数
        """
        cursor = await self._conn.execute("DELETE FROM events WHERE ts < ?", (cutoff_ts,))
        return cursor.rowcount

    async def delete_events_for_session(self, session_id: str) -> int:
        """删除指定会话的全部事件，不自动提交"""
        cursor = await self._conn.execute(
            "DELETE FROM events WHERE session_id = ?", (session_id,)
        )
        return cursor.rowcount

    @staticmethod
    def _row_to_event(row: aiosqlite.Row) -> Event:
        """将数据库行转换为 Event 模型"""
        metadata = json.loads(row[6]) if row[6] else {}
        return Event(
            seq=row[0],
            event_id=row[1],
            session_id=row[2],
            user_id=row[3],
            type=EventType(row[4]),
            timestamp=row[5],
            metadata=EventMetadata(**metadata),
        )
