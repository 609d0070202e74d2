"""SessionStore SQLite 实现

sessions 表是 events 的物化视图（projection）。
写入只发生在入库事务内（见 transaction.py）或显式关闭/删除操作，
此处仅提供数据库操作，均不自动提交。
"""

import json
from datetime import datetime

import aiosqlite

from ..models.session import Session, SessionMetadata

_SELECT_COLUMNS = (
    "session_id, user_id, start_time, end_time, last_event_time, event_count, "
    "metadata, created_at"
)


class SqliteSessionStore:
    """SessionStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_session(self, session: Session) -> None:
        """创建会话记录"""
        await self._conn.execute(
            """
            INSERT INTO sessions (session_id, user_id, start_time, end_time,
                                  last_event_time, event_count, metadata, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                session.session_id,
                session.user_id,
                session.start_time,
                session.end_time,
                session.last_event_time,
                session.event_count,
                session.metadata.model_dump_json(),
                session.created_at.isoformat(),
            ),
        )

    async def get_session(self, session_id: str) -> Session | None:
        """根据 session_id 查询会话"""
        cursor = await self._conn.execute(
            f"SELECT {_SELECT_COLUMNS} FROM sessions WHERE session_id = ?",
            (session_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_session(row)

    async def list_sessions(
        self,
        user_id: str | None = None,
        active: bool | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Session], int]:
        """查询会话列表，按 start_time 倒序

        Returns:
            (当前页会话, 满足条件的总数)
        """
        clauses: list[str] = []
        params: list = []
        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(user_id)
        if active is True:
            clauses.append("end_time IS NULL")
        elif active is False:
            clauses.append("end_time IS NOT NULL")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        cursor = await self._conn.execute(f"SELECT COUNT(*) FROM sessions {where}", params)
        row = await cursor.fetchone()
        total = row[0] if row else 0

        cursor = await self._conn.execute(
            f"""
            SELECT {_SELECT_COLUMNS} FROM sessions {where}
            ORDER BY start_time DESC, session_id ASC
            LIMIT ? OFFSET ?
            """,
            (*params, limit, offset),
        )
        rows = await cursor.fetchall()
        return [self._row_to_session(r) for r in rows], total

    async def update_aggregates(
        self,
        session_id: str,
        added_events: int,
        earliest_ts: int,
        latest_ts: int,
    ) -> None:
        """把新入库事件合并进会话聚合字段

        start_time 取更早值，last_event_time 取更新值；
        已关闭会话收到更新的事件时同步延长 end_time。
        """
        await self._conn.execute(
            """
            UPDATE sessions
            SET event_count = event_count + ?,
                start_time = MIN(start_time, ?),
                last_event_time = MAX(last_event_time, ?),
                end_time = CASE
                    WHEN end_time IS NULL THEN NULL
                    ELSE MAX(end_time, ?)
                END
            WHERE session_id = ?
            """,
            (added_events, earliest_ts, latest_ts, latest_ts, session_id),
        )

    async def update_metadata(self, session_id: str, metadata: SessionMetadata) -> None:
        """写入会话 metadata（采集端在会话首条事件附带）"""
        await self._conn.execute(
            "UPDATE sessions SET metadata = ? WHERE session_id = ?",
            (metadata.model_dump_json(), session_id),
        )

    async def close_session(self, session_id: str) -> bool:
        """关闭会话：end_time = MAX(start_time, last_event_time)

        Returns:
            True 如果本次调用关闭了一个活跃会话
        """
        cursor = await self._conn.execute(
            """
            UPDATE sessions
            SET end_time = MAX(start_time, last_event_time)
            WHERE session_id = ? AND end_time IS NULL
            """,
            (session_id,),
        )
        return cursor.rowcount > 0

    async def list_idle_session_ids(self, idle_before_ts: int) -> list[str]:
        """查询最后事件早于 idle_before_ts 的活跃会话"""
        cursor = await self._conn.execute(
            """
            SELECT session_id FROM sessions
            WHERE end_time IS NULL AND last_event_time < ?
            ORDER BY session_id
            """,
            (idle_before_ts,),
        )
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def delete_session(self, session_id: str) -> bool:
        """删除会话记录（事件与模式需调用方先删除）"""
        cursor = await self._conn.execute(
            "DELETE FROM sessions WHERE session_id = ?", (session_id,)
        )
        return cursor.rowcount > 0

    async def summary(self) -> dict[str, int | float]:
        """会话统计：总数、活跃数、平均事件数"""
        cursor = await self._conn.execute(
            """
            SELECT COUNT(*),
                   SUM(CASE WHEN end_time IS NULL THEN 1 ELSE 0 END),
                   AVG(event_count)
            FROM sessions
            """
        )
        row = await cursor.fetchone()
        return {
            "total_sessions": row[0] or 0,
            "active_sessions": row[1] or 0,
            "avg_events_per_session": round(row[2] or 0.0, 2),
        }

    @staticmethod
    def _row_to_session(row: aiosqlite.Row) -> Session:
        """将数据库行转换为 Session 模型"""
        metadata = json.loads(row[6]) if row[6] else {}
        return Session(
            session_id=row[0],
            user_id=row[1],
            start_time=row[2],
            end_time=row[3],
            last_event_time=row[4],
            event_count=row[5],
            metadata=SessionMetadata(**metadata),
            created_at=datetime.fromisoformat(row[7]),
        )
