"""PatternStore SQLite 实现

模式写入后不修改。同一会话重新识别时整体替换该会话的模式集合
（ID 为内容哈希，未变化的模式以相同内容重新写入）。
"""

import json
from datetime import UTC, datetime

import aiosqlite

from ..models.enums import PatternType
from ..models.pattern import PatternMetadata, RecognizedPattern

_SELECT_COLUMNS = (
    "pattern_id, session_id, pattern_type, confidence, event_ids, start_time, end_time, metadata"
)


class SqlitePatternStore:
    """PatternStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def replace_session_patterns(
        self,
        session_id: str,
        patterns: list[RecognizedPattern],
    ) -> None:
        """替换会话的模式集合

        注意：此方法不自动提交事务，需由调用方管理事务。
        """
        await self._conn.execute("DELETE FROM patterns WHERE session_id = ?", (session_id,))
        created_at = datetime.now(UTC).isoformat()
        await self._conn.executemany(
            """
            INSERT OR REPLACE INTO patterns (pattern_id, session_id, pattern_type, confidence,
                                             event_ids, start_time, end_time, metadata,
                                             created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    p.pattern_id,
                    p.session_id,
                    p.pattern_type.value,
                    p.confidence,
                    json.dumps(p.event_ids),
                    p.start_time,
                    p.end_time,
                    p.metadata.model_dump_json(),
                    created_at,
                )
                for p in patterns
            ],
        )

    async def get_pattern(self, pattern_id: str) -> RecognizedPattern | None:
        """根据 pattern_id 查询模式"""
        cursor = await self._conn.execute(
            f"SELECT {_SELECT_COLUMNS} FROM patterns WHERE pattern_id = ?",
            (pattern_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_pattern(row)

    async def get_patterns_by_ids(self, pattern_ids: list[str]) -> list[RecognizedPattern]:
        """批量查询，返回顺序与 start_time 一致，不存在的 ID 被跳过"""
        if not pattern_ids:
            return []
        placeholders = ", ".join("?" for _ in pattern_ids)
        cursor = await self._conn.execute(
            f"""
            SELECT {_SELECT_COLUMNS} FROM patterns
            WHERE pattern_id IN ({placeholders})
            ORDER BY start_time ASC, pattern_id ASC
            """,
            tuple(pattern_ids),
        )
        rows = await cursor.fetchall()
        return [self._row_to_pattern(row) for row in rows]

    async def get_patterns_for_session(self, session_id: str) -> list[RecognizedPattern]:
        """查询会话的全部模式，按 start_time 正序"""
        cursor = await self._conn.execute(
            f"""
            SELECT {_SELECT_COLUMNS} FROM patterns
            WHERE session_id = ?
            ORDER BY start_time ASC, pattern_id ASC
            """,
            (session_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_pattern(row) for row in rows]

    async def query_patterns(
        self,
        session_id: str | None = None,
        pattern_type: str | None = None,
        min_confidence: float | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[RecognizedPattern], int]:
        """条件查询模式，按置信度倒序

        Returns:
            (当前页模式, 满足条件的总数)
        """
        clauses: list[str] = []
        params: list = []
        if session_id is not None:
            clauses.append("session_id = ?")
            params.append(session_id)
        if pattern_type is not None:
            clauses.append("pattern_type = ?")
            params.append(pattern_type)
        if min_confidence is not None:
            clauses.append("confidence >= ?")
            params.append(min_confidence)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        cursor = await self._conn.execute(f"SELECT COUNT(*) FROM patterns {where}", params)
        row = await cursor.fetchone()
        total = row[0] if row else 0

        cursor = await self._conn.execute(
            f"""
            SELECT {_SELECT_COLUMNS} FROM patterns {where}
            ORDER BY confidence DESC, start_time ASC, pattern_id ASC
            LIMIT ? OFFSET ?
            """,
            (*params, limit, offset),
        )
        rows = await cursor.fetchall()
        return [self._row_to_pattern(r) for r in rows], total

    async def summary(self) -> dict:
        """模式统计：按类型计数与平均置信度"""
        cursor = await self._conn.execute(
            """
            SELECT pattern_type, COUNT(*), AVG(confidence)
            FROM patterns
            GROUP BY pattern_type
            ORDER BY pattern_type
            """
        )
        rows = await cursor.fetchall()
        by_type = {
            row[0]: {"count": row[1], "avg_confidence": round(row[2], 4)} for row in rows
        }
        return {
            "total_patterns": sum(v["count"] for v in by_type.values()),
            "by_type": by_type,
        }

    async def delete_patterns_for_session(self, session_id: str) -> int:
        """删除会话的全部模式，不自动提交"""
        cursor = await self._conn.execute(
            "DELETE FROM patterns WHERE session_id = ?", (session_id,)
        )
        return cursor.rowcount

    @staticmethod
    def _row_to_pattern(row: aiosqlite.Row) -> RecognizedPattern:
        """将数据库行转换为 RecognizedPattern 模型"""
        return RecognizedPattern(
            pattern_id=row[0],
            session_id=row[1],
            pattern_type=PatternType(row[2]),
            confidence=row[3],
            event_ids=json.loads(row[4]),
            start_time=row[5],
            end_time=row[6],
            metadata=PatternMetadata(**json.loads(row[7])),
        )
