"""DefinitionStore SQLite 实现

rules 以 JSON 存储；写操作不自动提交，由 transaction 模块管理事务。
"""

from datetime import datetime

import aiosqlite

from ..models.definition import DefinitionRules, PatternDefinition

_SELECT_COLUMNS = (
    "definition_id, name, description, pattern_type, rules, is_active, created_at, updated_at"
)


class SqliteDefinitionStore:
    """DefinitionStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def save_definition(self, definition: PatternDefinition) -> None:
        """插入或覆盖一条定义，不自动提交"""
        await self._conn.execute(
            f"""
            INSERT OR REPLACE INTO pattern_definitions ({_SELECT_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                definition.definition_id,
                definition.name,
                definition.description,
                definition.pattern_type.value,
                definition.rules.model_dump_json(),
                1 if definition.is_active else 0,
                definition.created_at.isoformat(),
                definition.updated_at.isoformat(),
            ),
        )

    async def get_definition(self, definition_id: str) -> PatternDefinition | None:
        cursor = await self._conn.execute(
            f"SELECT {_SELECT_COLUMNS} FROM pattern_definitions WHERE definition_id = ?",
            (definition_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_definition(row)

    async def list_definitions(self, active_only: bool = False) -> list[PatternDefinition]:
        """按名称排序，名称相同时按 ID"""
        where = "WHERE is_active = 1" if active_only else ""
        cursor = await self._conn.execute(
            f"""
            SELECT {_SELECT_COLUMNS} FROM pattern_definitions {where}
            ORDER BY name ASC, definition_id ASC
            """
        )
        rows = await cursor.fetchall()
        return [self._row_to_definition(r) for r in rows]

    async def delete_definition(self, definition_id: str) -> bool:
        """不自动提交"""
        cursor = await self._conn.execute(
            "DELETE FROM pattern_definitions WHERE definition_id = ?", (definition_id,)
        )
        return cursor.rowcount > 0

    @staticmethod
    def _row_to_definition(row: aiosqlite.Row) -> PatternDefinition:
        return PatternDefinition(
            definition_id=row[0],
            name=row[1],
            description=row[2],
            pattern_type=row[3],
            rules=DefinitionRules.model_validate_json(row[4]),
            is_active=bool(row[5]),
            created_at=datetime.fromisoformat(row[6]),
            updated_at=datetime.fromisoformat(row[7]),
        )
