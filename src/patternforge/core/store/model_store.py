"""ModelStore SQLite 实现

app_models 保存每个模型的当前版本；app_model_versions 是 append-only 历史，
每次创建/更新都追加一份完整快照，历史不在原地覆盖。
"""

import json
from datetime import UTC, datetime

import aiosqlite

from ..models.app_model import ApplicationModel

_SELECT_COLUMNS = (
    "model_id, version, name, description, entities, screens, workflows, "
    "source_pattern_ids, confidence, created_at, updated_at"
)


class SqliteModelStore:
    """ModelStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def save_model(self, model: ApplicationModel) -> None:
        """写入当前版本并追加版本快照

        注意：此方法不自动提交事务，需由调用方管理事务。
        """
        await self._conn.execute(
            f"""
            INSERT OR REPLACE INTO app_models ({_SELECT_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                model.model_id,
                model.version,
                model.name,
                model.description,
                json.dumps([e.model_dump(mode="json") for e in model.entities]),
                json.dumps([s.model_dump(mode="json") for s in model.screens]),
                json.dumps([w.model_dump(mode="json") for w in model.workflows]),
                json.dumps(model.source_pattern_ids),
                model.confidence,
                model.created_at.isoformat(),
                model.updated_at.isoformat(),
            ),
        )
        await self._conn.execute(
            """
            INSERT INTO app_model_versions (model_id, version, snapshot, recorded_at)
            VALUES (?, ?, ?, ?)
            """,
            (
                model.model_id,
                model.version,
                model.model_dump_json(),
                datetime.now(UTC).isoformat(),
            ),
        )

    async def get_model(self, model_id: str) -> ApplicationModel | None:
        """根据 model_id 查询当前版本"""
        cursor = await self._conn.execute(
            f"SELECT {_SELECT_COLUMNS} FROM app_models WHERE model_id = ?",
            (model_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_model(row)

    async def list_models(
        self,
        min_confidence: float | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[ApplicationModel], int]:
        """查询模型列表，按 created_at 倒序

        Returns:
            (当前页模型, 满足条件的总数)
        """
        where = ""
        params: list = []
        if min_confidence is not None:
            where = "WHERE confidence >= ?"
            params.append(min_confidence)

        cursor = await self._conn.execute(f"SELECT COUNT(*) FROM app_models {where}", params)
        row = await cursor.fetchone()
        total = row[0] if row else 0

        cursor = await self._conn.execute(
            f"""
            SELECT {_SELECT_COLUMNS} FROM app_models {where}
            ORDER BY created_at DESC, model_id DESC
            LIMIT ? OFFSET ?
            """,
            (*params, limit, offset),
        )
        rows = await cursor.fetchall()
        return [self._row_to_model(r) for r in rows], total

    async def list_versions(self, model_id: str) -> list[ApplicationModel]:
        """查询模型的全部历史版本，按记录顺序"""
        cursor = await self._conn.execute(
            """
            SELECT snapshot FROM app_model_versions
            WHERE model_id = ?
            ORDER BY rowid ASC
            """,
            (model_id,),
        )
        rows = await cursor.fetchall()
        return [ApplicationModel.model_validate_json(row[0]) for row in rows]

    async def delete_model(self, model_id: str) -> bool:
        """删除模型及其版本历史，不自动提交"""
        cursor = await self._conn.execute(
            "DELETE FROM app_models WHERE model_id = ?", (model_id,)
        )
        await self._conn.execute(
            "DELETE FROM app_model_versions WHERE model_id = ?", (model_id,)
        )
        return cursor.rowcount > 0

    @staticmethod
    def _row_to_model(row: aiosqlite.Row) -> ApplicationModel:
        """将数据库行转换为 ApplicationModel 模型"""
        return ApplicationModel(
            model_id=row[0],
            version=row[1],
            name=row[2],
            description=row[3],
            entities=json.loads(row[4]),
            screens=json.loads(row[5]),
            workflows=json.loads(row[6]),
            source_pattern_ids=json.loads(row[7]),
            confidence=row[8],
            created_at=datetime.fromisoformat(row[9]),
            updated_at=datetime.fromisoformat(row[10]),
        )
