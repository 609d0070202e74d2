"""DefinitionService -- 模式定义 CRUD

定义在下一次识别时生效；删除或停用定义不会回收已经识别出的模式。
"""

from datetime import UTC, datetime

import structlog

from patternforge.core.exceptions import DefinitionExistsError, NotFoundError
from patternforge.core.models import DefinitionCreate, DefinitionUpdate, PatternDefinition
from patternforge.core.store import StoreGroup
from patternforge.core.store.transaction import delete_definition, save_definition

log = structlog.get_logger()


class DefinitionService:
    """模式定义业务服务"""

    def __init__(self, store_group: StoreGroup) -> None:
        self._stores = store_group

    async def list_definitions(self, active_only: bool = False) -> list[PatternDefinition]:
        return await self._stores.definition_store.list_definitions(active_only=active_only)

    async def get_definition(self, definition_id: str) -> PatternDefinition:
        """
        Raises:
            NotFoundError: 定义不存在
        """
        definition = await self._stores.definition_store.get_definition(definition_id)
        if definition is None:
            raise NotFoundError("definition", definition_id)
        return definition

    async def create_definition(self, body: DefinitionCreate) -> PatternDefinition:
        """
        Raises:
            DefinitionExistsError: 同 ID 的定义已存在
        """
        now = datetime.now(UTC)
        definition = PatternDefinition(**body.model_dump(), created_at=now, updated_at=now)
        async with self._stores.write_lock:
            existing = await self._stores.definition_store.get_definition(body.definition_id)
            if existing is not None:
                raise DefinitionExistsError(body.definition_id)
            await save_definition(self._stores.conn, self._stores.definition_store, definition)

        await log.ainfo(
            "definition_created",
            definition_id=definition.definition_id,
            pattern_type=definition.pattern_type.value,
            steps=len(definition.rules.sequence),
        )
        return definition

    async def update_definition(
        self, definition_id: str, update: DefinitionUpdate
    ) -> PatternDefinition:
        """只替换显式提供的字段

        Raises:
            NotFoundError: 定义不存在
        """
        changes = {key: getattr(update, key) for key in update.model_fields_set}
        # 显式 null 只对 description 有意义，其余字段保持原值
        changes = {k: v for k, v in changes.items() if v is not None or k == "description"}
        async with self._stores.write_lock:
            current = await self.get_definition(definition_id)
            updated = current.model_copy(update={**changes, "updated_at": datetime.now(UTC)})
            await save_definition(self._stores.conn, self._stores.definition_store, updated)

        await log.ainfo(
            "definition_updated",
            definition_id=definition_id,
            fields=sorted(changes),
            is_active=updated.is_active,
        )
        return updated

    async def delete_definition(self, definition_id: str) -> None:
        """
        Raises:
            NotFoundError: 定义不存在
        """
        async with self._stores.write_lock:
            deleted = await delete_definition(
                self._stores.conn, self._stores.definition_store, definition_id
            )
        if not deleted:
            raise NotFoundError("definition", definition_id)
        await log.ainfo("definition_deleted", definition_id=definition_id)
