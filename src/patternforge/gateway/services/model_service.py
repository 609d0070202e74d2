"""ModelService -- 应用模型合成与 CRUD

合成输入可以是一个会话的全部模式，也可以是显式的模式 ID 列表。
更新只替换提供的字段并自动递增补丁号；并发更新为 last-write-wins。
"""

from datetime import UTC, datetime

import structlog

from patternforge.core.exceptions import (
    NoPatternsError,
    NotFoundError,
    ValidationFailedError,
)
from patternforge.core.models import ApplicationModel, ModelUpdate, RecognizedPattern
from patternforge.core.store import StoreGroup
from patternforge.core.store.transaction import delete_model, save_model_version
from patternforge.engine import ModelSynthesizer, apply_update

log = structlog.get_logger()


class ModelService:
    """应用模型业务服务"""

    def __init__(
        self,
        store_group: StoreGroup,
        synthesizer: ModelSynthesizer | None = None,
    ) -> None:
        self._stores = store_group
        self._synthesizer = synthesizer or ModelSynthesizer()

    async def _load_patterns(
        self,
        session_id: str | None,
        pattern_ids: list[str] | None,
    ) -> list[RecognizedPattern]:
        if session_id is not None:
            session = await self._stores.session_store.get_session(session_id)
            if session is None:
                raise NotFoundError("session", session_id)
            return await self._stores.pattern_store.get_patterns_for_session(session_id)

        if pattern_ids is None:
            raise ValidationFailedError("either session_id or pattern_ids is required")
        unique_ids = list(dict.fromkeys(pattern_ids))
        patterns = await self._stores.pattern_store.get_patterns_by_ids(unique_ids)
        found = {p.pattern_id for p in patterns}
        for pattern_id in unique_ids:
            if pattern_id not in found:
                raise NotFoundError("pattern", pattern_id)
        return patterns

    async def synthesize(
        self,
        session_id: str | None = None,
        pattern_ids: list[str] | None = None,
        name: str | None = None,
        description: str | None = None,
    ) -> ApplicationModel:
        """合成并保存新模型

        Raises:
            ValidationFailedError: 未提供 session_id 或 pattern_ids
            NotFoundError: 会话或模式不存在
            NoPatternsError: 没有可用模式
        """
        patterns = await self._load_patterns(session_id, pattern_ids)
        if not patterns:
            raise NoPatternsError()

        model = self._synthesizer.synthesize(patterns, name=name, description=description)
        async with self._stores.write_lock:
            await save_model_version(self._stores.conn, self._stores.model_store, model)

        await log.ainfo(
            "model_synthesized",
            model_id=model.model_id,
            pattern_count=len(patterns),
            entities=len(model.entities),
            screens=len(model.screens),
            workflows=len(model.workflows),
            confidence=model.confidence,
        )
        return model

    async def get_model(self, model_id: str) -> ApplicationModel:
        """
        Raises:
            NotFoundError: 模型不存在
        """
        model = await self._stores.model_store.get_model(model_id)
        if model is None:
            raise NotFoundError("model", model_id)
        return model

    async def list_models(
        self,
        min_confidence: float | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[ApplicationModel], int]:
        return await self._stores.model_store.list_models(min_confidence, limit, offset)

    async def list_versions(self, model_id: str) -> list[ApplicationModel]:
        await self.get_model(model_id)
        return await self._stores.model_store.list_versions(model_id)

    async def get_source_patterns(self, model: ApplicationModel) -> list[RecognizedPattern]:
        """模型的来源模式；已被删除的模式被跳过"""
        return await self._stores.pattern_store.get_patterns_by_ids(model.source_pattern_ids)

    async def update_model(self, model_id: str, update: ModelUpdate) -> ApplicationModel:
        """部分更新，补丁号 +1

        Raises:
            NotFoundError: 模型不存在
            ValidationFailedError: 字段不合法
        """
        async with self._stores.write_lock:
            current = await self.get_model(model_id)
            updated = apply_update(current, update, now=datetime.now(UTC))
            await save_model_version(self._stores.conn, self._stores.model_store, updated)

        await log.ainfo(
            "model_updated",
            model_id=model_id,
            version=updated.version,
            fields=sorted(update.model_fields_set),
        )
        return updated

    async def delete_model(self, model_id: str) -> None:
        """
        Raises:
            NotFoundError: 模型不存在
        """
        async with self._stores.write_lock:
            deleted = await delete_model(self._stores.conn, self._stores.model_store, model_id)
        if not deleted:
            raise NotFoundError("model", model_id)
        await log.ainfo("model_deleted", model_id=model_id)
