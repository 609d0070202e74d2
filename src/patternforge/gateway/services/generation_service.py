"""GenerationService -- 按模型 ID 生成代码产物

模型在调用开始时读取一次，生成过程只处理这份快照。
"""

import structlog

from patternforge.core.config import DEFAULT_TARGET
from patternforge.core.exceptions import NotFoundError
from patternforge.core.models import ApplicationModel, GeneratedArtifact
from patternforge.core.store import StoreGroup
from patternforge.engine import CodeGenerator, filter_artifacts

log = structlog.get_logger()


class GenerationService:
    """代码生成业务服务"""

    def __init__(
        self,
        store_group: StoreGroup,
        generator: CodeGenerator | None = None,
        default_target: str = DEFAULT_TARGET,
    ) -> None:
        self._stores = store_group
        self._generator = generator or CodeGenerator()
        self._default_target = default_target

    def list_targets(self) -> list[dict[str, str]]:
        return [
            {"name": p.name, "description": p.description, "surface": p.surface_type.value}
            for p in sorted(self._generator.profiles.values(), key=lambda p: p.name)
        ]

    async def generate(
        self,
        model_id: str,
        target: str | None = None,
        file_types: list[str] | None = None,
    ) -> tuple[ApplicationModel, str, list[GeneratedArtifact]]:
        """生成产物

        Returns:
            (模型快照, 实际使用的目标, 过滤后的产物)

        Raises:
            UnsupportedTargetError: 目标未注册
            NotFoundError: 模型不存在
        """
        target = target or self._default_target
        self._generator.get_profile(target)

        model = await self._stores.model_store.get_model(model_id)
        if model is None:
            raise NotFoundError("model", model_id)

        artifacts = self._generator.generate(model, target)
        selected = filter_artifacts(artifacts, file_types)
        await log.ainfo(
            "artifacts_generated",
            model_id=model_id,
            version=model.version,
            target=target,
            total=len(artifacts),
            returned=len(selected),
        )
        return model, target, selected
