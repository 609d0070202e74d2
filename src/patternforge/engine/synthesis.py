"""模型合成 -- RecognizedPattern 列表 -> ApplicationModel

实体、页面、工作流都按并集累积，不做冲突消解；
同一组模式与同一个 now 总是合成出相同的结构（model_id 除外）。
"""

import re
from collections.abc import Sequence
from datetime import UTC, datetime

import structlog
from ulid import ULID

from ..core.exceptions import NoPatternsError, ValidationFailedError
from ..core.models.app_model import (
    INITIAL_VERSION,
    ApplicationModel,
    EntitySpec,
    ModelUpdate,
    ScreenSpec,
    WorkflowSpec,
    bump_patch,
)
from ..core.models.enums import CrudOperation, PatternType, ScreenType
from ..core.models.pattern import RecognizedPattern

log = structlog.get_logger()


def operations_for(pattern_type: PatternType) -> set[CrudOperation]:
    """模式类型隐含的实体操作：按操作名做大小写无关子串匹配"""
    value = str(pattern_type).lower()
    return {op for op in CrudOperation if op.value in value}


# 模式类型名中的关键字 -> 页面上隐含的组件
_COMPONENT_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("list", "DataTable"),
    ("create", "Form"),
    ("update", "Form"),
    ("form", "Form"),
    ("filter", "FilterPanel"),
    ("search", "SearchInput"),
)

_ID_SEGMENT_RE = re.compile(r"/(\d+|:[^/]+|\[[^/]+\])/?$")


def components_for(pattern_type: PatternType) -> set[str]:
    """模式类型隐含的页面组件"""
    value = str(pattern_type)
    return {component for keyword, component in _COMPONENT_KEYWORDS if keyword in value}


def infer_screen_type(path: str, actions: set[PatternType]) -> ScreenType:
    """按页面上出现的模式类型与路径推断页面类型，列表 > 表单 > 详情 > 仪表盘"""
    values = {str(a) for a in actions}
    if any("list" in v for v in values):
        return ScreenType.LIST
    if any("create" in v or "update" in v for v in values) or "/new" in path or "/edit" in path:
        return ScreenType.FORM
    if any("read" in v or "detail" in v for v in values) or _ID_SEGMENT_RE.search(path):
        return ScreenType.DETAIL
    if "dashboard" in path.lower():
        return ScreenType.DASHBOARD
    return ScreenType.CUSTOM


def default_model_name(now: datetime) -> str:
    return f"App_{now.strftime('%Y-%m-%d')}"


class ModelSynthesizer:
    """模式 -> 应用模型"""

    def synthesize(
        self,
        patterns: Sequence[RecognizedPattern],
        name: str | None = None,
        description: str | None = None,
        now: datetime | None = None,
    ) -> ApplicationModel:
        """合成应用模型

        Args:
            patterns: 非空模式列表
            name: 模型名称，缺省为 App_YYYY-MM-DD
            description: 描述，缺省为 "Generated from N patterns"
            now: 合成时间（测试注入），缺省为当前 UTC 时间

        Returns:
            版本为 1.0.0 的新模型

        Raises:
            NoPatternsError: patterns 为空
        """
        if not patterns:
            raise NoPatternsError()
        now = now or datetime.now(UTC)
        ordered = sorted(patterns, key=lambda p: (p.start_time, p.pattern_id))

        entity_fields: dict[str, set[str]] = {}
        entity_ops: dict[str, set[CrudOperation]] = {}
        screen_components: dict[str, set[str]] = {}
        screen_actions: dict[str, set[PatternType]] = {}
        screen_entities: dict[str, str] = {}
        workflows: list[WorkflowSpec] = []

        for pattern in ordered:
            meta = pattern.metadata
            if meta.entity:
                entity_fields.setdefault(meta.entity, set()).update(meta.fields)
                entity_ops.setdefault(meta.entity, set()).update(
                    operations_for(pattern.pattern_type)
                )
            if meta.screen:
                screen_components.setdefault(meta.screen, set()).update(meta.components)
                screen_components[meta.screen] |= components_for(pattern.pattern_type)
                screen_actions.setdefault(meta.screen, set()).add(pattern.pattern_type)
                if meta.entity:
                    # 按时间顺序，后出现的实体覆盖先出现的
                    screen_entities[meta.screen] = meta.entity
            if "workflow" in str(pattern.pattern_type):
                workflows.append(
                    WorkflowSpec(
                        workflow_id=pattern.pattern_id,
                        name=meta.workflow_name or meta.workflow_id or pattern.pattern_id,
                        steps=list(meta.steps),
                        duration_ms=pattern.end_time - pattern.start_time,
                    )
                )

        entities = [
            EntitySpec(name=entity, fields=list(entity_fields[entity]), operations=list(entity_ops[entity]))
            for entity in sorted(entity_fields)
        ]
        screens = [
            ScreenSpec(
                path=path,
                screen_type=infer_screen_type(path, screen_actions[path]),
                entity=screen_entities.get(path),
                components=list(screen_components[path]),
                actions=list(screen_actions[path]),
            )
            for path in sorted(screen_components)
        ]
        confidence = round(sum(p.confidence for p in patterns) / len(patterns), 4)
        source_ids = list(dict.fromkeys(p.pattern_id for p in patterns))

        return ApplicationModel(
            model_id=str(ULID()),
            version=INITIAL_VERSION,
            name=name or default_model_name(now),
            description=description or f"Generated from {len(patterns)} patterns",
            entities=entities,
            screens=screens,
            workflows=workflows,
            source_pattern_ids=source_ids,
            confidence=min(1.0, confidence),
            created_at=now,
            updated_at=now,
        )


def apply_update(
    model: ApplicationModel,
    update: ModelUpdate,
    now: datetime | None = None,
) -> ApplicationModel:
    """只替换显式提供的字段，补丁号 +1

    不做任何派生字段的重新计算；并发更新为 last-write-wins。

    Raises:
        ValidationFailedError: name 显式置空
    """
    changes = update.model_dump(exclude_unset=True)
    if "name" in changes and changes["name"] is None:
        raise ValidationFailedError("name must not be null")

    patch = {key: getattr(update, key) for key in changes}
    patch["version"] = bump_patch(model.version)
    patch["updated_at"] = now or datetime.now(UTC)
    return model.model_validate({**model.model_dump(), **patch})
