"""ApplicationModel Domain Model

集合类字段统一存为排序后的列表，保证代码生成逐字节确定。
更新时补丁号 +1，每个版本追加写入 app_model_versions 历史表。
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import CrudOperation, PatternType, ScreenType, sort_operations

INITIAL_VERSION = "1.0.0"


class EntitySpec(BaseModel):
    """业务实体"""

    name: str = Field(min_length=1, description="实体名（小写单数）")
    fields: list[str] = Field(default_factory=list, description="字段集合")
    operations: list[CrudOperation] = Field(default_factory=list, description="操作集合")

    @field_validator("fields")
    @classmethod
    def _sorted_fields(cls, v: list[str]) -> list[str]:
        return sorted(set(v))

    @field_validator("operations")
    @classmethod
    def _sorted_operations(cls, v: list[CrudOperation]) -> list[CrudOperation]:
        return sort_operations(v)


class ScreenSpec(BaseModel):
    """页面"""

    path: str = Field(min_length=1, description="页面路径")
    screen_type: ScreenType = Field(default=ScreenType.CUSTOM, description="页面类型")
    entity: str | None = Field(default=None, description="页面关联的实体")
    components: list[str] = Field(default_factory=list, description="组件集合")
    actions: list[PatternType] = Field(default_factory=list, description="页面上出现的模式类型")

    @field_validator("components")
    @classmethod
    def _sorted_components(cls, v: list[str]) -> list[str]:
        return sorted(set(v))

    @field_validator("actions")
    @classmethod
    def _sorted_actions(cls, v: list[PatternType]) -> list[PatternType]:
        return sorted(set(v))


class WorkflowSpec(BaseModel):
    """工作流"""

    workflow_id: str = Field(description="来源模式 ID")
    name: str = Field(description="工作流名称")
    steps: list[str] = Field(default_factory=list, description="有序步骤")
    duration_ms: int = Field(default=0, ge=0, description="观测耗时（毫秒）")


class ApplicationModel(BaseModel):
    """ApplicationModel 数据模型"""

    model_config = ConfigDict(protected_namespaces=())

    model_id: str = Field(description="唯一标识，ULID 格式")
    version: str = Field(default=INITIAL_VERSION, description="语义化版本 MAJOR.MINOR.PATCH")
    name: str = Field(min_length=1, description="模型名称")
    description: str | None = Field(default=None, description="描述")
    entities: list[EntitySpec] = Field(default_factory=list)
    screens: list[ScreenSpec] = Field(default_factory=list)
    workflows: list[WorkflowSpec] = Field(default_factory=list)
    source_pattern_ids: list[str] = Field(default_factory=list, description="来源模式 ID")
    confidence: float = Field(ge=0.0, le=1.0, description="来源模式置信度均值")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="最近更新时间")

    @field_validator("version")
    @classmethod
    def _semver(cls, v: str) -> str:
        parse_version(v)
        return v


class ModelUpdate(BaseModel):
    """模型更新请求：只替换显式提供的字段"""

    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    entities: list[EntitySpec] | None = None
    screens: list[ScreenSpec] | None = None
    workflows: list[WorkflowSpec] | None = None
    source_pattern_ids: list[str] | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)


def parse_version(version: str) -> tuple[int, int, int]:
    """解析 MAJOR.MINOR.PATCH

    Raises:
        ValueError: 格式不合法
    """
    parts = version.split(".")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        raise ValueError(f"invalid semantic version: {version!r}")
    major, minor, patch = (int(p) for p in parts)
    return major, minor, patch


def bump_patch(version: str) -> str:
    """补丁号 +1"""
    major, minor, patch = parse_version(version)
    return f"{major}.{minor}.{patch + 1}"
