"""PatternDefinition Domain Model

数据驱动的识别规则：按顺序匹配的步骤序列 + 超时。
步骤之间允许夹杂不匹配的事件；整段匹配必须在 timeout_ms 内完成。
"""

from datetime import datetime
from fnmatch import fnmatchcase

from pydantic import BaseModel, Field, field_validator

from .enums import EventType, PatternType
from .event import Event


class StepRule(BaseModel):
    """序列中的一步，未设置的条件不参与匹配

    screen 与 element_text 支持 * / ? 通配，大小写不敏感。
    """

    type: EventType | None = Field(default=None, description="事件类型")
    action: str | None = Field(default=None, description="规范化后的动作，如 click / submit")
    screen: str | None = Field(default=None, description="页面路径通配，如 */new")
    element_text: str | None = Field(default=None, description="元素文本通配")
    min_occurrences: int = Field(default=1, ge=1, description="本步骤至少连续命中的次数")

    @field_validator("action")
    @classmethod
    def _lower_action(cls, v: str | None) -> str | None:
        return v.lower() if v else v

    def matches(self, event: Event, screen: str | None) -> bool:
        """
        Args:
            event: 待匹配事件
            screen: 事件的有效页面（自身缺失时沿用上一个已知页面）
        """
        if self.type is not None and event.type != self.type:
            return False
        if self.action is not None and event.metadata.action != self.action:
            return False
        if self.screen is not None and not _glob(screen, self.screen):
            return False
        if self.element_text is not None and not _glob(event.metadata.element_text, self.element_text):
            return False
        return True


def _glob(value: str | None, pattern: str) -> bool:
    return value is not None and fnmatchcase(value.lower(), pattern.lower())


class DefinitionRules(BaseModel):
    """规则主体"""

    sequence: list[StepRule] = Field(min_length=1, description="有序步骤")
    timeout_ms: int = Field(default=300_000, gt=0, description="首尾事件最大间隔（毫秒）")


class PatternDefinition(BaseModel):
    """PatternDefinition 数据模型"""

    definition_id: str = Field(
        min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_\-]+$", description="定义 ID"
    )
    name: str = Field(min_length=1, description="名称")
    description: str | None = Field(default=None, description="描述")
    pattern_type: PatternType = Field(description="匹配成功时产出的模式类型")
    rules: DefinitionRules
    is_active: bool = Field(default=True, description="停用的定义不参与识别")
    created_at: datetime
    updated_at: datetime


class DefinitionCreate(BaseModel):
    """创建请求"""

    definition_id: str = Field(min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_\-]+$")
    name: str = Field(min_length=1)
    description: str | None = None
    pattern_type: PatternType
    rules: DefinitionRules
    is_active: bool = True


class DefinitionUpdate(BaseModel):
    """更新请求：只替换显式提供的字段"""

    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    pattern_type: PatternType | None = None
    rules: DefinitionRules | None = None
    is_active: bool | None = None
