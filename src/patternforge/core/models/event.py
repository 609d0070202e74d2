"""Event Domain Model

事件只追加、不修改，入库前由 normalize 统一为规范化 metadata。
会话内事件按 (timestamp, seq) 全序排列：seq 为入库时分配的到达序号，
相同时间戳的事件保持提交顺序。
"""

from typing import Any

from pydantic import BaseModel, Field

from .enums import CrudOperation, EventType, PatternType


class SemanticAction(BaseModel):
    """埋点侧显式声明的语义动作"""

    pattern: PatternType | None = Field(default=None, description="直接声明的模式类型")
    entity: str | None = Field(default=None, description="业务实体名")
    operation: CrudOperation | None = Field(default=None, description="CRUD 操作")
    workflow_step: str | None = Field(default=None, description="工作流步骤名")
    description: str | None = Field(default=None, description="人类可读描述")


class EventMetadata(BaseModel):
    """规范化后的事件 metadata

    同义字段（entityName/entity、path/screen/to 等）已在入库时合并。
    """

    screen: str | None = Field(default=None, description="当前页面路径")
    component: str | None = Field(default=None, description="组件名")
    element_id: str | None = Field(default=None, description="元素 ID")
    element_type: str | None = Field(default=None, description="元素类型（tagName 等）")
    element_text: str | None = Field(default=None, description="元素可见文本")
    action: str | None = Field(default=None, description="子动作（click/submit/start 等）")
    semantic: SemanticAction | None = Field(default=None, description="语义动作")
    entity: str | None = Field(default=None, description="实体名（小写单数）")
    field: str | None = Field(default=None, description="表单字段名")
    form_id: str | None = Field(default=None, description="表单 ID")
    from_screen: str | None = Field(default=None, description="导航来源页面")
    workflow_id: str | None = Field(default=None, description="工作流实例 ID")
    workflow_name: str | None = Field(default=None, description="工作流名称")
    workflow_step: str | None = Field(default=None, description="当前工作流步骤")
    duration_ms: int | None = Field(default=None, description="交互耗时（毫秒）")
    context: dict[str, Any] = Field(default_factory=dict, description="其余未归类字段")


class Event(BaseModel):
    """Event 数据模型"""

    event_id: str = Field(description="会话内唯一的事件 ID")
    session_id: str = Field(description="所属会话 ID")
    user_id: str | None = Field(default=None, description="用户 ID（可选）")
    type: EventType = Field(description="事件类型")
    timestamp: int = Field(description="事件发生时间，epoch 毫秒")
    metadata: EventMetadata = Field(default_factory=EventMetadata, description="规范化 metadata")
    seq: int = Field(default=0, description="入库到达序号，入库前为 0")
