"""RecognizedPattern Domain Model

模式批量产生、写入后不可修改。pattern_id 是内容哈希，
同一组输入事件与策略总是得到同一个 ID。
"""

import hashlib

from pydantic import BaseModel, Field, field_validator

from .enums import PatternType


class PatternMetadata(BaseModel):
    """模式附带的提取信息，供模型合成使用"""

    entity: str | None = Field(default=None, description="推断出的实体名")
    screen: str | None = Field(default=None, description="所在页面路径")
    fields: list[str] = Field(default_factory=list, description="涉及的字段（去重保序）")
    components: list[str] = Field(default_factory=list, description="涉及的组件（去重保序）")
    description: str | None = Field(default=None, description="描述")
    workflow_id: str | None = Field(default=None, description="工作流实例 ID")
    workflow_name: str | None = Field(default=None, description="工作流名称")
    steps: list[str] = Field(default_factory=list, description="工作流步骤（有序）")
    definition_id: str | None = Field(default=None, description="命中的模式定义 ID")
    policy_version: str | None = Field(default=None, description="打分策略版本")


class RecognizedPattern(BaseModel):
    """RecognizedPattern 数据模型

    不变量：event_ids 非空，且为会话事件按 (timestamp, seq) 排序的子序列。
    """

    pattern_id: str = Field(description="内容哈希 ID")
    session_id: str = Field(description="来源会话 ID")
    pattern_type: PatternType = Field(description="模式类型")
    confidence: float = Field(ge=0.0, le=1.0, description="置信度")
    event_ids: list[str] = Field(min_length=1, description="组成事件 ID（有序）")
    start_time: int = Field(description="首个事件时间，epoch 毫秒")
    end_time: int = Field(description="末个事件时间，epoch 毫秒")
    metadata: PatternMetadata = Field(default_factory=PatternMetadata)

    @field_validator("end_time")
    @classmethod
    def _end_not_before_start(cls, v: int, info) -> int:
        start = info.data.get("start_time")
        if start is not None and v < start:
            raise ValueError("end_time must not precede start_time")
        return v


def make_pattern_id(session_id: str, pattern_type: PatternType, event_ids: list[str]) -> str:
    """计算模式 ID：pat_ + sha256(session, type, event_ids) 前 24 位"""
    digest = hashlib.sha256()
    digest.update(session_id.encode("utf-8"))
    digest.update(b"\x00")
    digest.update(str(pattern_type).encode("utf-8"))
    for event_id in event_ids:
        digest.update(b"\x00")
        digest.update(event_id.encode("utf-8"))
    return f"pat_{digest.hexdigest()[:24]}"
