"""ScoringPolicy -- 模式识别打分策略

置信度 = base[type] + Σ bonuses - Σ penalties - gap 罚分 × 超阈值间隔数，
截断到 [0, 1] 并保留 4 位小数；低于 cutoff 的候选被丢弃。

策略是带名称和版本的配置：内置默认值，可通过 PATTERNFORGE_SCORING_POLICY
指向的 JSON 文件部分覆盖。版本号写入每个模式的 metadata，
识别结果可以追溯到产生它的策略。
"""

from pathlib import Path

import structlog
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..core.config import get_scoring_policy_path
from ..core.exceptions import ValidationFailedError
from ..core.models.enums import PatternType

log = structlog.get_logger()

DEFAULT_BASE_SCORES: dict[PatternType, float] = {
    PatternType.CRUD_CREATE: 0.45,
    PatternType.CRUD_READ: 0.45,
    PatternType.CRUD_UPDATE: 0.45,
    PatternType.CRUD_DELETE: 0.45,
    PatternType.LIST_VIEW: 0.5,
    PatternType.DETAIL_VIEW: 0.5,
    PatternType.FILTER: 0.5,
    PatternType.SORT: 0.5,
    PatternType.SEARCH: 0.5,
    PatternType.NAVIGATION: 0.5,
    PatternType.FORM_SUBMISSION: 0.6,
    PatternType.WORKFLOW_STEP: 0.6,
    PatternType.RELATIONSHIP_MANAGEMENT: 0.4,
    PatternType.BATCH_OPERATION: 0.4,
    PatternType.DATA_EXPORT: 0.5,
    PatternType.DATA_IMPORT: 0.5,
    PatternType.AUTHENTICATION: 0.55,
    PatternType.AUTHORIZATION: 0.4,
}

DEFAULT_BONUSES: dict[str, float] = {
    # 埋点显式声明的语义动作
    "semantic_tag": 0.35,
    # 元素文本/ID 命中命名约定
    "naming_convention": 0.15,
    # 导航后在目标页面有交互
    "engagement": 0.2,
    # CRUD 触发后同页完成表单提交
    "submit_followup": 0.15,
    # 表单序列包含 start
    "form_started": 0.1,
    # 每个 field_change，累计不超过 field_change_cap
    "field_change": 0.05,
    "field_change_cap": 0.15,
    # 工作流走到 complete
    "workflow_completed": 0.2,
    # 命中用户配置的模式定义
    "definition_match": 0.2,
}

DEFAULT_PENALTIES: dict[str, float] = {
    # 每个超过 gap_threshold_ms 的相邻事件间隔
    "gap": 0.1,
    # 工作流被取消、出错或未结束
    "incomplete_workflow": 0.2,
}


class ScoringPolicy(BaseModel):
    """打分策略"""

    name: str = Field(default="default", description="策略名称")
    version: str = Field(default="1.0.0", description="策略版本，写入模式 metadata")
    gap_threshold_ms: int = Field(default=30_000, ge=0, description="相邻事件最大间隔（毫秒）")
    cutoff: float = Field(default=0.3, ge=0.0, le=1.0, description="最低置信度")
    min_list_interactions: int = Field(default=3, ge=1, description="列表视图最少交互数")
    base_scores: dict[PatternType, float] = Field(default_factory=dict, validate_default=True)
    bonuses: dict[str, float] = Field(default_factory=dict, validate_default=True)
    penalties: dict[str, float] = Field(default_factory=dict, validate_default=True)

    @field_validator("base_scores")
    @classmethod
    def _merge_base_scores(cls, v: dict[PatternType, float]) -> dict[PatternType, float]:
        return {**DEFAULT_BASE_SCORES, **v}

    @field_validator("bonuses")
    @classmethod
    def _merge_bonuses(cls, v: dict[str, float]) -> dict[str, float]:
        return {**DEFAULT_BONUSES, **v}

    @field_validator("penalties")
    @classmethod
    def _merge_penalties(cls, v: dict[str, float]) -> dict[str, float]:
        return {**DEFAULT_PENALTIES, **v}

    @property
    def label(self) -> str:
        return f"{self.name}@{self.version}"

    def score(
        self,
        pattern_type: PatternType,
        bonuses: list[str],
        penalties: list[str],
        gaps: int,
    ) -> float:
        """计算候选置信度

        Args:
            pattern_type: 模式类型
            bonuses: 命中的加分项名称（可重复）
            penalties: 命中的扣分项名称（可重复）
            gaps: 超过 gap_threshold_ms 的间隔数

        Returns:
            [0, 1] 内、保留 4 位小数的置信度
        """
        value = self.base_scores[pattern_type]

        field_bonus = 0.0
        for name in bonuses:
            if name == "field_change":
                field_bonus += self.bonuses["field_change"]
            else:
                value += self.bonuses.get(name, 0.0)
        value += min(field_bonus, self.bonuses["field_change_cap"])

        for name in penalties:
            value -= self.penalties.get(name, 0.0)
        value -= self.penalties["gap"] * gaps

        return round(min(1.0, max(0.0, value)), 4)


def load_scoring_policy(path: Path | None = None) -> ScoringPolicy:
    """加载打分策略

    Args:
        path: JSON 文件路径；为 None 时读取 PATTERNFORGE_SCORING_POLICY，
              两者都没有则使用内置默认策略

    Raises:
        ValidationFailedError: 文件内容不是合法策略
    """
    path = path or get_scoring_policy_path()
    if path is None:
        policy = ScoringPolicy()
    else:
        try:
            policy = ScoringPolicy.model_validate_json(Path(path).read_text(encoding="utf-8"))
        except ValidationError as e:
            raise ValidationFailedError(f"invalid scoring policy {path}: {e}") from e
        except OSError as e:
            raise ValidationFailedError(f"cannot read scoring policy {path}: {e}") from e

    log.info("scoring_policy_loaded", policy=policy.label, source=str(path or "builtin"))
    return policy
