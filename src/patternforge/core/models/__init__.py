"""PatternForge Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .app_model import (
    INITIAL_VERSION,
    ApplicationModel,
    EntitySpec,
    ModelUpdate,
    ScreenSpec,
    WorkflowSpec,
    bump_patch,
    parse_version,
)
from .artifact import GeneratedArtifact
from .definition import (
    DefinitionCreate,
    DefinitionRules,
    DefinitionUpdate,
    PatternDefinition,
    StepRule,
)
from .enums import (
    CRUD_PATTERN_BY_OPERATION,
    ArtifactType,
    CrudOperation,
    DeviceClass,
    EventType,
    PatternType,
    ScreenType,
    sort_operations,
)
from .event import Event, EventMetadata, SemanticAction
from .pattern import PatternMetadata, RecognizedPattern, make_pattern_id
from .session import Session, SessionMetadata, Viewport

__all__ = [
    # 枚举
    "EventType",
    "PatternType",
    "CrudOperation",
    "ArtifactType",
    "DeviceClass",
    "ScreenType",
    "CRUD_PATTERN_BY_OPERATION",
    "sort_operations",
    # Event
    "Event",
    "EventMetadata",
    "SemanticAction",
    # Session
    "Session",
    "SessionMetadata",
    "Viewport",
    # Pattern
    "RecognizedPattern",
    "PatternMetadata",
    "make_pattern_id",
    # PatternDefinition
    "PatternDefinition",
    "DefinitionRules",
    "StepRule",
    "DefinitionCreate",
    "DefinitionUpdate",
    # ApplicationModel
    "ApplicationModel",
    "EntitySpec",
    "ScreenSpec",
    "WorkflowSpec",
    "ModelUpdate",
    "INITIAL_VERSION",
    "bump_patch",
    "parse_version",
    # Artifact
    "GeneratedArtifact",
]
