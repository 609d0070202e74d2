"""PatternForge Engine -- 模式识别、模型合成与代码生成

三个阶段都是纯计算：输入来自存储快照，输出交由调用方持久化。
"""

from .generation import (
    KNOWN_COMPONENTS,
    TARGET_PROFILES,
    CodeGenerator,
    TargetProfile,
    export_zip,
    filter_artifacts,
)
from .recognition import (
    DEFAULT_DETECTORS,
    Candidate,
    Detector,
    RecognitionEngine,
    definition_detector,
    match_definition,
)
from .scoring import ScoringPolicy, load_scoring_policy
from .synthesis import ModelSynthesizer, apply_update, operations_for

__all__ = [
    "RecognitionEngine",
    "Candidate",
    "Detector",
    "DEFAULT_DETECTORS",
    "definition_detector",
    "match_definition",
    "ScoringPolicy",
    "load_scoring_policy",
    "ModelSynthesizer",
    "apply_update",
    "operations_for",
    "CodeGenerator",
    "TargetProfile",
    "TARGET_PROFILES",
    "KNOWN_COMPONENTS",
    "filter_artifacts",
    "export_zip",
]
