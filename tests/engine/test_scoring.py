"""ScoringPolicy 测试

测试内容：
1. 默认基础分与加减分
2. field_change 累计封顶
3. 间隔罚分与 [0, 1] 截断
4. JSON 文件部分覆盖与非法文件
"""

import json

import pytest
from patternforge.core.exceptions import ValidationFailedError
from patternforge.core.models import PatternType
from patternforge.engine import ScoringPolicy, load_scoring_policy


class TestScore:
    def test_label(self):
        assert ScoringPolicy().label == "default@1.0.0"

    def test_base_plus_bonus(self):
        policy = ScoringPolicy()
        assert policy.score(PatternType.NAVIGATION, [], [], 0) == 0.5
        assert policy.score(PatternType.NAVIGATION, ["engagement"], [], 0) == 0.7
        assert (
            policy.score(PatternType.CRUD_CREATE, ["naming_convention", "submit_followup"], [], 0)
            == 0.75
        )

    def test_field_change_capped(self):
        policy = ScoringPolicy()
        two = policy.score(PatternType.FORM_SUBMISSION, ["field_change"] * 2, [], 0)
        five = policy.score(PatternType.FORM_SUBMISSION, ["field_change"] * 5, [], 0)
        assert two == 0.7
        assert five == 0.75

    def test_gap_penalty(self):
        policy = ScoringPolicy()
        assert policy.score(PatternType.NAVIGATION, ["engagement"], [], 2) == 0.5

    def test_clamped_to_unit_interval(self):
        policy = ScoringPolicy()
        assert policy.score(PatternType.BATCH_OPERATION, [], ["incomplete_workflow"], 5) == 0.0
        assert policy.score(PatternType.CRUD_DELETE, ["semantic_tag"] * 3, [], 0) == 1.0

    def test_unknown_bonus_ignored(self):
        assert ScoringPolicy().score(PatternType.SEARCH, ["mystery"], ["mystery"], 0) == 0.5


class TestLoadPolicy:
    def test_builtin_default(self, monkeypatch):
        monkeypatch.delenv("PATTERNFORGE_SCORING_POLICY", raising=False)
        policy = load_scoring_policy()
        assert policy == ScoringPolicy()

    def test_partial_override_merges_defaults(self, tmp_path):
        path = tmp_path / "policy.json"
        path.write_text(
            json.dumps(
                {
                    "name": "strict",
                    "version": "2.1.0",
                    "cutoff": 0.6,
                    "base_scores": {"navigation": 0.3},
                    "bonuses": {"engagement": 0.4},
                }
            ),
            encoding="utf-8",
        )
        policy = load_scoring_policy(path)

        assert policy.label == "strict@2.1.0"
        assert policy.cutoff == 0.6
        assert policy.base_scores[PatternType.NAVIGATION] == 0.3
        # 未覆盖的键保留默认值
        assert policy.base_scores[PatternType.FORM_SUBMISSION] == 0.6
        assert policy.bonuses["engagement"] == 0.4
        assert policy.bonuses["semantic_tag"] == 0.35
        assert policy.penalties["gap"] == 0.1

    def test_env_path(self, tmp_path, monkeypatch):
        path = tmp_path / "env-policy.json"
        path.write_text(json.dumps({"name": "env"}), encoding="utf-8")
        monkeypatch.setenv("PATTERNFORGE_SCORING_POLICY", str(path))
        assert load_scoring_policy().name == "env"

    def test_invalid_file(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"cutoff": 3}), encoding="utf-8")
        with pytest.raises(ValidationFailedError):
            load_scoring_policy(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValidationFailedError):
            load_scoring_policy(tmp_path / "missing.json")
