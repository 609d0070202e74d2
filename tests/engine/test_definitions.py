"""模式定义匹配测试

测试内容：
1. 步骤序列匹配：步骤间可夹杂无关事件，min_occurrences 连续计数
2. 超时、首步不匹配、页面通配
3. 同一定义的多次匹配互不重叠
4. 引擎追加定义检测器：产出带 definition_id 的模式，停用定义被忽略
"""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError
from patternforge.core.models import (
    DefinitionRules,
    EventType,
    PatternDefinition,
    PatternType,
    StepRule,
)
from patternforge.engine import RecognitionEngine, match_definition
from patternforge.engine.recognition import resolve_screens

T0 = 2_000_000
NOW = datetime(2026, 5, 1, tzinfo=UTC)


def _rules(*steps, timeout_ms=60_000) -> DefinitionRules:
    return DefinitionRules(sequence=[StepRule(**s) for s in steps], timeout_ms=timeout_ms)


def _definition(definition_id="bulk_import", is_active=True, rules=None) -> PatternDefinition:
    return PatternDefinition(
        definition_id=definition_id,
        name="Bulk import",
        pattern_type=PatternType.DATA_IMPORT,
        rules=rules
        or _rules(
            {"type": "navigation", "screen": "*/import"},
            {"type": "interaction", "action": "click", "min_occurrences": 2},
            {"type": "form", "action": "submit"},
        ),
        is_active=is_active,
        created_at=NOW,
        updated_at=NOW,
    )


@pytest.fixture
def import_events(make_event):
    return [
        make_event("n", "navigation", T0, seq=1, screen="/products/import"),
        make_event("c1", "interaction", T0 + 100, seq=2, action="click", element_text="Add file"),
        make_event("s", "system", T0 + 150, seq=3, action="heartbeat"),
        make_event("c2", "interaction", T0 + 200, seq=4, action="click", element_text="Add file"),
        make_event("f", "form", T0 + 300, seq=5, action="submit", form_id="productForm"),
    ]


def _match(events, rules):
    return [[e.event_id for e in m] for m in match_definition(events, resolve_screens(events), rules)]


class TestMatchDefinition:
    def test_sequence_with_unrelated_events_between(self, import_events):
        assert _match(import_events, _definition().rules) == [["n", "c1", "c2", "f"]]

    def test_min_occurrences_not_reached(self, import_events):
        events = [e for e in import_events if e.event_id != "c2"]
        assert _match(events, _definition().rules) == []

    def test_timeout_measured_from_first_member(self, import_events):
        rules = _definition().rules.model_copy(update={"timeout_ms": 250})
        assert _match(import_events, rules) == []

    def test_screen_glob_uses_effective_screen(self, make_event):
        """事件自身没有 screen 时沿用上一个已知页面"""
        events = [
            make_event("n", "navigation", T0, seq=1, screen="/Orders/NEW"),
            make_event("c", "interaction", T0 + 10, seq=2, action="click"),
        ]
        rules = _rules({"type": "navigation"}, {"action": "click", "screen": "*/new"})
        assert _match(events, rules) == [["n", "c"]]

    def test_element_text_glob(self, import_events):
        rules = _rules({"type": "interaction", "element_text": "add *"})
        assert _match(import_events, rules) == [["c1"], ["c2"]]

    def test_matches_do_not_overlap(self, make_event):
        events = [
            make_event(f"c{i}", "interaction", T0 + i * 10, seq=i + 1, action="click")
            for i in range(5)
        ]
        rules = _rules({"action": "click", "min_occurrences": 2})
        assert _match(events, rules) == [["c0", "c1"], ["c2", "c3"]]

    def test_first_step_must_match_start(self, import_events):
        rules = _rules({"type": "form"}, {"type": "navigation"})
        assert _match(import_events, rules) == []


class TestDefinitionModel:
    def test_action_lowercased(self):
        assert StepRule(action="Submit").action == "submit"
        assert StepRule(type="form").type == EventType.FORM

    def test_empty_sequence_rejected(self):
        with pytest.raises(ValidationError):
            DefinitionRules(sequence=[])

    def test_invalid_definition_id_rejected(self):
        with pytest.raises(ValidationError):
            _definition(definition_id="has space")


class TestEngineWithDefinitions:
    def test_definition_pattern_emitted(self, import_events):
        engine = RecognitionEngine().with_definitions([_definition()])
        patterns = [p for p in engine.recognize(import_events) if p.pattern_type == PatternType.DATA_IMPORT]

        assert len(patterns) == 1
        pattern = patterns[0]
        assert pattern.event_ids == ["n", "c1", "c2", "f"]
        assert pattern.metadata.definition_id == "bulk_import"
        assert pattern.metadata.screen == "/products/import"
        assert pattern.metadata.entity == "product"
        assert pattern.metadata.description == "Bulk import"
        # base 0.5 + definition_match 0.2
        assert pattern.confidence == 0.7

    def test_inactive_definition_ignored(self, import_events):
        engine = RecognitionEngine()
        assert engine.with_definitions([_definition(is_active=False)]) is engine
        assert all(p.pattern_type != PatternType.DATA_IMPORT for p in engine.recognize(import_events))

    def test_deterministic_across_definition_order(self, import_events):
        first = _definition("a_import")
        second = _definition(
            "b_clicks",
            rules=_rules({"type": "interaction", "action": "click", "min_occurrences": 2}),
        )
        a = RecognitionEngine().with_definitions([first, second]).recognize(import_events)
        b = RecognitionEngine().with_definitions([second, first]).recognize(import_events)
        assert [p.pattern_id for p in a] == [p.pattern_id for p in b]
