"""模式识别引擎 -- 会话事件序列 -> RecognizedPattern 列表

规则检测器逐个扫描按 (timestamp, seq) 排序的事件，产出候选；
候选按 ScoringPolicy 打分，丢弃低于 cutoff 的，
同类型且共享事件的候选保留事件更多者（相同则保留开始更早者）。
不同类型的候选可以重叠，全部输出。
模式定义（PatternDefinition）作为额外的序列匹配检测器参与同一套打分与取舍。

引擎是纯函数：不读时钟、不含随机，同一事件列表与策略总得到相同结果。
"""

import re
from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

from ..core.exceptions import ValidationFailedError
from ..core.models.enums import (
    CRUD_PATTERN_BY_OPERATION,
    CrudOperation,
    EventType,
    PatternType,
)
from ..core.models.definition import DefinitionRules, PatternDefinition
from ..core.models.event import Event
from ..core.models.pattern import PatternMetadata, RecognizedPattern, make_pattern_id
from ..core.naming import canonical_entity, split_words
from .scoring import ScoringPolicy

# 命名约定 -> CRUD 操作
_CRUD_KEYWORDS: dict[CrudOperation, set[str]] = {
    CrudOperation.CREATE: {"new", "add", "create"},
    CrudOperation.UPDATE: {"edit", "update", "modify"},
    CrudOperation.DELETE: {"delete", "remove", "trash"},
    CrudOperation.READ: {"view", "details", "detail", "open", "show"},
}
_ALL_CRUD_WORDS = set().union(*_CRUD_KEYWORDS.values())

# 命名约定 -> 控件类模式
_CONTROL_KEYWORDS: dict[PatternType, set[str]] = {
    PatternType.SEARCH: {"search", "query", "find"},
    PatternType.FILTER: {"filter", "filters", "facet"},
    PatternType.SORT: {"sort", "sorting"},
    PatternType.DATA_EXPORT: {"export", "download"},
    PatternType.DATA_IMPORT: {"import", "upload"},
}

_LIST_TOKENS = {
    "list", "table", "grid", "row", "rows", "item", "items", "card", "cell", "li", "tr", "td",
}
_AUTH_MARKERS = ("login", "signin", "logon", "auth")
_FILLER_WORDS = {"button", "btn", "link", "form", "the", "a", "an", "icon", "menu"}
_PATH_ACTION_WORDS = {"new", "edit", "create", "add", "details", "view"}

_FORM_CONTINUE = {"field_change", "change", "input", "validate"}
_FORM_ABANDON = {"cancel", "reset"}
_WORKFLOW_FAILED = {"cancel", "error"}

_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.I)
_ULID_RE = re.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$", re.I)
_PLACEHOLDER_RE = re.compile(r"^(\[[^\]]+\]|:\w+|\{[^}]+\})$")


@dataclass(slots=True)
class Candidate:
    """检测器产出的候选模式（打分前）"""

    pattern_type: PatternType
    events: list[Event]
    bonuses: list[str] = field(default_factory=list)
    penalties: list[str] = field(default_factory=list)
    metadata: PatternMetadata = field(default_factory=PatternMetadata)

    @property
    def event_ids(self) -> list[str]:
        return [e.event_id for e in self.events]

    @property
    def start_time(self) -> int:
        return self.events[0].timestamp

    @property
    def end_time(self) -> int:
        return self.events[-1].timestamp

    @property
    def first_seq(self) -> int:
        return self.events[0].seq


Detector = Callable[[list[Event], list[str | None], ScoringPolicy], list[Candidate]]


# ---------------------------------------------------------------------------
# 辅助函数
# ---------------------------------------------------------------------------


def resolve_screens(events: Sequence[Event]) -> list[str | None]:
    """计算每个事件的有效页面：自身 screen，缺失时沿用上一个已知页面"""
    current: str | None = None
    screens: list[str | None] = []
    for event in events:
        if event.metadata.screen:
            current = event.metadata.screen
        screens.append(current)
    return screens


def count_gaps(events: Sequence[Event], threshold_ms: int) -> int:
    """相邻事件间隔超过阈值的次数"""
    return sum(
        1
        for prev, cur in zip(events, events[1:])
        if cur.timestamp - prev.timestamp > threshold_ms
    )


def _unique(values: Iterable[str | None]) -> list[str]:
    seen: dict[str, None] = {}
    for value in values:
        if value:
            seen.setdefault(value, None)
    return list(seen)


def _is_id_segment(segment: str) -> bool:
    return bool(
        segment.isdigit()
        or _UUID_RE.match(segment)
        or _ULID_RE.match(segment)
        or _PLACEHOLDER_RE.match(segment)
    )


def _path_segments(screen: str | None) -> list[str]:
    if not screen:
        return []
    path = screen.split("?", 1)[0].split("#", 1)[0]
    return [s for s in path.split("/") if s]


def path_entity(screen: str | None) -> str | None:
    """从页面路径推断实体：跳过 ID 段与动作段，取最后一个资源段"""
    for segment in reversed(_path_segments(screen)):
        if _is_id_segment(segment) or segment.lower() in _PATH_ACTION_WORDS:
            continue
        return canonical_entity(segment)
    return None


def form_entity(form_id: str | None) -> str | None:
    """从表单 ID 推断实体：orderForm -> order"""
    words = [
        w
        for w in split_words(form_id or "")
        if w not in _FILLER_WORDS and w not in _ALL_CRUD_WORDS
    ]
    return canonical_entity("_".join(words)) if words else None


def _naming_tokens(event: Event) -> list[str]:
    meta = event.metadata
    tokens: list[str] = []
    for text in (meta.element_text, meta.element_id, meta.component, meta.form_id):
        tokens.extend(split_words(text or ""))
    return tokens


def _explicit_entity(events: Sequence[Event]) -> str | None:
    for event in events:
        if event.metadata.entity:
            return event.metadata.entity
        if event.metadata.semantic and event.metadata.semantic.entity:
            return event.metadata.semantic.entity
    return None


def infer_entity(
    events: Sequence[Event],
    screen: str | None,
    extra_words: Sequence[str] = (),
) -> str | None:
    """实体推断优先级：显式声明 > 命名剩余词 > 表单 ID > 页面路径"""
    explicit = _explicit_entity(events)
    if explicit:
        return explicit
    if extra_words:
        return canonical_entity("_".join(extra_words))
    for event in events:
        entity = form_entity(event.metadata.form_id)
        if entity:
            return entity
    return path_entity(screen)


def _fields(events: Sequence[Event]) -> list[str]:
    names: list[str | None] = []
    for event in events:
        names.append(event.metadata.field)
        extra = event.metadata.context.get("fields")
        if isinstance(extra, list):
            names.extend(str(f) for f in extra if f)
    return _unique(names)


def _components(events: Sequence[Event]) -> list[str]:
    return _unique(e.metadata.component for e in events)


def _is_list_shaped(event: Event) -> bool:
    meta = event.metadata
    tokens: set[str] = set()
    for text in (meta.component, meta.element_type, meta.element_id):
        tokens.update(split_words(text or ""))
    return bool(tokens & _LIST_TOKENS)


# ---------------------------------------------------------------------------
# 检测器
# ---------------------------------------------------------------------------


def detect_semantic(
    events: list[Event], screens: list[str | None], policy: ScoringPolicy
) -> list[Candidate]:
    """语义动作短路：埋点显式声明的 operation/pattern 直接成为候选"""
    candidates: list[Candidate] = []
    for event, screen in zip(events, screens):
        semantic = event.metadata.semantic
        if semantic is None:
            continue
        types: list[PatternType] = []
        if semantic.operation is not None:
            types.append(CRUD_PATTERN_BY_OPERATION[semantic.operation])
        if semantic.pattern is not None and semantic.pattern not in types:
            types.append(semantic.pattern)
        for pattern_type in types:
            candidates.append(
                Candidate(
                    pattern_type=pattern_type,
                    events=[event],
                    bonuses=["semantic_tag"],
                    metadata=PatternMetadata(
                        entity=infer_entity([event], screen),
                        screen=screen,
                        fields=_fields([event]),
                        components=_components([event]),
                        description=semantic.description,
                        steps=_unique([semantic.workflow_step]),
                    ),
                )
            )
    return candidates


def _submit_followup(
    events: list[Event],
    screens: list[str | None],
    start: int,
    policy: ScoringPolicy,
) -> list[Event]:
    """CRUD 触发之后、同页且间隔不超阈值的表单序列，以 submit 结束才返回"""
    trigger_screen = screens[start]
    last_ts = events[start].timestamp
    collected: list[Event] = []
    for j in range(start + 1, len(events)):
        event = events[j]
        if event.type == EventType.NAVIGATION:
            break
        if event.timestamp - last_ts > policy.gap_threshold_ms:
            break
        if trigger_screen and screens[j] and screens[j] != trigger_screen:
            break
        if event.type == EventType.INTERACTION and _crud_operation(event) is not None:
            break
        if event.type != EventType.FORM:
            continue
        action = event.metadata.action
        if action in _FORM_ABANDON:
            break
        if action == "start" or action in _FORM_CONTINUE:
            collected.append(event)
            last_ts = event.timestamp
        elif action == "submit":
            collected.append(event)
            return collected
    return []


def _crud_operation(event: Event) -> tuple[CrudOperation, list[str]] | None:
    """命名约定匹配：返回 (操作, 剩余实体词)"""
    tokens = _naming_tokens(event)
    for operation, keywords in _CRUD_KEYWORDS.items():
        if keywords & set(tokens):
            remainder = [
                t
                for t in split_words(event.metadata.element_text or event.metadata.element_id or "")
                if t not in keywords and t not in _FILLER_WORDS and not t.isdigit()
            ]
            return operation, remainder
    return None


def detect_naming_crud(
    events: list[Event], screens: list[str | None], policy: ScoringPolicy
) -> list[Candidate]:
    """命名约定 CRUD：元素文本/ID/组件/表单 ID 含 new/edit/delete/view 等词"""
    candidates: list[Candidate] = []
    for i, event in enumerate(events):
        if event.type not in (EventType.INTERACTION, EventType.FORM):
            continue
        if event.type == EventType.FORM and event.metadata.action != "submit":
            continue
        match = _crud_operation(event)
        if match is None:
            continue
        operation, remainder = match

        members = [event]
        bonuses = ["naming_convention"]
        if event.type == EventType.INTERACTION:
            followup = _submit_followup(events, screens, i, policy)
            if followup:
                members.extend(followup)
                bonuses.append("submit_followup")

        candidates.append(
            Candidate(
                pattern_type=CRUD_PATTERN_BY_OPERATION[operation],
                events=members,
                bonuses=bonuses,
                metadata=PatternMetadata(
                    entity=infer_entity(members, screens[i], remainder),
                    screen=screens[i],
                    fields=_fields(members),
                    components=_components(members),
                    description=f"{operation.value} via {event.metadata.element_text or event.metadata.element_id or event.metadata.form_id}",
                ),
            )
        )
    return candidates


def detect_navigation(
    events: list[Event], screens: list[str | None], policy: ScoringPolicy
) -> list[Candidate]:
    """导航 + 参与：导航事件及其后目标页面上、间隔不超阈值的交互"""
    candidates: list[Candidate] = []
    for i, event in enumerate(events):
        if event.type != EventType.NAVIGATION:
            continue
        target = screens[i]
        engaged: list[Event] = []
        last_ts = event.timestamp
        for j in range(i + 1, len(events)):
            nxt = events[j]
            if nxt.type == EventType.NAVIGATION:
                break
            if nxt.timestamp - last_ts > policy.gap_threshold_ms:
                break
            if target and screens[j] != target:
                break
            last_ts = nxt.timestamp
            if nxt.type == EventType.INTERACTION:
                engaged.append(nxt)

        members = [event, *engaged]
        candidates.append(
            Candidate(
                pattern_type=PatternType.NAVIGATION,
                events=members,
                bonuses=["engagement"] if engaged else [],
                metadata=PatternMetadata(
                    screen=target,
                    components=_components(members),
                    description=(
                        f"navigate {event.metadata.from_screen or '?'} -> {target or '?'}"
                    ),
                ),
            )
        )
    return candidates


def detect_forms(
    events: list[Event], screens: list[str | None], policy: ScoringPolicy
) -> list[Candidate]:
    """表单提交：start -> field_change* -> submit，start 可缺省；cancel/reset 放弃"""
    candidates: list[Candidate] = []
    pending: dict[str, list[int]] = {}
    for i, event in enumerate(events):
        if event.type != EventType.FORM:
            continue
        key = event.metadata.form_id or f"@{screens[i] or ''}"
        action = event.metadata.action
        if action == "start":
            pending[key] = [i]
        elif action in _FORM_CONTINUE:
            pending.setdefault(key, []).append(i)
        elif action in _FORM_ABANDON:
            pending.pop(key, None)
        elif action == "submit":
            indexes = [*pending.pop(key, []), i]
            members = [events[k] for k in indexes]
            screen = screens[indexes[0]] or screens[i]

            bonuses: list[str] = []
            if members[0].metadata.action == "start":
                bonuses.append("form_started")
            bonuses.extend(
                "field_change" for m in members if m.metadata.action in _FORM_CONTINUE
            )
            metadata = PatternMetadata(
                entity=infer_entity(members, screen),
                screen=screen,
                fields=_fields(members),
                components=_components(members),
                description=f"submit {event.metadata.form_id or 'form'}",
            )
            candidates.append(
                Candidate(
                    pattern_type=PatternType.FORM_SUBMISSION,
                    events=members,
                    bonuses=bonuses,
                    metadata=metadata,
                )
            )

            marker = re.sub(r"[^a-z]", "", f"{event.metadata.form_id or ''}{screen or ''}".lower())
            if any(m in marker for m in _AUTH_MARKERS):
                candidates.append(
                    Candidate(
                        pattern_type=PatternType.AUTHENTICATION,
                        events=list(members),
                        bonuses=["naming_convention"],
                        metadata=metadata.model_copy(
                            update={"entity": None, "description": "sign in"}
                        ),
                    )
                )
    return candidates


def detect_list_views(
    events: list[Event], screens: list[str | None], policy: ScoringPolicy
) -> list[Candidate]:
    """列表视图：同一页面、无导航打断的列表形态 UI 上至少 N 次交互"""
    candidates: list[Candidate] = []
    run: list[Event] = []
    run_screen: str | None = None

    def flush() -> None:
        if len(run) >= policy.min_list_interactions:
            members = list(run)
            candidates.append(
                Candidate(
                    pattern_type=PatternType.LIST_VIEW,
                    events=members,
                    metadata=PatternMetadata(
                        entity=infer_entity(members, run_screen),
                        screen=run_screen,
                        components=_components(members),
                        description=f"{len(members)} interactions on list",
                    ),
                )
            )
        run.clear()

    for event, screen in zip(events, screens):
        if event.type == EventType.NAVIGATION or screen != run_screen:
            flush()
            run_screen = screen
        if event.type == EventType.INTERACTION and _is_list_shaped(event):
            run.append(event)
    flush()
    return candidates


def detect_detail_views(
    events: list[Event], screens: list[str | None], policy: ScoringPolicy
) -> list[Candidate]:
    """详情视图：导航到最后一段为 ID 的路径"""
    candidates: list[Candidate] = []
    for event, screen in zip(events, screens):
        if event.type != EventType.NAVIGATION:
            continue
        segments = _path_segments(screen)
        if not segments or not _is_id_segment(segments[-1]):
            continue
        candidates.append(
            Candidate(
                pattern_type=PatternType.DETAIL_VIEW,
                events=[event],
                metadata=PatternMetadata(
                    entity=infer_entity([event], screen),
                    screen=screen,
                    description=f"open detail {screen}",
                ),
            )
        )
    return candidates


def detect_controls(
    events: list[Event], screens: list[str | None], policy: ScoringPolicy
) -> list[Candidate]:
    """搜索/筛选/排序/导出/导入控件；同页相邻同类事件合并"""
    candidates: list[Candidate] = []
    open_runs: dict[PatternType, tuple[str | None, list[Event]]] = {}

    def close(pattern_type: PatternType) -> None:
        screen, members = open_runs.pop(pattern_type)
        candidates.append(
            Candidate(
                pattern_type=pattern_type,
                events=members,
                bonuses=["naming_convention"],
                metadata=PatternMetadata(
                    entity=infer_entity(members, screen),
                    screen=screen,
                    fields=_fields(members),
                    components=_components(members),
                    description=f"{pattern_type.value} on {screen or '?'}",
                ),
            )
        )

    for event, screen in zip(events, screens):
        if event.type == EventType.NAVIGATION:
            for pattern_type in list(open_runs):
                close(pattern_type)
            continue
        if event.type not in (EventType.INTERACTION, EventType.STATE_CHANGE):
            continue
        tokens = set(_naming_tokens(event)) | set(split_words(event.metadata.field or ""))
        for pattern_type, keywords in _CONTROL_KEYWORDS.items():
            if not tokens & keywords:
                continue
            current = open_runs.get(pattern_type)
            if current is not None:
                run_screen, members = current
                if (
                    run_screen == screen
                    and event.timestamp - members[-1].timestamp <= policy.gap_threshold_ms
                ):
                    members.append(event)
                    continue
                close(pattern_type)
            open_runs[pattern_type] = (screen, [event])

    for pattern_type in list(open_runs):
        close(pattern_type)
    return candidates


def detect_workflows(
    events: list[Event], screens: list[str | None], policy: ScoringPolicy
) -> list[Candidate]:
    """工作流：start -> step* -> complete；取消、出错或未结束的运行带扣分输出"""
    candidates: list[Candidate] = []
    runs: dict[str, list[Event]] = {}

    def emit(members: list[Event], completed: bool) -> None:
        steps = _unique(
            e.metadata.workflow_step
            or (e.metadata.semantic.workflow_step if e.metadata.semantic else None)
            for e in members
        )
        name = next((e.metadata.workflow_name for e in members if e.metadata.workflow_name), None)
        candidates.append(
            Candidate(
                pattern_type=PatternType.WORKFLOW_STEP,
                events=members,
                bonuses=["workflow_completed"] if completed else [],
                penalties=[] if completed else ["incomplete_workflow"],
                metadata=PatternMetadata(
                    entity=_explicit_entity(members),
                    screen=members[0].metadata.screen,
                    components=_components(members),
                    workflow_id=members[0].metadata.workflow_id,
                    workflow_name=name,
                    steps=steps,
                    description=f"workflow {name or members[0].metadata.workflow_id}",
                ),
            )
        )

    for event in events:
        if event.type != EventType.WORKFLOW:
            continue
        key = event.metadata.workflow_id or event.metadata.workflow_name or ""
        action = event.metadata.action
        if action == "start":
            if runs.get(key):
                emit(runs.pop(key), completed=False)
            runs[key] = [event]
        elif action == "complete":
            emit([*runs.pop(key, []), event], completed=True)
        elif action in _WORKFLOW_FAILED:
            emit([*runs.pop(key, []), event], completed=False)
        else:
            runs.setdefault(key, []).append(event)

    for key in sorted(runs):
        if runs[key]:
            emit(runs[key], completed=False)
    return candidates


def match_definition(
    events: Sequence[Event], screens: Sequence[str | None], rules: DefinitionRules
) -> list[list[Event]]:
    """按定义的步骤序列扫描事件，返回互不重叠的匹配

    匹配必须从命中第一步的事件开始；步骤之间可以夹杂不匹配的事件，
    任一成员与首事件的间隔超过 timeout_ms 则本次匹配失败。
    """
    matches: list[list[Event]] = []
    i = 0
    while i < len(events):
        if not rules.sequence[0].matches(events[i], screens[i]):
            i += 1
            continue
        matched = _match_from(events, screens, i, rules)
        if matched is None:
            i += 1
            continue
        end, members = matched
        matches.append(members)
        i = end + 1
    return matches


def _match_from(
    events: Sequence[Event], screens: Sequence[str | None], start: int, rules: DefinitionRules
) -> tuple[int, list[Event]] | None:
    members: list[Event] = []
    start_time = events[start].timestamp
    index = start
    for step in rules.sequence:
        hits = 0
        while index < len(events) and hits < step.min_occurrences:
            event = events[index]
            if event.timestamp - start_time > rules.timeout_ms:
                return None
            if step.matches(event, screens[index]):
                members.append(event)
                hits += 1
            index += 1
        if hits < step.min_occurrences:
            return None
    return index - 1, members


def definition_detector(definitions: Iterable[PatternDefinition]) -> Detector:
    """由启用的模式定义构造检测器，定义按 definition_id 排序以保证输出确定"""
    active = sorted((d for d in definitions if d.is_active), key=lambda d: d.definition_id)

    def detect_definitions(
        events: list[Event], screens: list[str | None], policy: ScoringPolicy
    ) -> list[Candidate]:
        candidates: list[Candidate] = []
        position = {id(e): i for i, e in enumerate(events)}
        for definition in active:
            for members in match_definition(events, screens, definition.rules):
                screen = screens[position[id(members[0])]]
                candidates.append(
                    Candidate(
                        pattern_type=definition.pattern_type,
                        events=members,
                        bonuses=["definition_match"],
                        metadata=PatternMetadata(
                            entity=infer_entity(members, screen),
                            screen=screen,
                            fields=_fields(members),
                            components=_components(members),
                            description=definition.description or definition.name,
                            definition_id=definition.definition_id,
                        ),
                    )
                )
        return candidates

    return detect_definitions


DEFAULT_DETECTORS: tuple[Detector, ...] = (
    detect_semantic,
    detect_naming_crud,
    detect_navigation,
    detect_forms,
    detect_list_views,
    detect_detail_views,
    detect_controls,
    detect_workflows,
)


# ---------------------------------------------------------------------------
# 引擎
# ---------------------------------------------------------------------------


def _select_same_type(scored: list[tuple[Candidate, float]]) -> list[tuple[Candidate, float]]:
    """同类型且共享事件的候选：保留事件更多者，相同则保留开始更早者"""
    by_type: dict[PatternType, list[tuple[Candidate, float]]] = defaultdict(list)
    for item in scored:
        by_type[item[0].pattern_type].append(item)

    selected: list[tuple[Candidate, float]] = []
    for pattern_type in sorted(by_type):
        ordered = sorted(
            by_type[pattern_type],
            key=lambda item: (
                -len(item[0].events),
                item[0].start_time,
                item[0].first_seq,
                item[0].event_ids,
            ),
        )
        taken: set[str] = set()
        for candidate, confidence in ordered:
            ids = set(candidate.event_ids)
            if ids & taken:
                continue
            taken |= ids
            selected.append((candidate, confidence))
    return selected


class RecognitionEngine:
    """规则驱动的模式识别引擎"""

    def __init__(
        self,
        policy: ScoringPolicy | None = None,
        detectors: Iterable[Detector] | None = None,
    ) -> None:
        self.policy = policy or ScoringPolicy()
        self.detectors = list(detectors) if detectors is not None else list(DEFAULT_DETECTORS)

    def with_definitions(self, definitions: Sequence[PatternDefinition]) -> "RecognitionEngine":
        """返回追加了定义检测器的新引擎；没有启用的定义时返回自身"""
        if not any(d.is_active for d in definitions):
            return self
        return RecognitionEngine(self.policy, [*self.detectors, definition_detector(definitions)])

    def recognize(self, events: Sequence[Event]) -> list[RecognizedPattern]:
        """识别单个会话事件序列中的模式

        Args:
            events: 同一会话的事件（顺序不限，内部按 (timestamp, seq) 排序）

        Returns:
            按 (start_time, 首事件 seq, 类型) 排序的模式列表；
            空会话或单事件会话返回空列表

        Raises:
            ValidationFailedError: 事件来自多个会话
        """
        if len(events) < 2:
            return []
        session_ids = {e.session_id for e in events}
        if len(session_ids) > 1:
            raise ValidationFailedError("recognition input must come from a single session")
        session_id = next(iter(session_ids))

        ordered = sorted(events, key=lambda e: (e.timestamp, e.seq))
        screens = resolve_screens(ordered)

        candidates: list[Candidate] = []
        for detector in self.detectors:
            candidates.extend(detector(ordered, screens, self.policy))

        scored: list[tuple[Candidate, float]] = []
        for candidate in candidates:
            confidence = self.policy.score(
                candidate.pattern_type,
                candidate.bonuses,
                candidate.penalties,
                count_gaps(candidate.events, self.policy.gap_threshold_ms),
            )
            if confidence >= self.policy.cutoff:
                scored.append((candidate, confidence))

        selected = _select_same_type(scored)
        selected.sort(
            key=lambda item: (
                item[0].start_time,
                item[0].first_seq,
                item[0].pattern_type.value,
                item[0].event_ids,
            )
        )

        patterns = [
            RecognizedPattern(
                pattern_id=make_pattern_id(session_id, c.pattern_type, c.event_ids),
                session_id=session_id,
                pattern_type=c.pattern_type,
                confidence=confidence,
                event_ids=c.event_ids,
                start_time=c.start_time,
                end_time=c.end_time,
                metadata=c.metadata.model_copy(update={"policy_version": self.policy.label}),
            )
            for c, confidence in selected
        ]
        return patterns
