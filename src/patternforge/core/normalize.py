"""事件规范化 -- 采集端原始事件 -> 规范化 Event

采集端按 camelCase 上报，字段位置也不统一（顶层或 metadata 内，
entityName/entity/semanticAction.entity 等同义字段并存）。
入库时统一在这里合并为 EventMetadata，下游只读规范字段。
"""

import hashlib
import json
from typing import Any

from .exceptions import ValidationFailedError
from .models.enums import CrudOperation, DeviceClass, EventType, PatternType
from .models.event import Event, EventMetadata, SemanticAction
from .models.session import SessionMetadata, Viewport
from .naming import canonical_entity

# 规范字段 -> 同义字段（按优先级）
_SYNONYMS: dict[str, tuple[str, ...]] = {
    "from_screen": ("from", "fromScreen", "from_screen"),
    "component": ("component", "componentName"),
    "element_id": ("elementId", "element_id"),
    "element_type": ("elementType", "element_type", "tagName"),
    "element_text": ("elementText", "element_text", "text", "label"),
    "action": (
        "action",
        "interactionType",
        "formAction",
        "systemAction",
        "changeType",
    ),
    "entity": ("entityName", "entity", "entity_name"),
    "field": ("fieldName", "field_name", "field"),
    "form_id": ("formId", "form_id"),
    "workflow_id": ("workflowId", "workflow_id"),
    "workflow_name": ("workflowName", "workflow_name"),
    "workflow_step": ("currentStep", "workflowStep", "workflow_step", "step"),
    "duration_ms": ("durationMs", "duration_ms", "duration"),
}

# 顶层保留键，不进入 metadata
_ENVELOPE_KEYS = {
    "id",
    "eventId",
    "event_id",
    "sessionId",
    "session_id",
    "userId",
    "user_id",
    "type",
    "timestamp",
    "metadata",
    "sessionMetadata",
    "session_metadata",
}

_CONSUMED_EXTRA = {"to", "target", "semanticAction", "semantic", "timing", "context"}

# SQLite INTEGER 为有符号 64 位
_SQLITE_INT_MAX = 2**63 - 1


def _first(sources: list[dict[str, Any]], keys: tuple[str, ...]) -> Any:
    for source in sources:
        for key in keys:
            value = source.get(key)
            if value not in (None, ""):
                return value
    return None


def _as_str(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, dict):
        # field: {name: ...} 这类嵌套对象取 name
        value = value.get("name") or value.get("id")
        if value is None:
            return None
    text = str(value).strip()
    return text or None


def _parse_timestamp(value: Any) -> int:
    """解析整数毫秒时间戳

    Raises:
        ValidationFailedError: 非整数形式，或超出 [0, 2^63) 范围
    """
    if isinstance(value, bool):
        raise ValidationFailedError("timestamp must be an integer (epoch ms)")
    if isinstance(value, int):
        timestamp = value
    elif isinstance(value, float) and value.is_integer():
        timestamp = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        timestamp = int(value.strip())
    else:
        raise ValidationFailedError("timestamp must be an integer (epoch ms)")
    if not 0 <= timestamp <= _SQLITE_INT_MAX:
        raise ValidationFailedError("timestamp out of range")
    return timestamp


def _parse_storable_int(value: Any) -> int | None:
    """可存入 SQLite INTEGER 的整数；无法转换或越界时返回 None"""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not -_SQLITE_INT_MAX - 1 <= number <= _SQLITE_INT_MAX:
        return None
    return number


def _parse_semantic(raw: Any) -> SemanticAction | None:
    """解析 semanticAction；非法的 pattern/operation 值丢弃而不是拒绝整条事件"""
    if not isinstance(raw, dict):
        return None

    pattern = None
    if raw.get("pattern"):
        try:
            pattern = PatternType(str(raw["pattern"]).lower())
        except ValueError:
            pattern = None

    operation = None
    if raw.get("operation"):
        try:
            operation = CrudOperation(str(raw["operation"]).lower())
        except ValueError:
            operation = None

    return SemanticAction(
        pattern=pattern,
        entity=canonical_entity(_as_str(raw.get("entity"))),
        operation=operation,
        workflow_step=_as_str(raw.get("workflowStep") or raw.get("workflow_step")),
        description=_as_str(raw.get("description")),
    )


def content_event_id(raw: dict[str, Any]) -> str:
    """缺失事件 ID 时用原始内容哈希补齐，重试的批次仍可去重"""
    payload = json.dumps(raw, sort_keys=True, default=str, ensure_ascii=False)
    return f"evt_{hashlib.sha256(payload.encode('utf-8')).hexdigest()[:24]}"


def normalize_metadata(event_type: EventType, raw: dict[str, Any]) -> EventMetadata:
    """合并原始事件的顶层字段与 metadata，得到规范化 EventMetadata"""
    raw_metadata = raw.get("metadata") if isinstance(raw.get("metadata"), dict) else {}
    sources = [raw_metadata, raw]

    values: dict[str, Any] = {}
    for canonical, keys in _SYNONYMS.items():
        values[canonical] = _first(sources, keys)

    # 顶层 path 在 state_change 事件中表示状态路径，页面只从 metadata 或顶层 screen 读取
    values["screen"] = _first([raw_metadata], ("screen", "path", "route")) or raw.get("screen")

    # 导航事件的目标页面即当前页面
    if event_type == EventType.NAVIGATION:
        to = _first(sources, ("to",))
        if to:
            values["screen"] = to

    target = _first(sources, ("target",))
    if isinstance(target, dict):
        values["element_id"] = values["element_id"] or target.get("id")
        values["element_type"] = values["element_type"] or target.get("tagName")
        values["element_text"] = values["element_text"] or target.get("text")

    semantic = _parse_semantic(_first(sources, ("semanticAction", "semantic")))

    timing = _first(sources, ("timing",))
    if values["duration_ms"] is None and isinstance(timing, dict):
        values["duration_ms"] = timing.get("duration")

    duration_ms = _parse_storable_int(values["duration_ms"])

    entity = canonical_entity(_as_str(values["entity"]))
    if entity is None and semantic is not None:
        entity = semantic.entity

    workflow_step = _as_str(values["workflow_step"])
    if workflow_step is None and semantic is not None:
        workflow_step = semantic.workflow_step

    consumed = (
        {key for keys in _SYNONYMS.values() for key in keys}
        | {"screen", "path", "route"}
        | _CONSUMED_EXTRA
    )
    context: dict[str, Any] = {}
    if isinstance(raw_metadata.get("context"), dict):
        context.update(raw_metadata["context"])
    for key, value in raw_metadata.items():
        if key not in consumed:
            context[key] = value
    for key, value in raw.items():
        if key not in consumed and key not in _ENVELOPE_KEYS:
            context.setdefault(key, value)

    return EventMetadata(
        screen=_as_str(values["screen"]),
        component=_as_str(values["component"]),
        element_id=_as_str(values["element_id"]),
        element_type=_as_str(values["element_type"]),
        element_text=_as_str(values["element_text"]),
        action=(_as_str(values["action"]) or "").lower() or None,
        semantic=semantic,
        entity=entity,
        field=_as_str(values["field"]),
        form_id=_as_str(values["form_id"]),
        from_screen=_as_str(values["from_screen"]),
        workflow_id=_as_str(values["workflow_id"]),
        workflow_name=_as_str(values["workflow_name"]),
        workflow_step=workflow_step,
        duration_ms=duration_ms,
        context=context,
    )


def normalize_event(raw: Any) -> Event:
    """校验并规范化单条原始事件

    Args:
        raw: 采集端上报的原始事件对象

    Returns:
        规范化后的 Event（seq 为 0，入库时分配）

    Raises:
        ValidationFailedError: 缺少会话 ID、类型不在封闭集合内、时间戳非整数
    """
    if not isinstance(raw, dict):
        raise ValidationFailedError("event must be an object")

    session_id = _as_str(raw.get("sessionId") or raw.get("session_id"))
    if not session_id:
        raise ValidationFailedError("missing session_id")

    raw_type = raw.get("type")
    try:
        event_type = EventType(str(raw_type).lower())
    except ValueError:
        raise ValidationFailedError(f"unknown event type {raw_type!r}") from None

    if "timestamp" not in raw:
        raise ValidationFailedError("missing timestamp")
    timestamp = _parse_timestamp(raw["timestamp"])

    event_id = _as_str(raw.get("id") or raw.get("eventId") or raw.get("event_id"))
    if not event_id:
        event_id = content_event_id(raw)

    return Event(
        event_id=event_id,
        session_id=session_id,
        user_id=_as_str(raw.get("userId") or raw.get("user_id")),
        type=event_type,
        timestamp=timestamp,
        metadata=normalize_metadata(event_type, raw),
    )


def _device_class_for(width: int | None) -> DeviceClass:
    if width is None:
        return DeviceClass.UNKNOWN
    if width < 768:
        return DeviceClass.MOBILE
    if width < 1024:
        return DeviceClass.TABLET
    return DeviceClass.DESKTOP


def extract_session_metadata(raw: Any) -> SessionMetadata | None:
    """从原始事件中提取会话级 metadata（userAgent/viewport/timezone/language）

    只有携带 sessionMetadata 的事件返回非空值，通常是会话的第一条事件。
    """
    if not isinstance(raw, dict):
        return None
    data = raw.get("sessionMetadata") or raw.get("session_metadata")
    if not isinstance(data, dict):
        return None

    viewport = None
    raw_viewport = data.get("viewport")
    if isinstance(raw_viewport, dict):
        try:
            viewport = Viewport(
                width=int(raw_viewport.get("width", 0)),
                height=int(raw_viewport.get("height", 0)),
            )
        except (TypeError, ValueError, OverflowError):
            viewport = None

    device_class = DeviceClass.UNKNOWN
    raw_class = data.get("deviceClass") or data.get("device_class")
    if raw_class:
        try:
            device_class = DeviceClass(str(raw_class).lower())
        except ValueError:
            device_class = DeviceClass.UNKNOWN
    if device_class == DeviceClass.UNKNOWN and viewport is not None:
        device_class = _device_class_for(viewport.width)

    return SessionMetadata(
        device_class=device_class,
        viewport=viewport,
        locale=_as_str(data.get("locale") or data.get("language")),
        timezone=_as_str(data.get("timezone")),
        user_agent=_as_str(data.get("userAgent") or data.get("user_agent")),
    )
