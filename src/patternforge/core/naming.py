"""命名工具 -- 实体名规范化、单复数与大小写转换

入库规范化、模式识别与代码生成共用同一套规则，
保证 "Orders"、"order"、"orderForm" 最终落到同一个实体名。
"""

import re

_WORD_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")

# 不按规则变化的词
_UNCOUNTABLE = {"data", "info", "metadata", "news", "settings", "status", "series"}
_IRREGULAR_PLURALS = {"person": "people", "child": "children", "man": "men", "woman": "women"}
_IRREGULAR_SINGULARS = {v: k for k, v in _IRREGULAR_PLURALS.items()}


def split_words(text: str) -> list[str]:
    """拆分 camelCase / snake_case / kebab-case / 空格分隔文本为小写单词"""
    return [w.lower() for w in _WORD_RE.findall(text or "")]


def singularize(word: str) -> str:
    """英文名词单数化（规则覆盖常见业务实体名）"""
    w = word.lower()
    if w in _UNCOUNTABLE or len(w) <= 2:
        return w
    if w in _IRREGULAR_SINGULARS:
        return _IRREGULAR_SINGULARS[w]
    if w.endswith("ies") and len(w) > 3:
        return w[:-3] + "y"
    if w.endswith(("sses", "shes", "ches", "xes", "zes")):
        return w[:-2]
    if w.endswith("s") and not w.endswith(("ss", "us", "is")):
        return w[:-1]
    return w


def pluralize(word: str) -> str:
    """英文名词复数化"""
    w = word.lower()
    if w in _UNCOUNTABLE:
        return w
    if w in _IRREGULAR_PLURALS:
        return _IRREGULAR_PLURALS[w]
    if w.endswith("y") and len(w) > 1 and w[-2] not in "aeiou":
        return w[:-1] + "ies"
    if w.endswith(("s", "sh", "ch", "x", "z")):
        return w + "es"
    return w + "s"


def canonical_entity(name: str | None) -> str | None:
    """实体名规范化：小写、单数、下划线连接；空值返回 None"""
    if not name:
        return None
    words = split_words(name)
    if not words:
        return None
    words[-1] = singularize(words[-1])
    return "_".join(words)


def to_pascal(text: str) -> str:
    """转换为 PascalCase，空结果返回 "Item"；数字开头时加 "_" 前缀以保证是合法标识符"""
    words = split_words(text)
    pascal = "".join(w.capitalize() for w in words) or "Item"
    return f"_{pascal}" if pascal[0].isdigit() else pascal


def to_camel(text: str) -> str:
    """转换为 camelCase"""
    pascal = to_pascal(text)
    if pascal.startswith("_"):
        return pascal
    return pascal[0].lower() + pascal[1:]


def to_kebab(text: str) -> str:
    """转换为 kebab-case，空结果返回 "item" """
    return "-".join(split_words(text)) or "item"
