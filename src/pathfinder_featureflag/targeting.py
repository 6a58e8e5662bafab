"""ターゲティングルールの判定"""

from __future__ import annotations

import ipaddress
import re
from collections.abc import Callable, Iterable
from typing import Any

import structlog

from .models import EvaluationContext, TargetingRule

logger = structlog.get_logger(__name__)

_STANDARD_FIELDS = ("user_id", "group_id", "session_id", "ip_address")

_MISSING = object()


def resolve_attribute(context: EvaluationContext, attribute: str) -> Any:
    """標準フィールドを優先し、なければ attributes から値を取り出す。"""
    if attribute in _STANDARD_FIELDS:
        value = getattr(context, attribute)
        return _MISSING if value is None else value
    value = context.attributes.get(attribute, _MISSING)
    return _MISSING if value is None else value


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        return None


def _compare_numbers(compare: Callable[[float, float], bool]) -> Callable[[Any, Any], bool]:
    def operator(actual: Any, expected: Any) -> bool:
        a, b = _as_number(actual), _as_number(expected)
        return a is not None and b is not None and compare(a, b)

    return operator


def _parse_version(value: Any) -> tuple[int, ...] | None:
    """ドット区切りのバージョン文字列を整数タプルにする。解析できなければ None。"""
    if not isinstance(value, str) or not value:
        return None
    try:
        return tuple(int(part) for part in value.split("."))
    except ValueError:
        return None


def _compare_versions(compare: Callable[[int], bool]) -> Callable[[Any, Any], bool]:
    def operator(actual: Any, expected: Any) -> bool:
        a, b = _parse_version(actual), _parse_version(expected)
        if a is None or b is None:
            return False
        # 桁数の違いは 0 で埋める（"2.0" == "2"）
        width = max(len(a), len(b))
        a += (0,) * (width - len(a))
        b += (0,) * (width - len(b))
        return compare((a > b) - (a < b))

    return operator


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str):
        return isinstance(expected, str) and expected in actual
    if isinstance(actual, (list, tuple, set, frozenset)):
        return expected in actual
    return False


def _not_contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str) and not isinstance(expected, str):
        return False
    return not _contains(actual, expected)


def _in(actual: Any, expected: Any) -> bool:
    return isinstance(expected, (list, tuple)) and actual in expected


def _not_in(actual: Any, expected: Any) -> bool:
    return isinstance(expected, (list, tuple)) and actual not in expected


def _starts_with(actual: Any, expected: Any) -> bool:
    return isinstance(actual, str) and isinstance(expected, str) and actual.startswith(expected)


def _ends_with(actual: Any, expected: Any) -> bool:
    return isinstance(actual, str) and isinstance(expected, str) and actual.endswith(expected)


def _regex(actual: Any, expected: Any) -> bool:
    if not isinstance(actual, str) or not isinstance(expected, str):
        return False
    try:
        return re.search(expected, actual) is not None
    except re.error:
        return False


def _in_cidr(actual: Any, expected: Any) -> bool:
    networks = expected if isinstance(expected, (list, tuple)) else [expected]
    try:
        address = ipaddress.ip_address(str(actual))
    except ValueError:
        return False
    for network in networks:
        try:
            if address in ipaddress.ip_network(str(network), strict=False):
                return True
        except (TypeError, ValueError):
            continue
    return False


OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "equals": lambda actual, expected: actual == expected,
    "not_equals": lambda actual, expected: actual != expected,
    "contains": _contains,
    "not_contains": _not_contains,
    "in": _in,
    "not_in": _not_in,
    "starts_with": _starts_with,
    "ends_with": _ends_with,
    "regex": _regex,
    "greater_than": _compare_numbers(lambda a, b: a > b),
    "greater_equal": _compare_numbers(lambda a, b: a >= b),
    "less_than": _compare_numbers(lambda a, b: a < b),
    "less_equal": _compare_numbers(lambda a, b: a <= b),
    "version_equals": _compare_versions(lambda c: c == 0),
    "version_greater": _compare_versions(lambda c: c > 0),
    "version_greater_equal": _compare_versions(lambda c: c >= 0),
    "version_less": _compare_versions(lambda c: c < 0),
    "version_less_equal": _compare_versions(lambda c: c <= 0),
    "in_cidr": _in_cidr,
}


def rule_matches(rule: TargetingRule, context: EvaluationContext) -> bool:
    """ルールの条件がコンテキストに対して成立すれば True。

    属性がない場合、未知の演算子の場合、値の型が演算子に合わない場合は
    一致しないものとして扱う。
    """
    operator = OPERATORS.get(rule.operator)
    if operator is None:
        return False
    actual = resolve_attribute(context, rule.attribute)
    if actual is _MISSING:
        return False
    try:
        return bool(operator(actual, rule.value))
    except Exception as e:
        logger.warning(
            "Targeting rule could not be applied, treating as no match",
            attribute=rule.attribute,
            operator=rule.operator,
            error=str(e),
        )
        return False


def first_match(
    rules: Iterable[TargetingRule], context: EvaluationContext
) -> TargetingRule | None:
    """宣言順で最初に一致したルールを返す。なければ None。"""
    for rule in rules:
        if rule_matches(rule, context):
            return rule
    return None
