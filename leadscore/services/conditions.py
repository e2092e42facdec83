"""Rule condition interpreter.

A condition is a ``{field, operator, value}`` mapping evaluated against
the flat event context built by the scoring engine.  All conditions on a
rule must hold for the rule to fire.

String operators compare case-insensitively; ordering operators coerce
both sides to ``float`` and fail when either side is not numeric.
"""

import logging
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from leadscore.core.exceptions import InvalidConditionError

logger = logging.getLogger(__name__)

_MISSING = object()


def resolve_field(context: Mapping[str, Any], field: str) -> Any:
    """Look up *field* in *context*, following dotted paths into dicts.

    Returns ``None`` when any segment of the path is absent.
    """
    if field in context:
        return context[field]
    current: Any = context
    for part in field.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part, _MISSING)
        if current is _MISSING:
            return None
    return current


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if hasattr(value, "value"):
        value = value.value
    return str(value).lower()


def _as_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _compare(
    check: Callable[[float, float], bool],
) -> Callable[[Any, Any], bool]:
    def op(actual: Any, expected: Any) -> bool:
        left, right = _as_number(actual), _as_number(expected)
        if left is None or right is None:
            return False
        return check(left, right)

    return op


def _require_list(operator: str, expected: Any) -> list:
    if not isinstance(expected, list):
        raise InvalidConditionError(f"Operator '{operator}' requires a list value")
    return expected


def _normalise(value: Any) -> Any:
    if hasattr(value, "value"):
        return value.value
    return value


_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "equals": lambda a, e: _normalise(a) == _normalise(e),
    "not_equals": lambda a, e: _normalise(a) != _normalise(e),
    "contains": lambda a, e: _as_text(e) in _as_text(a),
    "not_contains": lambda a, e: _as_text(e) not in _as_text(a),
    "starts_with": lambda a, e: _as_text(a).startswith(_as_text(e)),
    "ends_with": lambda a, e: _as_text(a).endswith(_as_text(e)),
    "greater_than": _compare(lambda a, e: a > e),
    "less_than": _compare(lambda a, e: a < e),
    "greater_than_or_equals": _compare(lambda a, e: a >= e),
    "less_than_or_equals": _compare(lambda a, e: a <= e),
    "is_empty": lambda a, e: _is_empty(a),
    "is_not_empty": lambda a, e: not _is_empty(a),
    "in": lambda a, e: _normalise(a) in _require_list("in", e),
    "not_in": lambda a, e: _normalise(a) not in _require_list("not_in", e),
}

SUPPORTED_OPERATORS = frozenset(_OPERATORS)


def evaluate_condition(condition: Mapping[str, Any], context: Mapping[str, Any]) -> bool:
    """Evaluate a single condition.

    Raises:
        InvalidConditionError: the condition has no field or uses an
            operator this interpreter does not know.
    """
    field = condition.get("field")
    operator = condition.get("operator")
    if not field or not isinstance(field, str):
        raise InvalidConditionError("Condition is missing a field name")
    op = _OPERATORS.get(operator)
    if op is None:
        raise InvalidConditionError(f"Unknown condition operator '{operator}'")
    return op(resolve_field(context, field), condition.get("value"))


def evaluate_conditions(
    conditions: Iterable[Mapping[str, Any]], context: Mapping[str, Any]
) -> bool:
    """Return ``True`` when every condition holds (empty list holds).

    Every condition is validated even after one fails, so a malformed
    condition is reported regardless of its position.
    """
    result = True
    for condition in conditions:
        if not evaluate_condition(condition, context):
            result = False
    return result
