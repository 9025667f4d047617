"""Evaluation of rule conditions against trigger parameters.

Conditions are ANDed; an empty list always matches. A condition whose field
is missing from the parameters does not hold. Values are compared loosely
enough to accept numbers sent as strings, but booleans only ever equal
booleans.
"""

from typing import Any

from ruleflow.models.rule import Condition, ConditionOperator

_MISSING = object()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def values_equal(actual: Any, expected: Any) -> bool:
    """Compare a parameter value with a condition value."""
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual == expected

    if _is_number(expected):
        number = _as_float(actual)
        return number is not None and number == float(expected)

    if isinstance(actual, str):
        return actual == expected
    return str(actual) == str(expected)


def _compare(actual: Any, expected: Any, greater: bool) -> bool:
    left, right = _as_float(actual), _as_float(expected)
    if left is None or right is None:
        return False
    return left > right if greater else left < right


def evaluate_condition(condition: Condition, parameters: dict[str, Any]) -> bool:
    """Check one condition.

    Args:
        condition: Condition to check.
        parameters: Trigger parameters, looked up by exact key.

    Returns:
        True if the condition holds.

    Raises:
        ValueError: If the operator is not supported.
    """
    actual = parameters.get(condition.field, _MISSING)
    if actual is _MISSING or actual is None:
        return False

    expected = condition.value
    operator = ConditionOperator(condition.operator)

    match operator:
        case ConditionOperator.EQUALS:
            return values_equal(actual, expected)
        case ConditionOperator.NOT_EQUALS:
            return not values_equal(actual, expected)
        case ConditionOperator.GREATER_THAN:
            return _compare(actual, expected, greater=True)
        case ConditionOperator.LESS_THAN:
            return _compare(actual, expected, greater=False)
        case ConditionOperator.CONTAINS:
            if isinstance(actual, (list, tuple, set)):
                return any(values_equal(item, expected) for item in actual)
            if isinstance(actual, str):
                return str(expected) in actual
            return False
        case ConditionOperator.STARTS_WITH:
            return isinstance(actual, str) and actual.startswith(str(expected))
        case ConditionOperator.ENDS_WITH:
            return isinstance(actual, str) and actual.endswith(str(expected))

    raise ValueError(f"Unsupported condition operator: {operator}")


def evaluate_conditions(conditions: list[Condition], parameters: dict[str, Any]) -> bool:
    """Check that every condition holds.

    Args:
        conditions: Conditions to check.
        parameters: Trigger parameters.

    Returns:
        True if all conditions hold (or there are none).
    """
    return all(evaluate_condition(condition, parameters) for condition in conditions)
