"""
Key conditions shared by query and scan.

Callers express a condition on one key part as a one-entry mapping:

    {"eq": "post-1"}
    {"gt": "post-1"}
    {"between": ["post-1", "post-3"]}
    {"begins_with": "post-"}

parse_condition() validates that shape; the resulting KeyCondition is store
agnostic. to_key_expression()/to_filter_expression() translate conditions to
boto3 condition objects, and matches() evaluates them in memory.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Sequence, Tuple

from boto3.dynamodb.conditions import Attr, Key

from ..exceptions import ValidationError

INVALID_KEY_CONDITIONS = "The number of conditions on the keys is invalid"


class Operator(str, Enum):
    EQ = "eq"
    GE = "ge"
    GT = "gt"
    LE = "le"
    LT = "lt"
    BETWEEN = "between"
    BEGINS_WITH = "begins_with"


@dataclass(frozen=True)
class KeyCondition:
    """Condition on one key attribute. ``value`` is a (low, high) pair for BETWEEN."""
    field: str
    operator: Operator
    value: Any


def parse_condition(condition: Mapping[str, Any], message: str = INVALID_KEY_CONDITIONS) -> Tuple[Operator, Any]:
    """Validate a one-entry condition mapping.

    Args:
        condition: Mapping of exactly one operator name to its operand
        message: Error message used when the mapping does not hold exactly one entry

    Returns:
        Tuple of (operator, operand); BETWEEN operands are returned as a tuple

    Raises:
        ValidationError: For a wrong number of entries, an unknown operator or a
            malformed BETWEEN operand
    """
    if not isinstance(condition, Mapping) or len(condition) != 1:
        raise ValidationError(message)

    (name, value), = condition.items()
    try:
        operator = Operator(name)
    except ValueError:
        supported = ", ".join(op.value for op in Operator)
        raise ValidationError(f"Unsupported condition '{name}'. Supported values: {supported}") from None

    if operator == Operator.BETWEEN:
        if isinstance(value, (str, bytes)) or not isinstance(value, Sequence) or len(value) != 2:
            raise ValidationError("'between' condition requires exactly two values")
        value = (value[0], value[1])

    return operator, value


def _apply(condition: KeyCondition, builder):
    if condition.operator == Operator.EQ:
        return builder.eq(condition.value)
    if condition.operator == Operator.GE:
        return builder.gte(condition.value)
    if condition.operator == Operator.GT:
        return builder.gt(condition.value)
    if condition.operator == Operator.LE:
        return builder.lte(condition.value)
    if condition.operator == Operator.LT:
        return builder.lt(condition.value)
    if condition.operator == Operator.BETWEEN:
        low, high = condition.value
        return builder.between(low, high)
    return builder.begins_with(condition.value)


def _combine(expressions):
    combined = None
    for expression in expressions:
        combined = expression if combined is None else combined & expression
    return combined


def to_key_expression(conditions: Iterable[KeyCondition]):
    """Build a KeyConditionExpression for boto3 queries.

    Example:
        >>> to_key_expression([KeyCondition("user_id", Operator.EQ, "u1"),
        ...                    KeyCondition("id", Operator.BEGINS_WITH, "post-")])
        # Returns: Key('user_id').eq('u1') & Key('id').begins_with('post-')
    """
    return _combine(_apply(c, Key(c.field)) for c in conditions)


def to_filter_expression(conditions: Iterable[KeyCondition]):
    """Build a FilterExpression for boto3 scans, or None without conditions."""
    return _combine(_apply(c, Attr(c.field)) for c in conditions)


def matches(condition: KeyCondition, value: Optional[Any]) -> bool:
    """Evaluate a condition against a stored attribute value."""
    if value is None:
        return False
    operator = condition.operator
    try:
        if operator == Operator.EQ:
            return value == condition.value
        if operator == Operator.GE:
            return value >= condition.value
        if operator == Operator.GT:
            return value > condition.value
        if operator == Operator.LE:
            return value <= condition.value
        if operator == Operator.LT:
            return value < condition.value
        if operator == Operator.BETWEEN:
            low, high = condition.value
            return low <= value <= high
        return isinstance(value, str) and value.startswith(condition.value)
    except TypeError:
        return False
