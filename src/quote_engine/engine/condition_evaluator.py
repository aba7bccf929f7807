"""
Condition Evaluator - Tests quote attributes against declarative rules.

Shared by promotion eligibility, the optimizer, the pricing engine and
guidance tips. Fields resolve through a closed registry of accessors, so an
unknown field (like an unknown operator) simply evaluates to False.
Nothing in here raises for a malformed condition.
"""
import math
from enum import Enum
from typing import Any, Callable, Optional

from .models import ConditionField, ConditionOperator, PromotionCondition, QuoteConfig


FieldAccessor = Callable[[QuoteConfig], Any]


def _plain(value: Any) -> Any:
    """Unwrap enum members to their raw value."""
    return value.value if isinstance(value, Enum) else value


FIELD_ACCESSORS: dict[ConditionField, FieldAccessor] = {
    ConditionField.CUSTOMER_TYPE: lambda c: _plain(c.customer_type),
    ConditionField.PLAN: lambda c: c.plan,
    ConditionField.LINES: lambda c: c.lines,
    ConditionField.DEVICE_COUNT: lambda c: len(c.devices or []),
    ConditionField.ACCESSORY_COUNT: lambda c: len(c.accessories or []),
    ConditionField.TAX_RATE: lambda c: c.tax_rate,
    ConditionField.INSURANCE_TIER: lambda c: c.insurance_tier,
    ConditionField.AUTOPAY: lambda c: c.discounts.autopay if c.discounts else None,
    ConditionField.INSIDER: lambda c: c.discounts.insider if c.discounts else None,
    ConditionField.THIRD_LINE_FREE: lambda c: c.discounts.third_line_free if c.discounts else None,
    ConditionField.ACTIVATION_FEE: lambda c: c.fees.activation if c.fees else None,
    ConditionField.CUSTOMER_NAME: lambda c: c.customer_name,
    ConditionField.CUSTOMER_PHONE: lambda c: c.customer_phone,
}

# Snake-case spellings used by Python callers
FIELD_ALIASES: dict[str, ConditionField] = {
    'customer_type': ConditionField.CUSTOMER_TYPE,
    'tax_rate': ConditionField.TAX_RATE,
    'insurance_tier': ConditionField.INSURANCE_TIER,
    'device_count': ConditionField.DEVICE_COUNT,
    'accessory_count': ConditionField.ACCESSORY_COUNT,
    'discounts.third_line_free': ConditionField.THIRD_LINE_FREE,
    'customer_name': ConditionField.CUSTOMER_NAME,
    'customer_phone': ConditionField.CUSTOMER_PHONE,
}


def canonical_field(name: Any) -> Optional[ConditionField]:
    """Map a condition's field name onto the registry, or None if unknown."""
    if isinstance(name, ConditionField):
        return name
    if not isinstance(name, str):
        return None
    key = name.strip()
    try:
        return ConditionField(key)
    except ValueError:
        return FIELD_ALIASES.get(key)


def resolve_field(config: QuoteConfig, name: Any) -> Any:
    """Resolved config value for a field name; None when it cannot resolve."""
    field_name = canonical_field(name)
    if field_name is None:
        return None
    return FIELD_ACCESSORS[field_name](config)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float))


def _parses_as_number(value: Any) -> bool:
    if _is_number(value):
        return not math.isnan(value)
    if isinstance(value, str) and value.strip():
        try:
            return not math.isnan(float(value.strip()))
        except ValueError:
            return False
    return False


def _coerce(value: Any) -> float:
    """Numeric view of a value; NaN when it has none."""
    if _is_number(value):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return math.nan
    return math.nan


def _display(value: Any) -> str:
    """String form used for comma-list membership ("2", not "2.0")."""
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float):
        if math.isnan(value):
            return 'NaN'
        if value.is_integer():
            return str(int(value))
    return str(value)


def _includes(left: Any, literal: Any, numeric: bool) -> bool:
    if isinstance(literal, str):
        members = [part.strip() for part in literal.split(',')]
        return _display(left) in members
    if isinstance(literal, (list, tuple, set, frozenset)):
        if numeric:
            return any(_coerce(_plain(item)) == left for item in literal)
        return any(_plain(item) == left for item in literal)
    return False


def evaluate_condition(config: QuoteConfig, condition: PromotionCondition) -> bool:
    """
    Evaluate one condition against a configuration.

    If the config value is numeric or the literal parses as a number, both
    sides compare as floats; otherwise they compare raw.
    """
    config_value = _plain(resolve_field(config, condition.field))
    if config_value is None:
        return False

    try:
        operator = ConditionOperator(_plain(condition.operator))
    except ValueError:
        return False

    literal = _plain(condition.value)
    numeric = _is_number(config_value) or _parses_as_number(literal)
    if numeric:
        left, right = _coerce(config_value), _coerce(literal)
    else:
        left, right = config_value, literal

    if operator == ConditionOperator.EQUALS:
        return left == right
    elif operator == ConditionOperator.NOT_EQUALS:
        return left != right
    elif operator == ConditionOperator.GREATER_THAN_OR_EQUAL:
        return numeric and left >= right
    elif operator == ConditionOperator.LESS_THAN_OR_EQUAL:
        return numeric and left <= right
    elif operator == ConditionOperator.INCLUDES:
        return _includes(left, literal, numeric)
    return False


def conditions_met(config: QuoteConfig, conditions: list[PromotionCondition]) -> bool:
    """True when every condition passes (vacuously true for none)."""
    return all(evaluate_condition(config, c) for c in (conditions or []))
