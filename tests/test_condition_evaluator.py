import pytest

from conftest import condition, make_device
from quote_engine.engine.condition_evaluator import conditions_met, evaluate_condition, resolve_field
from quote_engine.engine.models import CustomerType, QuoteDiscounts


@pytest.mark.parametrize("operator,value,expected", [
    ('GREATER_THAN_OR_EQUAL', 3, True),
    ('GREATER_THAN_OR_EQUAL', '3', True),
    ('GREATER_THAN_OR_EQUAL', 4, False),
    ('LESS_THAN_OR_EQUAL', 3, True),
    ('LESS_THAN_OR_EQUAL', 2, False),
    ('EQUALS', '3', True),
    ('NOT_EQUALS', 3, False),
])
def test_numeric_line_conditions(config, operator, value, expected):
    config.lines = 3
    assert evaluate_condition(config, condition('lines', operator, value)) is expected


@pytest.mark.parametrize("operator", ['GREATER_THAN_OR_EQUAL', 'LESS_THAN_OR_EQUAL'])
def test_ordering_operators_need_numbers(config, operator):
    """A non-numeric config value never satisfies an ordering comparison."""
    assert not evaluate_condition(config, condition('plan', operator, 'abc'))
    assert not evaluate_condition(config, condition('plan', operator, 5))


def test_customer_type_compares_raw_strings(config):
    config.customer_type = CustomerType.MILITARY_FR
    assert evaluate_condition(config, condition('customerType', 'EQUALS', 'military-fr'))
    assert not evaluate_condition(config, condition('customerType', 'EQUALS', 'plus-55'))
    assert evaluate_condition(config, condition('customer_type', 'NOT_EQUALS', 'standard'))


def test_includes_with_comma_separated_literal(config):
    cond = condition('plan', 'INCLUDES', 'experience-beyond, experience-more')
    assert evaluate_condition(config, cond)

    config.plan = 'essentials'
    assert not evaluate_condition(config, cond)


def test_includes_numeric_value_in_string_list(config):
    config.lines = 2
    assert evaluate_condition(config, condition('lines', 'INCLUDES', '1,2'))
    assert not evaluate_condition(config, condition('lines', 'INCLUDES', '3,4'))


def test_includes_with_list_literal(config):
    config.lines = 2
    assert evaluate_condition(config, condition('plan', 'INCLUDES', ['essentials', 'experience-more']))
    assert evaluate_condition(config, condition('lines', 'INCLUDES', [2, 3]))
    assert not evaluate_condition(config, condition('lines', 'INCLUDES', ['5']))


def test_unparseable_side_is_nan(config):
    """EQUALS against an unparseable value is false and NOT_EQUALS is true."""
    assert not evaluate_condition(config, condition('insuranceTier', 'EQUALS', 5))
    assert evaluate_condition(config, condition('insuranceTier', 'NOT_EQUALS', 5))


def test_boolean_fields_compare_as_numbers(config):
    config.discounts = QuoteDiscounts(autopay=False)
    assert evaluate_condition(config, condition('discounts.autopay', 'EQUALS', False))
    assert evaluate_condition(config, condition('discounts.autopay', 'EQUALS', 0))
    assert not evaluate_condition(config, condition('discounts.autopay', 'EQUALS', True))


def test_collection_lengths(config):
    assert evaluate_condition(config, condition('devices.length', 'EQUALS', 0))
    config.devices = [make_device('d1', 500)]
    assert evaluate_condition(config, condition('devices.length', 'GREATER_THAN_OR_EQUAL', 1))
    assert evaluate_condition(config, condition('accessories.length', 'EQUALS', 0))


def test_malformed_conditions_are_false(config):
    assert not evaluate_condition(config, condition('customer.address.zip', 'EQUALS', '12345'))
    assert not evaluate_condition(config, condition('lines', 'CONTAINS', 1))
    assert not evaluate_condition(config, condition(None, 'EQUALS', 1))
    assert not evaluate_condition(config, condition('lines', None, 1))


def test_resolve_field_aliases(config):
    assert resolve_field(config, 'taxRate') == resolve_field(config, 'tax_rate') == 6.0
    assert resolve_field(config, 'nope') is None


def test_conditions_met_requires_all(config):
    assert conditions_met(config, [])
    assert conditions_met(config, [condition('lines', 'EQUALS', 1), condition('plan', 'EQUALS', 'experience-more')])
    assert not conditions_met(config, [condition('lines', 'EQUALS', 1), condition('plan', 'EQUALS', 'essentials')])
