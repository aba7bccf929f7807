"""
Golden quote cases for pricing regression testing.
These capture hand-checked breakdowns against the bundled catalog and
should fail if pricing logic changes unexpectedly.
"""
import csv
import os

import pytest

from quote_engine.engine.models import Device, QuoteConfig, QuoteDiscounts


def load_golden_cases():
    """Load golden test cases from CSV."""
    cases_path = os.path.join(os.path.dirname(__file__), 'golden_cases.csv')
    with open(cases_path, 'r', newline='', encoding='utf-8') as f:
        return list(csv.DictReader(f))


def build_config(case: dict) -> QuoteConfig:
    prices = [float(p) for p in case['device_prices'].split('|') if p]
    trade_ins = [float(t) for t in case['trade_ins'].split('|') if t]
    return QuoteConfig(
        plan=case['plan'],
        lines=int(case['lines']),
        discounts=QuoteDiscounts(
            autopay=case['autopay'] == 'true',
            insider=case['insider'] == 'true',
            third_line_free=case['third_line_free'] == 'true',
        ),
        insurance_tier=case['insurance'],
        tax_rate=float(case['tax_rate']),
        devices=[
            Device(id=f"d{i}", price=price, trade_in=trade_in)
            for i, (price, trade_in) in enumerate(zip(prices, trade_ins), start=1)
        ],
    )


@pytest.mark.parametrize("case", load_golden_cases(), ids=lambda c: c['case_id'])
def test_golden_case(engine, case):
    """Test that the breakdown matches the expected golden case."""
    totals = engine.calculate(build_config(case))

    for field_name, expected in (
        ('final_plan_price', case['expected_final_plan']),
        ('calculated_taxes', case['expected_taxes']),
        ('monthly_device_payment', case['expected_device_payment']),
        ('monthly_total', case['expected_monthly_total']),
        ('due_today', case['expected_due_today']),
    ):
        actual = getattr(totals, field_name)
        assert abs(actual - float(expected)) < 0.005, \
            f"{field_name} mismatch for {case['case_id']}: expected ${float(expected):.2f}, got ${actual:.2f}"
    assert totals.warnings == ()
