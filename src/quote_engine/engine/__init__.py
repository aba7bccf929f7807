"""Engine subpackage - conditions, promotions and pricing."""
from .pricing_engine import PricingEngine, calculate_totals
from .condition_evaluator import evaluate_condition
from .eligibility import classify_promotion, classify_promotions
from .optimizer import optimize_quote
from .promo_applier import apply_promotion
from .models import QuoteConfig, Device, Promotion, CalculatedTotals

__all__ = [
    'PricingEngine', 'calculate_totals', 'evaluate_condition',
    'classify_promotion', 'classify_promotions', 'optimize_quote',
    'apply_promotion', 'QuoteConfig', 'Device', 'Promotion', 'CalculatedTotals',
]
