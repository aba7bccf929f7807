"""
Eligibility Classifier - Sorts promotions into eligible, locked and hidden.

"Locked" promotions are near misses a rep can act on (add a line, change
plan); "hidden" ones are irrelevant to this customer.
"""
from .condition_evaluator import canonical_field, evaluate_condition
from .models import (
    ClassifiedPromotion, ConditionField, ConditionOperator, EligibilityStatus,
    Promotion, PromotionCondition, PromotionEligibility, QuoteConfig,
)


STATUS_ORDER = {
    EligibilityStatus.ELIGIBLE: 0,
    EligibilityStatus.LOCKED: 1,
    EligibilityStatus.HIDDEN: 2,
}


def near_miss_reason(condition: PromotionCondition) -> str:
    """Human-readable hint for a failed (non customer-type) condition."""
    field_name = canonical_field(condition.field)

    if field_name == ConditionField.PLAN:
        return 'Upgrade Plan to Unlock'
    if field_name == ConditionField.LINES:
        if condition.operator == ConditionOperator.GREATER_THAN_OR_EQUAL:
            return f'Add lines to unlock (Needs {condition.value})'
        return 'Line requirement not met'
    if field_name == ConditionField.DEVICE_COUNT:
        return 'Device count requirement not met'
    return 'Requirements not met'


def classify_promotion(config: QuoteConfig, promotion: Promotion) -> PromotionEligibility:
    """
    Classify one promotion for this configuration.

    A failed customer-type condition hides the promotion immediately; every
    other failure adds a reason and checking continues.
    """
    if not promotion.is_active:
        return PromotionEligibility(status=EligibilityStatus.HIDDEN)

    reasons = []
    for condition in promotion.conditions or []:
        if evaluate_condition(config, condition):
            continue
        if canonical_field(condition.field) == ConditionField.CUSTOMER_TYPE:
            return PromotionEligibility(status=EligibilityStatus.HIDDEN)
        reasons.append(near_miss_reason(condition))

    if reasons:
        return PromotionEligibility(status=EligibilityStatus.LOCKED, reasons=tuple(reasons))
    return PromotionEligibility(status=EligibilityStatus.ELIGIBLE)


def classify_promotions(config: QuoteConfig, promotions: list[Promotion]) -> list[ClassifiedPromotion]:
    """Classify every promotion, eligible first, then locked, then hidden.

    Catalog order is kept within each status.
    """
    classified = [
        ClassifiedPromotion(promotion=promo, eligibility=classify_promotion(config, promo))
        for promo in promotions
    ]
    classified.sort(key=lambda c: STATUS_ORDER[c.eligibility.status])
    return classified
