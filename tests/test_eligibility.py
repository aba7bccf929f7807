from conftest import condition, make_promo
from quote_engine.engine.eligibility import classify_promotion, classify_promotions
from quote_engine.engine.models import CustomerType, EligibilityStatus


def test_inactive_promotion_is_hidden_without_reasons(config):
    promo = make_promo('old-offer', 100, is_active=False, conditions=[condition('lines', 'GREATER_THAN_OR_EQUAL', 5)])
    result = classify_promotion(config, promo)
    assert result.status == EligibilityStatus.HIDDEN
    assert result.reasons == ()


def test_failed_customer_type_hides_immediately(config):
    """Customer type short-circuits even when other conditions also fail."""
    promo = make_promo('military', 25, conditions=[
        condition('lines', 'GREATER_THAN_OR_EQUAL', 3),
        condition('customerType', 'EQUALS', 'military-fr'),
    ])
    result = classify_promotion(config, promo)
    assert result.status == EligibilityStatus.HIDDEN
    assert result.reasons == ()


def test_near_miss_reasons(config):
    promo = make_promo('family', 100, conditions=[
        condition('plan', 'INCLUDES', 'experience-beyond'),
        condition('lines', 'GREATER_THAN_OR_EQUAL', 3),
        condition('lines', 'EQUALS', 4),
        condition('devices.length', 'GREATER_THAN_OR_EQUAL', 2),
        condition('taxRate', 'EQUALS', 0),
    ])
    result = classify_promotion(config, promo)
    assert result.status == EligibilityStatus.LOCKED
    assert result.reasons == (
        'Upgrade Plan to Unlock',
        'Add lines to unlock (Needs 3)',
        'Line requirement not met',
        'Device count requirement not met',
        'Requirements not met',
    )


def test_all_conditions_met_is_eligible(config):
    config.customer_type = CustomerType.MILITARY_FR
    promo = make_promo('military', 25, conditions=[condition('customerType', 'EQUALS', 'military-fr')])
    assert classify_promotion(config, promo).status == EligibilityStatus.ELIGIBLE
    assert classify_promotion(config, make_promo('anyone', 5)).status == EligibilityStatus.ELIGIBLE


def test_batch_sorted_eligible_locked_hidden(config):
    promos = [
        make_promo('hidden-a', 1, is_active=False),
        make_promo('locked-a', 1, conditions=[condition('lines', 'GREATER_THAN_OR_EQUAL', 2)]),
        make_promo('eligible-a', 1),
        make_promo('locked-b', 1, conditions=[condition('plan', 'EQUALS', 'essentials')]),
        make_promo('eligible-b', 1),
    ]
    classified = classify_promotions(config, promos)
    assert [c.promotion.id for c in classified] == [
        'eligible-a', 'eligible-b', 'locked-a', 'locked-b', 'hidden-a',
    ]


def test_catalog_promotions_for_standard_customer(config, catalog):
    statuses = {c.promotion.id: c.eligibility.status for c in classify_promotions(config, catalog.promotions)}
    assert statuses['military-discount'] == EligibilityStatus.HIDDEN
    assert statuses['plus55-discount'] == EligibilityStatus.HIDDEN
    assert statuses['iphone-15-on-us'] == EligibilityStatus.LOCKED
    assert statuses['iphone-bogo-700'] == EligibilityStatus.ELIGIBLE
    assert statuses['watch-plan-5-off'] == EligibilityStatus.ELIGIBLE
