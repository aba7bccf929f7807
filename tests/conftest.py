import os
import sys

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from quote_engine.config.settings import Settings
from quote_engine.data.catalog import load_catalog
from quote_engine.engine import PricingEngine
from quote_engine.engine.models import (
    BogoConfig, Device, DiscountSettings, EffectType, InsurancePlan, PlanDetails,
    Promotion, PromotionCategory, PromotionCondition, PromotionEffect, QuoteConfig,
    QuoteDiscounts, StackingGroup, TradeInSource,
)


@pytest.fixture(scope="session")
def settings():
    return Settings.load()


@pytest.fixture(scope="session")
def catalog(settings):
    return load_catalog(settings)


@pytest.fixture
def engine(settings, catalog):
    return PricingEngine(settings=settings, catalog=catalog)


@pytest.fixture
def config():
    """One line on Experience More, autopay on, 6% tax."""
    return QuoteConfig(
        plan='experience-more',
        lines=1,
        discounts=QuoteDiscounts(autopay=True),
        tax_rate=6.0,
    )


@pytest.fixture
def simple_plans():
    return [
        PlanDetails(id='basic', name='Basic', tiered_prices=[70, 120, 140], taxes_included=False),
        PlanDetails(id='premium', name='Premium', tiered_prices=[100, 180, 230], taxes_included=True),
    ]


@pytest.fixture
def simple_insurance():
    return [InsurancePlan(id='protect', name='Protect', price=15)]


@pytest.fixture
def discount_settings():
    return DiscountSettings(autopay=5.0, insider=20.0, third_line_free=True)


def make_device(device_id, price, trade_in=0.0, model_id=None, **kwargs):
    return Device(id=device_id, price=price, trade_in=trade_in, model_id=model_id, **kwargs)


def make_promo(promo_id, value, *, bogo=None, effect=EffectType.DEVICE_CREDIT_FIXED, **kwargs):
    kwargs.setdefault('category', PromotionCategory.DEVICE)
    kwargs.setdefault('stacking_group', StackingGroup.DEVICE_OFFER)
    return Promotion(
        id=promo_id,
        name=promo_id.replace('-', ' ').title(),
        effects=[PromotionEffect(type=effect, value=value, duration_months=24)],
        bogo_config=BogoConfig(buy_quantity=bogo) if bogo else None,
        **kwargs,
    )


def condition(field_name, operator, value):
    return PromotionCondition(field=field_name, operator=operator, value=value)


def promo_devices(config):
    """Devices carrying a promotion, as (device id, promotion id) pairs."""
    return [
        (d.id, d.applied_promo_id) for d in config.devices
        if d.trade_in_type == TradeInSource.PROMO
    ]
