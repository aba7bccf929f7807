"""
Promotion Applier - Applies a promotion a rep picked by hand.

Adjusts the customer type and plan the promotion requires and adds a
placeholder device (Device offers) or connected-device line (BTS offers).
Existing devices are never edited or removed.
"""
import copy
import logging
import uuid
from typing import Optional

from .condition_evaluator import canonical_field
from .models import (
    ConditionField, ConditionOperator, CustomerType, Device, DeviceCategory, DeviceDatabase,
    DeviceModel, Promotion, PromotionCategory, QuoteConfig, ServicePlan, TradeInSource,
)

logger = logging.getLogger(__name__)

# BTS placeholders default to a watch line
BTS_DEFAULT_CATEGORY = DeviceCategory.WATCH


def _new_device_id() -> str:
    return str(uuid.uuid4())


def _compatible_model(promo: Promotion, device_database: Optional[DeviceDatabase]) -> Optional[DeviceModel]:
    """First catalog model matching the promotion's tags, else its first listed id."""
    if device_database is None:
        return None
    if promo.eligible_device_tags:
        for model in device_database.devices:
            if any(tag in promo.eligible_device_tags for tag in model.tags):
                return model
    if promo.eligible_device_ids:
        return device_database.find(promo.eligible_device_ids[0])
    return None


def _coerce_customer_type(value) -> CustomerType | str:
    try:
        return CustomerType(value)
    except ValueError:
        return value


def apply_promotion(
    config: QuoteConfig,
    promotion: Promotion,
    device_database: Optional[DeviceDatabase] = None,
    service_plans: Optional[list[ServicePlan]] = None,
) -> QuoteConfig:
    """
    Return a new config with the promotion's requirements satisfied.

    Args:
        config: Current quote configuration (left untouched)
        promotion: The promotion the rep selected
        device_database: Device catalog used to pick a placeholder model
        service_plans: Service plans used for BTS placeholder lines
    """
    new_config = copy.deepcopy(config)

    for condition in promotion.conditions or []:
        field_name = canonical_field(condition.field)

        if field_name == ConditionField.CUSTOMER_TYPE and condition.operator == ConditionOperator.EQUALS:
            new_config.customer_type = _coerce_customer_type(condition.value)

        if field_name == ConditionField.PLAN and condition.operator == ConditionOperator.INCLUDES:
            if isinstance(condition.value, (list, tuple)):
                allowed = [str(v).strip() for v in condition.value]
            else:
                allowed = [s.strip() for s in str(condition.value).split(',')]
            allowed = [plan_id for plan_id in allowed if plan_id]
            if allowed and new_config.plan not in allowed:
                logger.debug("Switching plan %s -> %s for %s", new_config.plan, allowed[0], promotion.id)
                new_config.plan = allowed[0]

    if promotion.category == PromotionCategory.DEVICE:
        device = Device(
            id=_new_device_id(),
            category=DeviceCategory.PHONE,
            model_id='',
            variant_sku='',
            price=0.0,
            term=24,
            down_payment=0.0,
            trade_in=0.0,
            trade_in_type=TradeInSource.PROMO,
            applied_promo_id=promotion.id,
        )
        model = _compatible_model(promotion, device_database)
        if model:
            device.category = model.category
            device.model_id = model.id
            device.term = model.default_term_months
        new_config.devices = [*new_config.devices, device]

    elif promotion.category == PromotionCategory.BTS:
        service_plan = next(
            (sp for sp in service_plans or [] if sp.device_category == BTS_DEFAULT_CATEGORY),
            None,
        )
        new_config.devices = [
            *new_config.devices,
            Device(
                id=_new_device_id(),
                category=BTS_DEFAULT_CATEGORY,
                model_id='',
                variant_sku='',
                price=0.0,
                term=24,
                down_payment=0.0,
                trade_in=0.0,
                trade_in_type=TradeInSource.MANUAL,
                applied_promo_id=None,
                service_plan_id=service_plan.id if service_plan else None,
            ),
        ]

    return new_config
