"""
Guidance tips shown to reps while they build a quote.

Each tip carries the same condition records as promotions and shows only
when all of them pass against the current configuration.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .condition_evaluator import conditions_met
from .models import PromotionCondition, QuoteConfig


class GuidancePlacement(str, Enum):
    HOME_PAGE = 'home_page'
    BEFORE_PLAN_DETAILS = 'before_plan_details'
    BEFORE_INSURANCE = 'before_insurance'
    BEFORE_ACCESSORIES = 'before_accessories'


class GuidanceStyle(str, Enum):
    INFO = 'info'
    SUCCESS = 'success'
    WARNING = 'warning'
    PROMO = 'promo'


@dataclass
class GuidanceItem:
    id: str
    title: str
    message: str
    placement: GuidancePlacement = GuidancePlacement.HOME_PAGE
    style: GuidanceStyle = GuidanceStyle.INFO
    is_active: bool = True
    conditions: list[PromotionCondition] = field(default_factory=list)


def active_guidance(
    config: QuoteConfig,
    items: list[GuidanceItem],
    placement: Optional[str] = None,
) -> list[GuidanceItem]:
    """Active tips whose conditions pass, optionally limited to one placement."""
    if placement is not None:
        placement = GuidancePlacement(placement)
    return [
        item for item in items or []
        if item.is_active
        and (placement is None or item.placement == placement)
        and conditions_met(config, item.conditions)
    ]
