"""
Pricing Engine - Turns a resolved quote configuration into a full breakdown.

Order of operations for the monthly view:
1. Base plan price from the plan's pricing table
2. AutoPay, Insider and 3rd-Line-Free discounts → final plan price
3. Insurance (plan price × lines)
4. Device payments: net of trade-in, amortized over 24 months
5. Taxes prorated per line when the plan does not include them
6. Monthly total, then the upfront tax due today

Promotion credits, service plans, accessories and activation fees are
reported alongside and rolled into `net_monthly_total`; they never change
the figures above. Everything is computed in integer cents.
"""
import logging
from typing import Optional

from ..config.settings import Settings, get_settings
from .condition_evaluator import conditions_met
from .eligibility import classify_promotions
from .guidance import GuidanceItem, active_guidance
from .models import (
    AccessoryPaymentType, AppliedPromotion, CalculatedTotals, ClassifiedPromotion,
    DeviceCategory, DeviceDatabase, DiscountSettings, EffectType, InsurancePlan,
    OptimizationResult, PlanDetails, PricingModel, Promotion, PromotionCategory, QuoteConfig,
    ServicePlan, StackingGroup, TradeInSource, TraceStep,
)
from .money import percent_of, round_half_up, to_cents, to_dollars, to_number
from .optimizer import optimize_quote
from .promo_applier import apply_promotion

logger = logging.getLogger(__name__)

# Monthly device estimate always amortizes over 24 months, whatever the term
MONTHLY_ESTIMATE_MONTHS = 24
DEFAULT_CREDIT_MONTHS = 24
DEFAULT_ACCESSORY_TERM = 12
ACTIVATION_FEE_PER_LINE = 10

# How much a single effect is worth at plan level, per effect type
PLAN_EFFECT_VALUES = {
    EffectType.PLAN_DISCOUNT_PERCENTAGE: lambda base_cents, value: percent_of(base_cents, value),
    EffectType.PLAN_DISCOUNT_FIXED: lambda base_cents, value: to_cents(value),
    EffectType.DEVICE_CREDIT_FIXED: lambda base_cents, value: 0,
    EffectType.DEVICE_INSTANT_REBATE: lambda base_cents, value: 0,
    EffectType.SERVICE_PLAN_DISCOUNT_FIXED: lambda base_cents, value: 0,
}


def _find(items, item_id):
    for item in items or []:
        if item.id == item_id:
            return item
    return None


def _money(cents: int) -> str:
    return f"${to_dollars(cents):.2f}"


def _plan_price_cents(plan: Optional[PlanDetails], lines: int) -> int:
    if plan is None:
        return 0
    return to_cents(plan.price_for_lines(lines))


def plan_promotion_value(promo: Promotion, base_plan_cents: int) -> int:
    """Monthly plan discount (cents) a Plan/Account promotion is worth."""
    return sum(
        PLAN_EFFECT_VALUES[effect.type](base_plan_cents, effect.value)
        for effect in promo.effects or []
        if effect.type in PLAN_EFFECT_VALUES
    )


def select_plan_promotions(
    config: QuoteConfig,
    promotions: list[Promotion],
    base_plan_cents: int,
) -> list[tuple[Promotion, int]]:
    """
    Resolve stacking for Plan/Account promotions.

    OPEN promotions all apply; every other stacking group keeps only its
    most valuable member (first in catalog order on ties).
    """
    groups: dict[StackingGroup, list[Promotion]] = {}
    for promo in promotions or []:
        if not promo.is_active:
            continue
        if promo.category not in (PromotionCategory.PLAN, PromotionCategory.ACCOUNT):
            continue
        if not conditions_met(config, promo.conditions):
            continue
        groups.setdefault(promo.stacking_group or StackingGroup.OPEN, []).append(promo)

    selected = []
    for group, members in groups.items():
        if group == StackingGroup.OPEN:
            selected.extend((p, plan_promotion_value(p, base_plan_cents)) for p in members)
        else:
            best = max(members, key=lambda p: plan_promotion_value(p, base_plan_cents))
            selected.append((best, plan_promotion_value(best, base_plan_cents)))
    return selected


def _bogo_reward_caps(config: QuoteConfig, promotions: list[Promotion], device_database) -> dict[str, int]:
    """How many devices each BOGO promotion may credit, from the devices on the quote."""
    caps = {}
    for promo in promotions or []:
        if not (promo.is_active and promo.bogo_config):
            continue
        buy_quantity = int(to_number(promo.bogo_config.buy_quantity))
        eligible = sum(1 for d in config.devices if promo.matches_device(d, device_database))
        caps[promo.id] = eligible // buy_quantity if buy_quantity >= 1 else 0
    return caps


def equipment_credit_limit(config: QuoteConfig, eligible_lines: int) -> Optional[int]:
    """
    Equipment credit (cents) the customer may finance; None when no limit is set.

    With both an account cap and a per-line limit the smaller one wins.
    Lines with a connected device count toward the per-line limit.
    """
    max_ec = to_cents(config.max_ec)
    per_line_ec = to_cents(config.per_line_ec)
    if max_ec > 0 and per_line_ec > 0:
        return min(max_ec, per_line_ec * eligible_lines)
    if max_ec > 0:
        return max_ec
    if per_line_ec > 0:
        return per_line_ec * eligible_lines
    return None


def calculate_totals(
    config: QuoteConfig,
    plans: list[PlanDetails],
    insurance_plans: list[InsurancePlan],
    discount_settings: DiscountSettings,
    promotions: Optional[list[Promotion]] = None,
    device_database: Optional[DeviceDatabase] = None,
    service_plans: Optional[list[ServicePlan]] = None,
) -> CalculatedTotals:
    """
    Calculate the full monetary breakdown for a configuration.

    Pure: identical inputs give equal results. Missing catalog references
    price at zero and add a warning; bad numbers count as zero.
    """
    trace: list[TraceStep] = []
    warnings: list[str] = []
    promotions = promotions or []

    def add_trace(step: str, description: str, value: str = None):
        trace.append(TraceStep(step=step, description=description, value=value))

    def add_warning(warning: str):
        if warning not in warnings:
            warnings.append(warning)

    lines = max(int(to_number(config.lines)), 0)
    tax_rate = to_number(config.tax_rate)
    devices = config.devices or []

    # --- Plan ---
    plan = _find(plans, config.plan)
    if plan is None:
        add_warning(f"Plan '{config.plan}' not found in catalog")
    taxes_included = bool(plan.taxes_included) if plan else False

    def price(n: int) -> int:
        return _plan_price_cents(plan, n)

    base_plan_cents = price(lines)
    add_trace("Base Plan", f"{plan.name if plan else config.plan} for {lines} line(s)", _money(base_plan_cents))

    # --- Standard discounts ---
    applied_discounts = []
    discounts = config.discounts

    autopay_cents = 0
    if discounts.autopay:
        autopay_cents = lines * to_cents(discount_settings.autopay)
        add_trace("AutoPay", f"{lines} line(s) × {_money(to_cents(discount_settings.autopay))}", _money(autopay_cents))

    insider_cents = 0
    if discounts.insider:
        insider_cents = percent_of(base_plan_cents, discount_settings.insider)
        add_trace("Insider", f"{to_number(discount_settings.insider):g}% of base plan", _money(insider_cents))

    third_line_cents = 0
    tiered = plan is not None and plan.pricing_model == PricingModel.TIERED
    if discounts.third_line_free and discount_settings.third_line_free and tiered and lines >= 3:
        third_line_cents = price(3) - price(2)
        add_trace("3rd Line Free", "Price of the third line credited back", _money(third_line_cents))

    for name, amount in (("AutoPay", autopay_cents), ("Insider", insider_cents), ("3rd Line Free", third_line_cents)):
        if amount > 0:
            applied_discounts.append(name)

    total_discount_cents = autopay_cents + insider_cents + third_line_cents
    final_plan_cents = base_plan_cents - total_discount_cents
    add_trace("Final Plan", "Base plan less discounts", _money(final_plan_cents))

    # --- Insurance ---
    insurance_unit_cents = 0
    if config.insurance_tier and config.insurance_tier != 'none':
        insurance = _find(insurance_plans, config.insurance_tier)
        if insurance is None:
            add_warning(f"Insurance plan '{config.insurance_tier}' not found in catalog")
        else:
            insurance_unit_cents = to_cents(insurance.price)
    insurance_cents = insurance_unit_cents * lines
    if insurance_cents:
        add_trace("Insurance", f"{lines} line(s) × {_money(insurance_unit_cents)}", _money(insurance_cents))

    # --- Devices ---
    total_device_cents = 0
    total_trade_in_cents = 0
    positive_net_cents = 0
    device_payment_cents = 0
    for device in devices:
        price_cents = to_cents(device.price)
        trade_in_cents = to_cents(device.trade_in)
        net_cents = price_cents - trade_in_cents
        total_device_cents += price_cents
        total_trade_in_cents += trade_in_cents
        financed = max(net_cents, 0)
        positive_net_cents += financed
        device_payment_cents += round_half_up(financed / MONTHLY_ESTIMATE_MONTHS)
    if devices:
        add_trace("Devices", f"{len(devices)} device(s), net of trade-in over {MONTHLY_ESTIMATE_MONTHS} months",
                  _money(device_payment_cents))

    # --- Taxes (prorated per line) ---
    tax_cents = 0
    if not taxes_included:
        for i in range(lines):
            line_plan_cents = price(1) if i == 0 else price(i + 1) - price(i)
            taxable = max(line_plan_cents, 0) + insurance_unit_cents
            tax_cents += percent_of(taxable, tax_rate)
        add_trace("Taxes", f"{tax_rate:g}% prorated across {lines} line(s)", _money(tax_cents))
    else:
        add_trace("Taxes", "Included in plan price")

    monthly_total_cents = final_plan_cents + device_payment_cents + insurance_cents + tax_cents
    due_today_cents = percent_of(positive_net_cents, tax_rate)
    add_trace("Monthly Total", "Plan + devices + insurance + taxes", _money(monthly_total_cents))
    add_trace("Due Today", f"{tax_rate:g}% tax on net device cost", _money(due_today_cents))

    # --- Promotions ---
    applied_promotions = []

    promotion_discount_cents = 0
    for promo, value in select_plan_promotions(config, promotions, base_plan_cents):
        promotion_discount_cents += value
        applied_promotions.append(AppliedPromotion(
            promotion_id=promo.id, name=promo.name, category=promo.category,
            stacking_group=promo.stacking_group, monthly_discount=to_dollars(value),
        ))
        add_trace("Plan Promotion", promo.name, _money(value))

    bogo_caps = _bogo_reward_caps(config, promotions, device_database)
    bogo_used: dict[str, int] = {}
    promo_credit_cents = 0
    rebate_cents = 0
    service_plan_cents = 0
    service_plan_credit_cents = 0
    active_bts = [p for p in promotions if p.is_active and p.category == PromotionCategory.BTS]

    for device in devices:
        if device.trade_in_type == TradeInSource.PROMO and device.applied_promo_id:
            promo = _find(promotions, device.applied_promo_id)
            if promo is None:
                add_warning(f"Promotion '{device.applied_promo_id}' on device {device.id} not found in catalog")
            elif conditions_met(config, promo.conditions) and promo.trade_in_requirement_met(device):
                capped = False
                if promo.bogo_config:
                    used = bogo_used.get(promo.id, 0)
                    if used >= bogo_caps.get(promo.id, 0):
                        capped = True
                        add_warning(f"{promo.name} needs more qualifying devices to credit device {device.id}")
                    else:
                        bogo_used[promo.id] = used + 1

                if not capped:
                    device_price_cents = to_cents(device.price)
                    monthly_cents = 0
                    one_time_cents = 0
                    for effect in promo.effects:
                        credit = min(device_price_cents, to_cents(effect.value))
                        if effect.type == EffectType.DEVICE_CREDIT_FIXED:
                            months = int(to_number(effect.duration_months)) or DEFAULT_CREDIT_MONTHS
                            monthly_cents += round_half_up(credit / months)
                        elif effect.type == EffectType.DEVICE_INSTANT_REBATE:
                            one_time_cents += credit
                    promo_credit_cents += monthly_cents
                    rebate_cents += one_time_cents
                    applied_promotions.append(AppliedPromotion(
                        promotion_id=promo.id, name=promo.name, category=promo.category,
                        stacking_group=promo.stacking_group, monthly_discount=to_dollars(monthly_cents),
                        one_time_discount=to_dollars(one_time_cents), device_id=device.id,
                    ))
                    add_trace("Device Promotion", f"{promo.name} on device {device.id}",
                              _money(monthly_cents or one_time_cents))
            else:
                add_warning(f"{promo.name} requirements are no longer met for device {device.id}")

        if device.service_plan_id:
            service_plan = _find(service_plans, device.service_plan_id)
            if service_plan is None:
                add_warning(f"Service plan '{device.service_plan_id}' not found in catalog")
            else:
                service_plan_cents += to_cents(service_plan.price)

            if device.category != DeviceCategory.PHONE:
                for promo in active_bts:
                    if not conditions_met(config, promo.conditions):
                        continue
                    credit = sum(
                        to_cents(e.value) for e in promo.effects
                        if e.type == EffectType.SERVICE_PLAN_DISCOUNT_FIXED
                    )
                    service_plan_credit_cents += credit
                    applied_promotions.append(AppliedPromotion(
                        promotion_id=promo.id, name=promo.name, category=promo.category,
                        stacking_group=promo.stacking_group, monthly_discount=to_dollars(credit),
                        device_id=device.id,
                    ))
                    break  # one BTS promotion per device

    # --- Accessories ---
    accessory_monthly_cents = 0
    accessory_due_cents = 0
    accessory_financed_cents = 0
    accessory_down_cents = 0
    for accessory in config.accessories or []:
        quantity = int(to_number(accessory.quantity)) or 1
        cost_cents = to_cents(to_number(accessory.price) * quantity)
        if accessory.payment_type == AccessoryPaymentType.FINANCED:
            down_cents = to_cents(to_number(accessory.down_payment) * quantity)
            principal = cost_cents - down_cents
            accessory_financed_cents += principal
            accessory_down_cents += down_cents
            term = int(to_number(accessory.term)) or DEFAULT_ACCESSORY_TERM
            accessory_monthly_cents += round_half_up(max(principal, 0) / term)
        else:
            accessory_due_cents += cost_cents + percent_of(cost_cents, tax_rate)

    # --- Down payments and equipment credit ---
    device_down_cents = sum(to_cents(d.down_payment) for d in devices)
    amount_to_finance_cents = (
        sum(to_cents(d.price) - to_cents(d.down_payment) for d in devices)
        - rebate_cents + accessory_financed_cents
    )
    credit_limit_cents = equipment_credit_limit(config, lines + sum(1 for d in devices if d.service_plan_id))
    required_down_cents = 0
    if credit_limit_cents is not None:
        required_down_cents = max(0, amount_to_finance_cents - credit_limit_cents)
        if required_down_cents:
            add_trace("Required Down Payment", f"Financing above the {_money(credit_limit_cents)} credit limit",
                      _money(required_down_cents))

    # --- Fees ---
    activation_cents = 0
    if config.fees and config.fees.activation:
        connected = sum(1 for d in devices if d.service_plan_id)
        activation_cents = (lines + connected) * to_cents(ACTIVATION_FEE_PER_LINE)

    net_monthly_cents = (
        monthly_total_cents + service_plan_cents + accessory_monthly_cents
        - promotion_discount_cents - promo_credit_cents - service_plan_credit_cents
    )
    add_trace("Net Monthly", "After promotions, service plans and accessories", _money(net_monthly_cents))

    return CalculatedTotals(
        plan_id=config.plan,
        plan_name=plan.name if plan else '',
        taxes_included=taxes_included,
        lines=lines,
        base_plan_price=to_dollars(base_plan_cents),
        autopay_discount=to_dollars(autopay_cents),
        insider_discount=to_dollars(insider_cents),
        third_line_free_discount=to_dollars(third_line_cents),
        total_discounts=to_dollars(total_discount_cents),
        final_plan_price=to_dollars(final_plan_cents),
        insurance_cost=to_dollars(insurance_cents),
        total_device_cost=to_dollars(total_device_cents),
        total_trade_in=to_dollars(total_trade_in_cents),
        monthly_device_payment=to_dollars(device_payment_cents),
        calculated_taxes=to_dollars(tax_cents),
        monthly_total=to_dollars(monthly_total_cents),
        due_today=to_dollars(due_today_cents),
        promotion_discount=to_dollars(promotion_discount_cents),
        monthly_promo_credit=to_dollars(promo_credit_cents),
        instant_rebate=to_dollars(rebate_cents),
        service_plan_cost=to_dollars(service_plan_cents),
        service_plan_promo_credit=to_dollars(service_plan_credit_cents),
        accessory_monthly_payment=to_dollars(accessory_monthly_cents),
        accessory_due_today=to_dollars(accessory_due_cents),
        activation_fee=to_dollars(activation_cents),
        down_payment=to_dollars(device_down_cents + accessory_down_cents),
        financed_amount=to_dollars(max(amount_to_finance_cents - required_down_cents, 0)),
        required_down_payment=to_dollars(required_down_cents),
        net_monthly_total=to_dollars(net_monthly_cents),
        applied_discounts=tuple(applied_discounts),
        applied_promotions=tuple(applied_promotions),
        warnings=tuple(warnings),
        trace=tuple(trace),
    )


class PricingEngine:
    """
    Quote engine bound to a loaded catalog.

    Thin facade over the pure functions above, used by the API. Reload the
    catalog with `reload_data()` after editing the data files.
    """

    def __init__(self, settings: Optional[Settings] = None, catalog=None):
        """Initialize engine with settings and catalog data."""
        # Local import: the catalog loader depends on engine models
        from ..data.catalog import load_catalog

        self.settings = settings or get_settings()
        self.catalog = catalog or load_catalog(self.settings)

    def reload_data(self):
        """Reload all catalog files from disk."""
        from ..data.catalog import load_catalog

        self.catalog = load_catalog(self.settings)
        logger.info("Catalog reloaded (%s)", self.catalog.catalog_hash)

    def get_promotion(self, promotion_id: str) -> Optional[Promotion]:
        return _find(self.catalog.promotions, promotion_id)

    def calculate(self, config: QuoteConfig) -> CalculatedTotals:
        return calculate_totals(
            config,
            self.catalog.plans,
            self.catalog.insurance_plans,
            self.catalog.discount_settings,
            promotions=self.catalog.promotions,
            device_database=self.catalog.device_database,
            service_plans=self.catalog.service_plans,
        )

    def optimize(self, config: QuoteConfig) -> OptimizationResult:
        return optimize_quote(config, self.catalog.promotions, self.catalog.device_database)

    def classify(self, config: QuoteConfig) -> list[ClassifiedPromotion]:
        return classify_promotions(config, self.catalog.promotions)

    def apply_promotion(self, config: QuoteConfig, promotion_id: str) -> QuoteConfig:
        """Apply a catalog promotion by id. Raises ValueError if unknown."""
        promo = self.get_promotion(promotion_id)
        if promo is None:
            raise ValueError(f"Promotion '{promotion_id}' not found")
        return apply_promotion(config, promo, self.catalog.device_database, self.catalog.service_plans)

    def guidance(self, config: QuoteConfig, placement: Optional[str] = None) -> list[GuidanceItem]:
        return active_guidance(config, self.catalog.guidance_items, placement)
