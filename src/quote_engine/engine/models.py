"""
Data models for the quote engine.

Uses dataclasses for structured, type-safe data representation. Enum values
match the strings used in the catalog files so JSON round-trips unchanged.
"""
from dataclasses import dataclass, field, asdict, replace
from enum import Enum
from typing import Any, Optional

from .money import to_number


class CustomerType(str, Enum):
    STANDARD = 'standard'
    MILITARY_FR = 'military-fr'
    PLUS_55 = 'plus-55'


class DeviceCategory(str, Enum):
    PHONE = 'Phone'
    WATCH = 'Watch'
    TABLET = 'Tablet'
    TRACKER = 'Tracker'


class AccessoryPaymentType(str, Enum):
    FULL = 'full'
    FINANCED = 'financed'


class TradeInSource(str, Enum):
    """Provenance of a device's trade-in credit."""
    MANUAL = 'manual'
    PROMO = 'promo'


class PricingModel(str, Enum):
    TIERED = 'tiered'
    PER_LINE = 'per_line'


class PromotionCategory(str, Enum):
    PLAN = 'Plan'
    DEVICE = 'Device'
    BTS = 'BTS'
    ACCESSORY = 'Accessory'
    ACCOUNT = 'Account'


class StackingGroup(str, Enum):
    """Promotions in the same group are mutually exclusive, except OPEN."""
    PLAN_DISCOUNT = 'PlanDiscount'
    DEVICE_OFFER = 'DeviceOffer'
    BTS_OFFER = 'BtsOffer'
    OPEN = 'Open'


class TradeInRequirement(str, Enum):
    REQUIRED = 'Required'
    NOT_ALLOWED = 'NotAllowed'
    OPTIONAL = 'Optional'


class ConditionOperator(str, Enum):
    EQUALS = 'EQUALS'
    NOT_EQUALS = 'NOT_EQUALS'
    GREATER_THAN_OR_EQUAL = 'GREATER_THAN_OR_EQUAL'
    LESS_THAN_OR_EQUAL = 'LESS_THAN_OR_EQUAL'
    INCLUDES = 'INCLUDES'


class ConditionField(str, Enum):
    """Quote attributes a promotion or guidance condition may test."""
    CUSTOMER_TYPE = 'customerType'
    PLAN = 'plan'
    LINES = 'lines'
    DEVICE_COUNT = 'devices.length'
    ACCESSORY_COUNT = 'accessories.length'
    TAX_RATE = 'taxRate'
    INSURANCE_TIER = 'insuranceTier'
    AUTOPAY = 'discounts.autopay'
    INSIDER = 'discounts.insider'
    THIRD_LINE_FREE = 'discounts.thirdLineFree'
    ACTIVATION_FEE = 'fees.activation'
    CUSTOMER_NAME = 'customerName'
    CUSTOMER_PHONE = 'customerPhone'


class EffectType(str, Enum):
    PLAN_DISCOUNT_PERCENTAGE = 'PLAN_DISCOUNT_PERCENTAGE'
    PLAN_DISCOUNT_FIXED = 'PLAN_DISCOUNT_FIXED'
    DEVICE_CREDIT_FIXED = 'DEVICE_CREDIT_FIXED'
    DEVICE_INSTANT_REBATE = 'DEVICE_INSTANT_REBATE'
    SERVICE_PLAN_DISCOUNT_FIXED = 'SERVICE_PLAN_DISCOUNT_FIXED'


class EligibilityStatus(str, Enum):
    ELIGIBLE = 'eligible'
    LOCKED = 'locked'
    HIDDEN = 'hidden'


# Effect kinds that count toward a device's fixed promotional value
DEVICE_VALUE_EFFECTS = frozenset({EffectType.DEVICE_CREDIT_FIXED, EffectType.DEVICE_INSTANT_REBATE})


@dataclass
class TraceStep:
    """A single step in a calculation or optimization trace."""
    step: str
    description: str
    value: Optional[str] = None


# ---------------------------------------------------------------------------
# Quote configuration
# ---------------------------------------------------------------------------

@dataclass
class Device:
    """One financed or BYOD handset/wearable on the quote."""
    id: str
    category: DeviceCategory = DeviceCategory.PHONE
    model_id: Optional[str] = None
    variant_sku: Optional[str] = None
    price: float = 0.0
    trade_in: float = 0.0  # manually entered trade-in dollars
    trade_in_type: TradeInSource = TradeInSource.MANUAL
    applied_promo_id: Optional[str] = None
    term: int = 24
    down_payment: float = 0.0
    service_plan_id: Optional[str] = None
    insurance_id: Optional[str] = None
    is_byod: bool = False

    @property
    def promo_state(self) -> tuple[str, Optional[str]]:
        """(trade-in source, applied promotion) pair used for change detection."""
        source = self.trade_in_type.value if isinstance(self.trade_in_type, Enum) else str(self.trade_in_type)
        return source, self.applied_promo_id

    def with_promotion(self, promotion_id: str) -> 'Device':
        """Return a copy of this device crediting the given promotion."""
        return replace(self, trade_in_type=TradeInSource.PROMO, applied_promo_id=promotion_id)


@dataclass
class Accessory:
    """An accessory line item, paid in full or financed."""
    id: str
    name: str = ''
    price: float = 0.0
    quantity: int = 1
    payment_type: AccessoryPaymentType = AccessoryPaymentType.FULL
    term: int = 12
    down_payment: float = 0.0


@dataclass
class QuoteDiscounts:
    autopay: bool = True
    insider: bool = False
    third_line_free: bool = False


@dataclass
class QuoteFees:
    activation: bool = False


@dataclass
class QuoteConfig:
    """The mutable working document a rep edits while building a quote."""
    customer_name: str = ''
    customer_phone: str = ''
    customer_type: CustomerType = CustomerType.STANDARD
    plan: str = ''
    lines: int = 1
    devices: list[Device] = field(default_factory=list)
    accessories: list[Accessory] = field(default_factory=list)
    discounts: QuoteDiscounts = field(default_factory=QuoteDiscounts)
    fees: QuoteFees = field(default_factory=QuoteFees)
    insurance_tier: str = 'none'  # insurance plan id or "none"
    tax_rate: float = 0.0  # percent
    max_ec: float = 0.0  # account equipment credit cap, 0 = none
    per_line_ec: float = 0.0  # equipment credit per line, 0 = none
    notes: Optional[str] = None


# ---------------------------------------------------------------------------
# Catalog entities (read-only to the engine)
# ---------------------------------------------------------------------------

@dataclass
class PlanDetails:
    """A rate plan and its pricing table."""
    id: str
    name: str
    pricing_model: PricingModel = PricingModel.TIERED
    tiered_prices: list[float] = field(default_factory=list)  # cumulative price for N lines
    first_line_price: float = 0.0
    additional_line_price: float = 0.0
    max_lines: int = 12
    available_for: list[CustomerType] = field(default_factory=list)
    taxes_included: bool = False
    features: list[str] = field(default_factory=list)
    allowed_discounts: dict[str, bool] = field(default_factory=dict)

    def price_for_lines(self, lines: int) -> float:
        """Total plan price for a line count; 0 when the table has no entry."""
        if lines < 1:
            return 0.0
        if self.pricing_model == PricingModel.PER_LINE:
            return to_number(self.first_line_price) + (lines - 1) * to_number(self.additional_line_price)
        if lines <= len(self.tiered_prices):
            return to_number(self.tiered_prices[lines - 1])
        return 0.0


@dataclass
class InsurancePlan:
    id: str
    name: str
    price: float = 0.0
    supported_categories: list[DeviceCategory] = field(default_factory=list)


@dataclass
class ServicePlan:
    """Connected-device service plan (watch, tablet, tracker lines)."""
    id: str
    name: str
    price: float = 0.0
    device_category: DeviceCategory = DeviceCategory.WATCH
    features: list[str] = field(default_factory=list)
    is_popular: bool = False


@dataclass
class DiscountSettings:
    autopay: float = 5.0  # dollars per line
    insider: float = 20.0  # percent of base plan price
    third_line_free: bool = True  # store-level gate for the 3rd line offer


@dataclass
class DeviceVariant:
    sku: str
    price: float = 0.0
    storage: Optional[int] = None
    color: Optional[str] = None


@dataclass
class DeviceModel:
    """A catalog device model with its tags and purchasable variants."""
    id: str
    name: str
    category: DeviceCategory = DeviceCategory.PHONE
    manufacturer: str = ''
    default_term_months: int = 24
    tags: list[str] = field(default_factory=list)
    variants: list[DeviceVariant] = field(default_factory=list)


@dataclass
class DeviceDatabase:
    devices: list[DeviceModel] = field(default_factory=list)

    def find(self, model_id: Optional[str]) -> Optional[DeviceModel]:
        """Look up a model by id; None when absent."""
        if not model_id:
            return None
        for model in self.devices:
            if model.id == model_id:
                return model
        return None


# ---------------------------------------------------------------------------
# Promotions
# ---------------------------------------------------------------------------

@dataclass
class PromotionCondition:
    """A field/operator/value predicate. Operator is kept raw so unknown
    operators from the catalog survive loading and simply evaluate false."""
    field: str
    operator: str
    value: Any = None
    id: Optional[str] = None


@dataclass
class PromotionEffect:
    type: EffectType
    value: float = 0.0
    duration_months: Optional[int] = None
    id: Optional[str] = None


@dataclass
class BogoConfig:
    buy_quantity: int = 2
    discount_target: str = 'lowest_price'


@dataclass
class DeviceRequirements:
    trade_in: TradeInRequirement = TradeInRequirement.OPTIONAL
    new_line_required: bool = False
    port_in_required: bool = False


@dataclass
class Promotion:
    """A catalog promotion with its eligibility rules and effects."""
    id: str
    name: str
    category: PromotionCategory
    description: str = ''
    is_active: bool = True
    stacking_group: StackingGroup = StackingGroup.OPEN
    conditions: list[PromotionCondition] = field(default_factory=list)
    effects: list[PromotionEffect] = field(default_factory=list)
    bogo_config: Optional[BogoConfig] = None
    device_requirements: Optional[DeviceRequirements] = None
    eligible_device_ids: list[str] = field(default_factory=list)
    eligible_device_tags: list[str] = field(default_factory=list)
    spotlight_on_home: bool = False

    @property
    def has_device_allowlist(self) -> bool:
        return bool(self.eligible_device_ids) or bool(self.eligible_device_tags)

    def matches_device(self, device: Device, device_database: Optional[DeviceDatabase]) -> bool:
        """
        Check the device-model allowlist.

        Promotions without an allowlist match every device. Id matches work
        on the device's model id alone; tag matches need the catalog model.
        """
        if not self.has_device_allowlist:
            return True
        if device.model_id and device.model_id in self.eligible_device_ids:
            return True
        if self.eligible_device_tags and device_database is not None:
            model = device_database.find(device.model_id)
            if model and any(tag in self.eligible_device_tags for tag in model.tags):
                return True
        return False

    def trade_in_requirement_met(self, device: Device) -> bool:
        if self.device_requirements is None:
            return True
        trade_in = to_number(device.trade_in)
        requirement = self.device_requirements.trade_in
        if requirement == TradeInRequirement.REQUIRED and trade_in <= 0:
            return False
        if requirement == TradeInRequirement.NOT_ALLOWED and trade_in > 0:
            return False
        return True

    def device_value(self) -> float:
        """Fixed monetary value to a device: credits plus instant rebates."""
        return sum(to_number(e.value) for e in self.effects if e.type in DEVICE_VALUE_EFFECTS)


@dataclass(frozen=True)
class PromotionEligibility:
    status: EligibilityStatus
    reasons: tuple[str, ...] = ()


@dataclass(frozen=True)
class ClassifiedPromotion:
    promotion: Promotion
    eligibility: PromotionEligibility


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class OptimizationResult:
    """A new config with promotions attached, plus what changed."""
    config: QuoteConfig
    changes_made: int = 0
    trace: list[TraceStep] = field(default_factory=list)

    def add_trace(self, step: str, description: str, value: str = None):
        self.trace.append(TraceStep(step=step, description=description, value=value))


@dataclass(frozen=True)
class AppliedPromotion:
    """A promotion that actually contributed to the totals."""
    promotion_id: str
    name: str
    category: PromotionCategory
    stacking_group: StackingGroup
    monthly_discount: float = 0.0
    one_time_discount: float = 0.0
    device_id: Optional[str] = None


@dataclass(frozen=True)
class CalculatedTotals:
    """
    Immutable pricing snapshot for one configuration.

    All amounts are in dollars, rounded to cents.
    """
    plan_id: str
    plan_name: str
    taxes_included: bool
    lines: int

    # Monthly plan
    base_plan_price: float
    autopay_discount: float
    insider_discount: float
    third_line_free_discount: float
    total_discounts: float
    final_plan_price: float

    # Monthly add-ons
    insurance_cost: float
    total_device_cost: float
    total_trade_in: float
    monthly_device_payment: float

    # Totals
    calculated_taxes: float
    monthly_total: float
    due_today: float

    # Promotions, service plans, accessories and fees
    promotion_discount: float = 0.0
    monthly_promo_credit: float = 0.0
    instant_rebate: float = 0.0
    service_plan_cost: float = 0.0
    service_plan_promo_credit: float = 0.0
    accessory_monthly_payment: float = 0.0
    accessory_due_today: float = 0.0
    activation_fee: float = 0.0
    down_payment: float = 0.0  # optional, chosen per device and financed accessory
    financed_amount: float = 0.0
    required_down_payment: float = 0.0  # financing above the equipment credit limit
    net_monthly_total: float = 0.0

    applied_discounts: tuple[str, ...] = ()
    applied_promotions: tuple[AppliedPromotion, ...] = ()
    warnings: tuple[str, ...] = ()
    trace: tuple[TraceStep, ...] = ()

    def get_trace_text(self) -> str:
        """Get human-readable trace as formatted text."""
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"• {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"• {t.step}: {t.description}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        """Plain dict snapshot for storing alongside a quote version."""
        return asdict(self)
