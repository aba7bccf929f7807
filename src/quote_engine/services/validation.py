"""
Quote Validation Service - Checks incoming quote payloads before pricing.

Payloads use the camelCase keys the front end sends (snake_case is accepted
too). Schema violations are errors; catalog mismatches and broken promotion
bookkeeping on devices are warnings.
"""
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..engine.models import (
    Accessory, AccessoryPaymentType, CustomerType, Device, DeviceCategory, PlanDetails,
    QuoteConfig, QuoteDiscounts, QuoteFees, TradeInSource,
)


class _Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DeviceSchema(_Schema):
    id: str
    category: DeviceCategory = DeviceCategory.PHONE
    model_id: Optional[str] = None
    variant_sku: Optional[str] = None
    price: float = Field(default=0.0, ge=0)
    trade_in: float = Field(default=0.0, ge=0)
    trade_in_type: TradeInSource = TradeInSource.MANUAL
    applied_promo_id: Optional[str] = None
    term: int = Field(default=24, gt=0)
    down_payment: float = Field(default=0.0, ge=0)
    service_plan_id: Optional[str] = None
    insurance_id: Optional[str] = None
    is_byod: bool = False

    def to_device(self) -> Device:
        return Device(**self.model_dump())


class AccessorySchema(_Schema):
    id: str
    name: str = Field(min_length=1)
    price: float = Field(default=0.0, ge=0)
    quantity: int = Field(default=1, gt=0)
    payment_type: AccessoryPaymentType = AccessoryPaymentType.FULL
    term: int = Field(default=12, gt=0)
    down_payment: float = Field(default=0.0, ge=0)

    def to_accessory(self) -> Accessory:
        return Accessory(**self.model_dump())


class DiscountsSchema(_Schema):
    autopay: bool = True
    insider: bool = False
    third_line_free: bool = False


class FeesSchema(_Schema):
    activation: bool = False


class QuoteConfigSchema(_Schema):
    customer_name: str = ''
    customer_phone: str = ''
    customer_type: CustomerType = CustomerType.STANDARD
    plan: str = Field(min_length=1)
    lines: int = Field(default=1, ge=1)
    devices: list[DeviceSchema] = Field(default_factory=list)
    accessories: list[AccessorySchema] = Field(default_factory=list)
    discounts: DiscountsSchema = Field(default_factory=DiscountsSchema)
    fees: FeesSchema = Field(default_factory=FeesSchema)
    insurance_tier: str = 'none'
    tax_rate: float = Field(default=0.0, ge=0)
    max_ec: float = Field(default=0.0, ge=0, alias='maxEC')
    per_line_ec: float = Field(default=0.0, ge=0, alias='perLineEC')
    notes: Optional[str] = None

    def to_config(self) -> QuoteConfig:
        return QuoteConfig(
            customer_name=self.customer_name,
            customer_phone=self.customer_phone,
            customer_type=self.customer_type,
            plan=self.plan,
            lines=self.lines,
            devices=[d.to_device() for d in self.devices],
            accessories=[a.to_accessory() for a in self.accessories],
            discounts=QuoteDiscounts(**self.discounts.model_dump()),
            fees=QuoteFees(**self.fees.model_dump()),
            insurance_tier=self.insurance_tier,
            tax_rate=self.tax_rate,
            max_ec=self.max_ec,
            per_line_ec=self.per_line_ec,
            notes=self.notes,
        )

    @classmethod
    def from_config(cls, config: QuoteConfig) -> 'QuoteConfigSchema':
        return cls.model_validate(config, from_attributes=True)


@dataclass
class ValidationResult:
    """Result of quote validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def format_errors(error: ValidationError) -> list[str]:
    """Flatten pydantic errors into "path: message" strings."""
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item['loc'])
        messages.append(f"{location}: {item['msg']}" if location else item['msg'])
    return messages


def parse_config(payload: dict[str, Any]) -> QuoteConfig:
    """
    Build a QuoteConfig from a request payload.

    Raises:
        pydantic.ValidationError: If the payload does not match the schema
    """
    return QuoteConfigSchema.model_validate(payload).to_config()


def config_to_payload(config: QuoteConfig) -> dict[str, Any]:
    """camelCase JSON view of a config, the inverse of parse_config."""
    return QuoteConfigSchema.from_config(config).model_dump(by_alias=True, mode='json')


def validate_config(payload: dict[str, Any], plans: Optional[list[PlanDetails]] = None) -> ValidationResult:
    """Validate a quote payload, optionally against the plan catalog."""
    result = ValidationResult(valid=True)

    try:
        schema = QuoteConfigSchema.model_validate(payload)
    except ValidationError as e:
        result.valid = False
        result.errors.extend(format_errors(e))
        return result

    for device in schema.devices:
        if device.trade_in_type == TradeInSource.PROMO and not device.applied_promo_id:
            result.warnings.append(f"Device {device.id}: promo trade-in has no applied promotion")
        if device.trade_in_type == TradeInSource.MANUAL and device.applied_promo_id:
            result.warnings.append(f"Device {device.id}: promotion '{device.applied_promo_id}' set on a manual trade-in")
        if device.trade_in > device.price:
            result.warnings.append(f"Device {device.id}: trade-in exceeds device price")

    if plans is not None:
        plan = next((p for p in plans if p.id == schema.plan), None)
        if plan is None:
            result.warnings.append(f"Plan '{schema.plan}' not found in catalog")
        else:
            if schema.lines > plan.max_lines:
                result.warnings.append(f"{plan.name} supports at most {plan.max_lines} lines")
            if plan.available_for and schema.customer_type not in plan.available_for:
                result.warnings.append(f"{plan.name} is not offered to {schema.customer_type.value} customers")

    return result
