"""
Catalog Loader - Reads plan, device and promotion data for the engine.

CSV tables (plans, insurance, service plans) are read with pandas as
strings and parsed explicitly; list columns are pipe-separated. Devices,
promotions and guidance tips are JSON documents.
"""
import hashlib
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import pandas as pd

from ..config.settings import Settings, get_settings
from ..engine.guidance import GuidanceItem, GuidancePlacement, GuidanceStyle
from ..engine.models import (
    CustomerType, DeviceCategory, DeviceDatabase, DeviceModel, DeviceVariant, DiscountSettings,
    InsurancePlan, PlanDetails, PricingModel, Promotion, QuoteConfig, QuoteDiscounts, ServicePlan,
)
from .promotion_compiler import compile_promotions, parse_bool, parse_conditions

logger = logging.getLogger(__name__)


def get_file_hash(path: Path) -> str:
    """Get SHA256 hash of a file."""
    if not path.exists():
        return ""
    with open(path, 'rb') as f:
        return hashlib.sha256(f.read()).hexdigest()[:12]


@dataclass
class Catalog:
    """Everything the engine reads: plans, devices, promotions and tips."""
    plans: list[PlanDetails] = field(default_factory=list)
    insurance_plans: list[InsurancePlan] = field(default_factory=list)
    service_plans: list[ServicePlan] = field(default_factory=list)
    device_database: DeviceDatabase = field(default_factory=DeviceDatabase)
    promotions: list[Promotion] = field(default_factory=list)
    guidance_items: list[GuidanceItem] = field(default_factory=list)
    discount_settings: DiscountSettings = field(default_factory=DiscountSettings)
    default_tax_rate: float = 6.0
    catalog_hash: str = ""


def _read_table(path: Path) -> pd.DataFrame:
    if not path.exists():
        raise FileNotFoundError(f"Catalog file not found: {path}")
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    df.columns = df.columns.str.strip()
    return df.apply(lambda col: col.str.strip())


def _split(value: str) -> list[str]:
    return [part.strip() for part in value.split('|') if part.strip()]


def _float(value: str, default: float = 0.0) -> float:
    return float(value) if value else default


def _int(value: str, default: int = 0) -> int:
    return int(float(value)) if value else default


def load_plans(path: Path) -> list[PlanDetails]:
    df = _read_table(path)
    plans = []
    for _, row in df.iterrows():
        plans.append(PlanDetails(
            id=row['id'],
            name=row['name'] or row['id'],
            pricing_model=PricingModel(row.get('pricing_model') or PricingModel.TIERED.value),
            tiered_prices=[float(p) for p in _split(row.get('tiered_prices', ''))],
            first_line_price=_float(row.get('first_line_price', '')),
            additional_line_price=_float(row.get('additional_line_price', '')),
            max_lines=_int(row.get('max_lines', ''), default=12),
            available_for=[CustomerType(c) for c in _split(row.get('available_for', ''))],
            taxes_included=parse_bool(row.get('taxes_included')),
            features=_split(row.get('features', '')),
            allowed_discounts={
                'insider': parse_bool(row.get('allows_insider'), default=True),
                'third_line_free': parse_bool(row.get('allows_third_line_free'), default=True),
            },
        ))
    return plans


def load_insurance_plans(path: Path) -> list[InsurancePlan]:
    df = _read_table(path)
    return [
        InsurancePlan(
            id=row['id'],
            name=row['name'] or row['id'],
            price=_float(row['price']),
            supported_categories=[DeviceCategory(c) for c in _split(row.get('supported_categories', ''))],
        )
        for _, row in df.iterrows()
    ]


def load_service_plans(path: Path) -> list[ServicePlan]:
    df = _read_table(path)
    return [
        ServicePlan(
            id=row['id'],
            name=row['name'] or row['id'],
            price=_float(row['price']),
            device_category=DeviceCategory(row['device_category']),
            features=_split(row.get('features', '')),
            is_popular=parse_bool(row.get('is_popular')),
        )
        for _, row in df.iterrows()
    ]


def _load_json(path: Path):
    if not path.exists():
        raise FileNotFoundError(f"Catalog file not found: {path}")
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def load_device_database(path: Path) -> DeviceDatabase:
    data = _load_json(path)
    devices = []
    for item in data.get('devices', []):
        devices.append(DeviceModel(
            id=item['id'],
            name=item.get('name', item['id']),
            category=DeviceCategory(item.get('category', DeviceCategory.PHONE.value)),
            manufacturer=item.get('manufacturer', ''),
            default_term_months=int(item.get('default_term_months', 24)),
            tags=list(item.get('tags', [])),
            variants=[
                DeviceVariant(
                    sku=v['sku'],
                    price=float(v.get('price', 0)),
                    storage=v.get('storage'),
                    color=v.get('color'),
                )
                for v in item.get('variants', [])
            ],
        ))
    return DeviceDatabase(devices=devices)


def load_guidance(path: Path) -> list[GuidanceItem]:
    """Guidance tips are optional; a missing file means no tips."""
    if not path.exists():
        logger.warning("Guidance file not found: %s", path)
        return []

    items = []
    for index, item in enumerate(_load_json(path), start=1):
        conditions, errors = parse_conditions(item.get('conditions', []), f"Guidance {index}")
        if errors:
            raise ValueError("; ".join(errors))
        items.append(GuidanceItem(
            id=item['id'],
            title=item.get('title', ''),
            message=item.get('message', ''),
            placement=GuidancePlacement(item.get('placement', GuidancePlacement.HOME_PAGE.value)),
            style=GuidanceStyle(item.get('style', GuidanceStyle.INFO.value)),
            is_active=parse_bool(item.get('is_active'), default=True),
            conditions=conditions,
        ))
    return items


def load_catalog(settings: Optional[Settings] = None) -> Catalog:
    """
    Load the full catalog from the configured data directory.

    Raises:
        FileNotFoundError: A required catalog file is missing
        ValueError: The promotions or guidance files fail validation
    """
    settings = settings or get_settings()

    success, promotions, errors = compile_promotions(settings.promotions_json)
    if not success:
        if not settings.promotions_json.exists():
            raise FileNotFoundError(f"Catalog file not found: {settings.promotions_json}")
        raise ValueError("Invalid promotions catalog: " + "; ".join(errors))

    sources = [
        settings.plans_csv, settings.insurance_csv, settings.service_plans_csv,
        settings.devices_json, settings.promotions_json, settings.guidance_json,
    ]
    combined = "".join(get_file_hash(p) for p in sources)

    catalog = Catalog(
        plans=load_plans(settings.plans_csv),
        insurance_plans=load_insurance_plans(settings.insurance_csv),
        service_plans=load_service_plans(settings.service_plans_csv),
        device_database=load_device_database(settings.devices_json),
        promotions=promotions,
        guidance_items=load_guidance(settings.guidance_json),
        discount_settings=DiscountSettings(
            autopay=settings.autopay_discount,
            insider=settings.insider_percent,
            third_line_free=settings.third_line_free_enabled,
        ),
        default_tax_rate=settings.default_tax_rate,
        catalog_hash=hashlib.sha256(combined.encode()).hexdigest()[:12],
    )

    logger.info(
        "Loaded catalog %s: %d plans, %d devices, %d promotions",
        catalog.catalog_hash, len(catalog.plans), len(catalog.device_database.devices), len(catalog.promotions),
    )
    return catalog


def create_initial_config(plans: list[PlanDetails], tax_rate: float = 6.0) -> QuoteConfig:
    """Blank quote on the first plan sold to standard customers."""
    default_plan = next((p for p in plans if CustomerType.STANDARD in p.available_for), None)
    if default_plan is None and plans:
        default_plan = plans[0]
    return QuoteConfig(
        customer_type=CustomerType.STANDARD,
        plan=default_plan.id if default_plan else '',
        lines=1,
        discounts=QuoteDiscounts(autopay=True, insider=False, third_line_free=False),
        insurance_tier='none',
        tax_rate=tax_rate,
        max_ec=6500.0,
        per_line_ec=1500.0,
    )
