"""
Promotion Compiler - Validates promotion records and builds Promotion objects.

Reads promotions.json, validates every record, and optionally writes the
normalized catalog back out.
"""
import json
from pathlib import Path
from typing import Any, Optional
from datetime import datetime
from dataclasses import asdict

from ..engine.condition_evaluator import canonical_field
from ..engine.models import (
    BogoConfig, ConditionOperator, DeviceRequirements, EffectType, Promotion,
    PromotionCategory, PromotionCondition, PromotionEffect, StackingGroup, TradeInRequirement,
)


def parse_bool(value: Any, default: bool = False) -> bool:
    """Parse a boolean from JSON or CSV text."""
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('true', '1', 'yes', 'on')


def parse_optional_str(value: Any) -> Optional[str]:
    """Parse optional string (empty = None)."""
    if value is None or str(value).strip() == '':
        return None
    return str(value).strip()


def parse_str_list(value: Any) -> Optional[list[str]]:
    """Accept a list of strings or a pipe-separated string; None if neither."""
    if value is None or value == '':
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split('|') if part.strip()]
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return [v.strip() for v in value if v.strip()]
    return None


def parse_conditions(raw: Any, label: str) -> tuple[list[PromotionCondition], list[str]]:
    """Validate condition records shared by promotions and guidance tips."""
    errors = []
    conditions = []
    if raw is None:
        return [], []
    if not isinstance(raw, list):
        return [], [f"{label}: conditions must be a list"]

    for i, item in enumerate(raw, start=1):
        if not isinstance(item, dict):
            errors.append(f"{label}: condition {i} must be an object")
            continue
        field_name = parse_optional_str(item.get('field'))
        operator = parse_optional_str(item.get('operator'))
        if canonical_field(field_name) is None:
            errors.append(f"{label}: unknown condition field '{field_name}'")
            continue
        if operator not in {op.value for op in ConditionOperator}:
            errors.append(f"{label}: unknown condition operator '{operator}'")
            continue
        conditions.append(PromotionCondition(
            field=field_name,
            operator=operator,
            value=item.get('value'),
            id=parse_optional_str(item.get('id')),
        ))
    return conditions, errors


def _parse_effects(raw: Any, label: str) -> tuple[list[PromotionEffect], list[str]]:
    errors = []
    effects = []
    if not isinstance(raw, list):
        return [], [f"{label}: effects must be a list"]

    valid_types = {t.value for t in EffectType}
    for i, item in enumerate(raw, start=1):
        if not isinstance(item, dict):
            errors.append(f"{label}: effect {i} must be an object")
            continue
        effect_type = parse_optional_str(item.get('type'))
        if effect_type not in valid_types:
            errors.append(f"{label}: unknown effect type '{effect_type}'")
            continue
        try:
            value = float(item.get('value', 0))
        except (TypeError, ValueError):
            errors.append(f"{label}: effect value must be numeric")
            continue
        if value < 0:
            errors.append(f"{label}: effect value must not be negative")
            continue

        duration = item.get('duration_months')
        if duration is not None:
            try:
                duration = int(duration)
            except (TypeError, ValueError):
                errors.append(f"{label}: duration_months must be an integer")
                continue
            if duration < 1:
                errors.append(f"{label}: duration_months must be at least 1")
                continue

        effects.append(PromotionEffect(
            type=EffectType(effect_type),
            value=value,
            duration_months=duration,
            id=parse_optional_str(item.get('id')),
        ))
    return effects, errors


def validate_promotion(row: dict, index: int) -> tuple[Optional[Promotion], list[str]]:
    """
    Validate and parse a promotion from a catalog record.

    Returns (promotion, errors) - promotion is None if validation failed.
    """
    label = f"Promotion {index}"
    errors = []

    if not isinstance(row, dict):
        return None, [f"{label}: must be an object"]

    # Required fields
    promo_id = parse_optional_str(row.get('id'))
    if not promo_id:
        errors.append(f"{label}: id is required")
        return None, errors

    name = parse_optional_str(row.get('name')) or promo_id

    category = parse_optional_str(row.get('category'))
    if category not in {c.value for c in PromotionCategory}:
        errors.append(f"{label}: invalid category '{category}'")
        return None, errors

    stacking_group = parse_optional_str(row.get('stacking_group')) or StackingGroup.OPEN.value
    if stacking_group not in {g.value for g in StackingGroup}:
        errors.append(f"{label}: invalid stacking_group '{stacking_group}'")
        return None, errors

    conditions, condition_errors = parse_conditions(row.get('conditions', []), label)
    errors.extend(condition_errors)

    effects, effect_errors = _parse_effects(row.get('effects', []), label)
    errors.extend(effect_errors)

    # BOGO
    bogo_config = None
    raw_bogo = row.get('bogo_config')
    if raw_bogo:
        try:
            buy_quantity = int(raw_bogo.get('buy_quantity', 2))
        except (AttributeError, TypeError, ValueError):
            # Not an object, or a non-numeric quantity
            buy_quantity = 0
        if buy_quantity < 1:
            errors.append(f"{label}: bogo_config.buy_quantity must be a positive integer")
        else:
            bogo_config = BogoConfig(
                buy_quantity=buy_quantity,
                discount_target=parse_optional_str(raw_bogo.get('discount_target')) or 'lowest_price',
            )

    # Device requirements
    device_requirements = None
    raw_requirements = row.get('device_requirements')
    if raw_requirements and not isinstance(raw_requirements, dict):
        errors.append(f"{label}: device_requirements must be an object")
    elif raw_requirements:
        trade_in = parse_optional_str(raw_requirements.get('trade_in')) or TradeInRequirement.OPTIONAL.value
        if trade_in not in {r.value for r in TradeInRequirement}:
            errors.append(f"{label}: invalid device_requirements.trade_in '{trade_in}'")
        else:
            device_requirements = DeviceRequirements(
                trade_in=TradeInRequirement(trade_in),
                new_line_required=parse_bool(raw_requirements.get('new_line_required')),
                port_in_required=parse_bool(raw_requirements.get('port_in_required')),
            )

    # Allowlists
    allowlists = {}
    for list_field in ('eligible_device_ids', 'eligible_device_tags'):
        parsed = parse_str_list(row.get(list_field))
        if parsed is None:
            errors.append(f"{label}: {list_field} must be a list of strings")
        allowlists[list_field] = parsed or []

    if errors:
        return None, errors

    return Promotion(
        id=promo_id,
        name=name,
        category=PromotionCategory(category),
        description=parse_optional_str(row.get('description')) or "",
        is_active=parse_bool(row.get('is_active'), default=True),
        stacking_group=StackingGroup(stacking_group),
        conditions=conditions,
        effects=effects,
        bogo_config=bogo_config,
        device_requirements=device_requirements,
        spotlight_on_home=parse_bool(row.get('spotlight_on_home')),
        **allowlists,
    ), []


def compile_promotions(
    promotions_json: Path,
    output_json: Optional[Path] = None,
    verbose: bool = False,
) -> tuple[bool, list[Promotion], list[str]]:
    """
    Validate a promotions file, optionally writing the normalized catalog.

    Returns (success, promotions, errors).
    """
    all_errors = []
    promotions = []

    if not promotions_json.exists():
        all_errors.append(f"Promotions file not found: {promotions_json}")
        return False, [], all_errors

    try:
        with open(promotions_json, 'r', encoding='utf-8') as f:
            records = json.load(f)
    except json.JSONDecodeError as e:
        return False, [], [f"Invalid JSON in {promotions_json}: {e}"]

    if not isinstance(records, list):
        return False, [], [f"{promotions_json} must contain a list of promotions"]

    seen_ids = set()
    for index, row in enumerate(records, start=1):
        promo, errors = validate_promotion(row, index)
        if errors:
            all_errors.extend(errors)
        elif promo:
            if promo.id in seen_ids:
                all_errors.append(f"Promotion {index}: duplicate id '{promo.id}'")
                continue
            seen_ids.add(promo.id)
            promotions.append(promo)

    if all_errors:
        if verbose:
            print(f"Promotion compilation failed with {len(all_errors)} error(s):")
            for err in all_errors:
                print(f"  - {err}")
        return False, promotions, all_errors

    if output_json is not None:
        output = {
            "compiled_at": datetime.now().isoformat(),
            "source": str(promotions_json),
            "promotion_count": len(promotions),
            "promotions": [asdict(p) for p in promotions],
        }
        output_json.parent.mkdir(parents=True, exist_ok=True)
        with open(output_json, 'w', encoding='utf-8') as f:
            json.dump(output, f, indent=2, default=str)

    if verbose:
        print(f"✓ Compiled {len(promotions)} promotions")

    return True, promotions, []
