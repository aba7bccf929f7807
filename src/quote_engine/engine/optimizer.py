"""
Promotion Optimizer - Attaches the best device promotions to a quote.

Two greedy passes over a fresh copy of the device list:

1. BOGO matching: for each BOGO promotion in catalog order, pair the
   cheapest eligible devices (which get the credit) with companions taken
   from the expensive end of the same price-sorted pool.
2. Single-device offers: every device not consumed by a BOGO set gets the
   highest-value eligible promotion, if it beats the manual trade-in.

The heuristic is local per promotion, not a global optimum across all
promotions at once.
"""
import copy
import logging
from typing import Optional

from .condition_evaluator import conditions_met
from .models import (
    Device, DeviceDatabase, OptimizationResult, Promotion, PromotionCategory, QuoteConfig,
)
from .money import to_number

logger = logging.getLogger(__name__)


def _is_device_offer(promo: Promotion) -> bool:
    return promo.is_active and promo.category == PromotionCategory.DEVICE


def _index_of(devices: list[Device], device_id: str) -> int:
    for i, device in enumerate(devices):
        if device.id == device_id:
            return i
    return -1


def _attach(devices: list[Device], device: Device, promo: Promotion) -> bool:
    """Credit promo to device inside the working list. True if anything changed."""
    index = _index_of(devices, device.id)
    if index == -1:
        return False
    current = devices[index]
    updated = current.with_promotion(promo.id)
    if updated.promo_state == current.promo_state:
        return False
    devices[index] = updated
    return True


def _match_bogo_sets(
    promo: Promotion,
    config: QuoteConfig,
    devices: list[Device],
    consumed: set[str],
    device_database: Optional[DeviceDatabase],
    result: OptimizationResult,
) -> int:
    """Run one BOGO promotion over the unconsumed devices. Returns changes made."""
    buy_quantity = int(to_number(promo.bogo_config.buy_quantity))
    if buy_quantity < 1:
        result.add_trace("BOGO", f"{promo.name} skipped: invalid buy quantity", str(promo.bogo_config.buy_quantity))
        return 0

    if not conditions_met(config, promo.conditions):
        return 0

    pool = [
        d for d in devices
        if d.id not in consumed and promo.matches_device(d, device_database)
    ]
    pool.sort(key=lambda d: to_number(d.price))

    sets_count = len(pool) // buy_quantity
    if sets_count == 0:
        return 0

    value = promo.device_value()
    changes = 0

    for i in range(sets_count):
        get_device = pool[i]
        if value <= to_number(get_device.trade_in):
            result.add_trace(
                "BOGO", f"{promo.name} not better than manual trade-in on device {get_device.id}",
                f"${value:.2f}",
            )
            continue

        if _attach(devices, get_device, promo):
            changes += 1
        result.add_trace("BOGO", f"{promo.name} credited to device {get_device.id}", f"${value:.2f}")
        consumed.add(get_device.id)

        # Companions mirror the set index from the expensive end of the pool
        for k in range(1, buy_quantity):
            companion = len(pool) - 1 - i - (k - 1)
            if companion > i:
                consumed.add(pool[companion].id)

    return changes


def _best_single_offer(
    device: Device,
    candidates: list[Promotion],
    device_database: Optional[DeviceDatabase],
) -> Optional[Promotion]:
    eligible = [
        p for p in candidates
        if p.matches_device(device, device_database) and p.trade_in_requirement_met(device)
    ]
    if not eligible:
        return None
    # max() keeps the first of equal values, so catalog order breaks ties
    return max(eligible, key=lambda p: p.device_value())


def optimize_quote(
    config: QuoteConfig,
    promotions: list[Promotion],
    device_database: Optional[DeviceDatabase] = None,
) -> OptimizationResult:
    """
    Select device promotions for a quote.

    Args:
        config: Quote configuration (left untouched)
        promotions: Promotion catalog, in priority order
        device_database: Device catalog for tag allowlists

    Returns:
        OptimizationResult with a new config and the number of devices changed
    """
    optimized = copy.deepcopy(config)
    devices = list(optimized.devices)
    result = OptimizationResult(config=optimized)
    consumed: set[str] = set()

    # --- Pass 1: BOGO sets ---
    for promo in promotions:
        if _is_device_offer(promo) and promo.bogo_config:
            result.changes_made += _match_bogo_sets(promo, config, devices, consumed, device_database, result)

    # --- Pass 2: best single-device offer ---
    singles = [
        p for p in promotions
        if _is_device_offer(p) and not p.bogo_config and conditions_met(config, p.conditions)
    ]
    for device in list(devices):
        if device.id in consumed:
            continue

        best = _best_single_offer(device, singles, device_database)
        if best is None:
            continue

        value = best.device_value()
        if value > to_number(device.trade_in):
            if _attach(devices, device, best):
                result.changes_made += 1
                result.add_trace("Device Offer", f"{best.name} credited to device {device.id}", f"${value:.2f}")

    optimized.devices = devices
    logger.debug("Optimization finished with %d change(s)", result.changes_made)
    return result
