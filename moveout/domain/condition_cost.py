# moveout/domain/condition_cost.py
from __future__ import annotations

import math
from typing import Optional

from .models import ConditionStatus, CostSource, DamageCost

# Share of the asset's purchase price charged per condition. Fixed business rule.
CONDITION_RATES: dict[ConditionStatus, float] = {
    ConditionStatus.GOOD: 0.0,
    ConditionStatus.DAMAGED: 0.30,
    ConditionStatus.REPAIRED: 0.20,
    ConditionStatus.MISSING: 1.0,
    ConditionStatus.REPLACED: 1.0,
}


def _to_price(x: object) -> Optional[float]:
    if x is None:
        return None
    try:
        v = float(x)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return v if v >= 0 else None


def suggest_damage_cost(condition: ConditionStatus, reference_price: object) -> Optional[float]:
    """
    Default damage cost for a condition, or None when it cannot be derived.

    GOOD is always 0, even without a reference price.
    """
    if not condition.is_set:
        return None
    if condition is ConditionStatus.GOOD:
        return 0.0
    price = _to_price(reference_price)
    if price is None:
        return None
    # half-up, whole currency units
    return float(math.floor(price * CONDITION_RATES[condition] + 0.5))


def resolve_damage_cost(
    condition: ConditionStatus,
    reference_price: object,
    *,
    current: Optional[DamageCost] = None,
    override: Optional[float] = None,
) -> Optional[DamageCost]:
    """
    Pick the damage cost to store for an item.

    - an explicit override always wins and is tagged MANUAL
    - an existing MANUAL amount is kept as-is
    - otherwise the suggested amount is used (AUTO); if none can be derived
      the previous AUTO amount is kept
    """
    if override is not None:
        return DamageCost(amount=float(override), source=CostSource.MANUAL)

    if current is not None and current.is_manual:
        return current

    suggested = suggest_damage_cost(condition, reference_price)
    if suggested is None:
        return current
    return DamageCost(amount=suggested, source=CostSource.AUTO)
