# moveout/domain/tiered_rates.py
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

from .errors import ValidationError
from .models import PricingTier, ServiceCode


# -----------------------------------------------------------------------------
# Progressive (graduated) tariff
# -----------------------------------------------------------------------------
# Tiers are applied in tier_order. Each tier prices at most its own band width
# (max_quantity - min_quantity); the unbounded last tier takes whatever is
# left. Usage that lands exactly on a band boundary never spills over.
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class TierCharge:
    tier_order: int
    quantity: float
    unit_price: float
    amount: float


@dataclass(frozen=True)
class TieredQuote:
    service_code: Optional[ServiceCode]
    usage: float
    cost: float
    charges: list[TierCharge] = field(default_factory=list)
    unpriced_quantity: float = 0.0
    priced: bool = True


def _usage(value: object) -> float:
    try:
        v = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ValidationError("usage", f"usage must be a number, got {value!r}")
    if math.isnan(v) or math.isinf(v):
        raise ValidationError("usage", "usage must be a finite number")
    return v


def select_tiers(
    tiers: Iterable[PricingTier],
    *,
    service_code: Optional[ServiceCode] = None,
    on: Optional[date] = None,
) -> list[PricingTier]:
    """Tiers for one service (and effective date, when given) in application order."""
    out = []
    for t in tiers:
        if service_code is not None and t.service_code != service_code:
            continue
        if on is not None and not t.effective_on(on):
            continue
        out.append(t)
    return sorted(out, key=lambda t: (int(t.tier_order), float(t.min_quantity)))


def quote_usage(usage: object, tiers: Iterable[PricingTier], *, service_code: Optional[ServiceCode] = None) -> TieredQuote:
    u = _usage(usage)
    ordered = select_tiers(tiers, service_code=service_code)

    if u <= 0:
        return TieredQuote(service_code=service_code, usage=u, cost=0.0, priced=bool(ordered))

    if not ordered:
        # pricing not configured yet
        return TieredQuote(service_code=service_code, usage=u, cost=0.0, unpriced_quantity=u, priced=False)

    remaining = u
    total = 0.0
    charges: list[TierCharge] = []

    for t in ordered:
        if remaining <= 0:
            break
        width = t.width
        take = remaining if width is None else min(remaining, width)
        if take <= 0:
            continue
        amount = take * float(t.unit_price)
        charges.append(TierCharge(tier_order=int(t.tier_order), quantity=take, unit_price=float(t.unit_price), amount=amount))
        total += amount
        remaining -= take

    return TieredQuote(
        service_code=service_code,
        usage=u,
        cost=float(total),
        charges=charges,
        unpriced_quantity=max(0.0, remaining),
    )


def compute_tiered_cost(usage: object, tiers: Iterable[PricingTier]) -> float:
    return quote_usage(usage, tiers).cost


# -----------------------------------------------------------------------------
# Tier configuration audit
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class TierGap:
    start: float
    end: Optional[float]  # None: a final (unbounded) tier is missing past `start`


@dataclass(frozen=True)
class TierOverlap:
    first_order: int
    second_order: int
    start: float
    end: Optional[float]


@dataclass(frozen=True)
class TierAudit:
    service_code: Optional[ServiceCode]
    tier_count: int
    gaps: list[TierGap]
    overlaps: list[TierOverlap]
    has_final_tier: bool

    @property
    def ok(self) -> bool:
        return self.tier_count > 0 and not self.gaps and not self.overlaps and self.has_final_tier


def _upper(t: PricingTier) -> float:
    return math.inf if t.max_quantity is None else float(t.max_quantity)


def audit_tiers(
    tiers: Iterable[PricingTier],
    *,
    service_code: Optional[ServiceCode] = None,
    on: Optional[date] = None,
    integer_adjacent: bool = False,
) -> TierAudit:
    """
    Check that the bands effective on `on` tile [0, inf) exactly.

    Bands are half-open [min, max): a tier ending at 100 and the next one
    starting at 100 are contiguous. With `integer_adjacent` a band may also
    start one unit after the previous one ends (0-50 then 51-100), the way
    whole-unit tariffs are usually written down.
    """
    active = select_tiers(tiers, service_code=service_code, on=on)
    by_min = sorted(active, key=lambda t: (float(t.min_quantity), _upper(t)))

    gaps: list[TierGap] = []
    overlaps: list[TierOverlap] = []

    if by_min and float(by_min[0].min_quantity) > 0:
        gaps.append(TierGap(start=0.0, end=float(by_min[0].min_quantity)))

    for i, cur in enumerate(by_min):
        for other in by_min[i + 1:]:
            lo = max(float(cur.min_quantity), float(other.min_quantity))
            hi = min(_upper(cur), _upper(other))
            if lo < hi:
                overlaps.append(
                    TierOverlap(
                        first_order=int(cur.tier_order),
                        second_order=int(other.tier_order),
                        start=lo,
                        end=None if math.isinf(hi) else hi,
                    )
                )

    step = 1.0 if integer_adjacent else 0.0
    for cur, nxt in zip(by_min, by_min[1:]):
        if cur.max_quantity is not None and float(nxt.min_quantity) > float(cur.max_quantity) + step:
            gaps.append(TierGap(start=float(cur.max_quantity), end=float(nxt.min_quantity)))

    has_final = any(t.is_final for t in by_min)
    if by_min and not has_final:
        top = max(float(t.max_quantity) for t in by_min if t.max_quantity is not None)
        gaps.append(TierGap(start=top, end=None))

    return TierAudit(
        service_code=service_code,
        tier_count=len(by_min),
        gaps=gaps,
        overlaps=overlaps,
        has_final_tier=has_final,
    )
