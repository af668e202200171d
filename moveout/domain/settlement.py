# moveout/domain/settlement.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping, Optional

from .models import AssetInspection, Invoice, InvoiceStatus, MeterReading, PricingTier, ServiceCode
from .tiered_rates import TieredQuote, quote_usage


class UtilitySource(str, Enum):
    INVOICE = "INVOICE"
    ESTIMATE = "ESTIMATE"
    NONE = "NONE"


@dataclass(frozen=True)
class UtilityLine:
    service_code: ServiceCode
    amount: float
    source: UtilitySource
    usage: Optional[float] = None
    invoice_ids: tuple[str, ...] = ()
    quote: Optional[TieredQuote] = None


@dataclass(frozen=True)
class Settlement:
    unit_id: str
    inspection_id: Optional[str]
    damage_total: float
    utility_lines: list[UtilityLine] = field(default_factory=list)

    @property
    def utility_total(self) -> float:
        return float(sum(l.amount for l in self.utility_lines))

    @property
    def grand_total(self) -> float:
        return float(self.damage_total + self.utility_total)

    @property
    def is_estimate(self) -> bool:
        # an estimate is never persisted as a final figure
        return any(l.source == UtilitySource.ESTIMATE for l in self.utility_lines)


def damage_total(inspection: Optional[AssetInspection]) -> float:
    """Server total when present, otherwise the sum of item costs."""
    if inspection is None:
        return 0.0
    if inspection.total_damage_cost is not None:
        return float(inspection.total_damage_cost)
    return inspection.items_total()


def usage_by_service(readings: Iterable[MeterReading], service_of: Mapping[str, ServiceCode]) -> dict[ServiceCode, float]:
    out: dict[ServiceCode, float] = {}
    for r in readings:
        code = service_of.get(r.meter_id)
        if code is None:
            continue
        # negative usage is never billed
        out[code] = out.get(code, 0.0) + max(0.0, r.usage)
    return out


def utility_line(
    service_code: ServiceCode,
    *,
    invoices: Iterable[Invoice] = (),
    usage: Optional[float] = None,
    tiers: Iterable[PricingTier] = (),
    exclude_invoice_ids: Iterable[str] = (),
) -> UtilityLine:
    excluded = set(exclude_invoice_ids)
    confirmed = [
        inv for inv in invoices
        if inv.id not in excluded and inv.status != InvoiceStatus.CANCELLED
    ]
    if confirmed:
        return UtilityLine(
            service_code=service_code,
            amount=float(sum(float(inv.total_amount) for inv in confirmed)),
            source=UtilitySource.INVOICE,
            usage=usage,
            invoice_ids=tuple(inv.id for inv in confirmed),
        )

    if usage is None:
        return UtilityLine(service_code=service_code, amount=0.0, source=UtilitySource.NONE)

    q = quote_usage(usage, tiers, service_code=service_code)
    return UtilityLine(
        service_code=service_code,
        amount=q.cost,
        source=UtilitySource.ESTIMATE,
        usage=q.usage,
        quote=q,
    )


def aggregate_settlement(
    *,
    unit_id: str,
    inspection: Optional[AssetInspection],
    invoices_by_service: Mapping[ServiceCode, Iterable[Invoice]],
    usage: Mapping[ServiceCode, float],
    tiers_by_service: Mapping[ServiceCode, Iterable[PricingTier]],
) -> Settlement:
    exclude = [inspection.invoice_id] if (inspection is not None and inspection.invoice_id) else []
    codes = sorted(set(invoices_by_service) | set(usage), key=lambda c: c.value)

    lines = [
        utility_line(
            code,
            invoices=list(invoices_by_service.get(code, ())),
            usage=usage.get(code),
            tiers=list(tiers_by_service.get(code, ())),
            exclude_invoice_ids=exclude,
        )
        for code in codes
    ]

    return Settlement(
        unit_id=unit_id,
        inspection_id=inspection.id if inspection is not None else None,
        damage_total=damage_total(inspection),
        utility_lines=lines,
    )
