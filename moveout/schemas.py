# moveout/schemas.py
from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from .domain.contract_validity import ContractValidity, UnitContractValidity
from .domain.models import AssetInspection, InspectionItem, PricingTier, RentalContract, ServiceCode
from .domain.settlement import Settlement, UtilityLine
from .domain.tiered_rates import TierAudit, TieredQuote


# -------------------- Contracts --------------------

class ContractOut(BaseModel):
    id: str
    unit_id: str
    contract_number: Optional[str] = None
    contract_type: Optional[str] = None
    status: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    monthly_rent: Optional[float] = None


class ContractValidityOut(BaseModel):
    contract: ContractOut
    validity: str
    effectively_active: bool
    days_remaining: Optional[int] = None
    term_days: Optional[int] = None


class UnitValidityOut(BaseModel):
    unit_id: str
    today: date
    occupied: bool
    can_open_new_contract: bool
    latest_expired_rental: Optional[ContractOut] = None
    contracts: list[ContractValidityOut]


class NewContractCheckIn(BaseModel):
    contract_type: str = "RENTAL"
    start_date: str
    end_date: Optional[str] = None


class NewContractCheckOut(BaseModel):
    ok: bool
    start_date: date


def contract_out(c: RentalContract) -> ContractOut:
    return ContractOut(
        id=c.id,
        unit_id=c.unit_id,
        contract_number=c.contract_number,
        contract_type=c.contract_type.value if c.contract_type else None,
        status=c.status.value,
        start_date=c.start_date,
        end_date=c.end_date,
        monthly_rent=c.monthly_rent,
    )


def validity_out(cv: ContractValidity) -> ContractValidityOut:
    return ContractValidityOut(
        contract=contract_out(cv.contract),
        validity=cv.validity.value,
        effectively_active=cv.effectively_active,
        days_remaining=cv.days_remaining,
        term_days=cv.term_days,
    )


def unit_validity_out(unit_id: str, v: UnitContractValidity) -> UnitValidityOut:
    return UnitValidityOut(
        unit_id=unit_id,
        today=v.today,
        occupied=v.occupied,
        can_open_new_contract=v.can_open_new_contract,
        latest_expired_rental=contract_out(v.latest_expired_rental) if v.latest_expired_rental else None,
        contracts=[validity_out(cv) for cv in v.contracts],
    )


# -------------------- Inspections --------------------

class InspectionCreate(BaseModel):
    contract_id: str
    unit_id: str
    inspector_name: str
    inspection_date: Optional[str] = None
    inspector_id: Optional[str] = None


class InspectionItemUpdate(BaseModel):
    condition_status: Optional[str] = None
    notes: Optional[str] = None
    # present => manual amount
    damage_cost: Optional[float] = None


class InspectionComplete(BaseModel):
    inspector_notes: Optional[str] = None
    # meter_id -> current index
    readings: dict[str, float] = Field(default_factory=dict)


class InspectionReject(BaseModel):
    rejection_notes: Optional[str] = None


class DamageCostOut(BaseModel):
    amount: float
    source: str


class InspectionItemOut(BaseModel):
    id: str
    asset_id: str
    asset_code: Optional[str] = None
    asset_name: Optional[str] = None
    asset_type: Optional[str] = None
    condition_status: Optional[str] = None
    damage_cost: Optional[DamageCostOut] = None
    notes: Optional[str] = None
    checked: bool = False
    reference_price: Optional[float] = None


class InspectionOut(BaseModel):
    id: str
    contract_id: str
    unit_id: str
    status: str
    inspection_date: Optional[date] = None
    inspector_name: Optional[str] = None
    inspector_id: Optional[str] = None
    inspector_notes: Optional[str] = None
    total_damage_cost: Optional[float] = None
    items_total: float
    invoice_id: Optional[str] = None
    items: list[InspectionItemOut]
    # False when the read-back did not confirm server-side derived fields
    converged: bool = True


class ReadingBatchOut(BaseModel):
    succeeded: int
    failed: int
    errors: list[str] = Field(default_factory=list)
    notice: Optional[str] = None


def item_out(it: InspectionItem) -> InspectionItemOut:
    return InspectionItemOut(
        id=it.id,
        asset_id=it.asset_id,
        asset_code=it.asset_code,
        asset_name=it.asset_name,
        asset_type=it.asset_type,
        condition_status=it.condition.value if it.condition.is_set else None,
        damage_cost=DamageCostOut(amount=it.damage_cost.amount, source=it.damage_cost.source.value) if it.damage_cost else None,
        notes=it.notes,
        checked=it.checked,
        reference_price=it.reference_price,
    )


def inspection_out(i: AssetInspection, *, converged: bool = True) -> InspectionOut:
    return InspectionOut(
        id=i.id,
        contract_id=i.contract_id,
        unit_id=i.unit_id,
        status=i.status.value,
        inspection_date=i.inspection_date,
        inspector_name=i.inspector_name,
        inspector_id=i.inspector_id,
        inspector_notes=i.inspector_notes,
        total_damage_cost=i.total_damage_cost,
        items_total=i.items_total(),
        invoice_id=i.invoice_id,
        items=[item_out(it) for it in i.items],
        converged=converged,
    )


# -------------------- Pricing --------------------

class TierIn(BaseModel):
    service_code: ServiceCode
    tier_order: int
    min_quantity: float = 0.0
    max_quantity: Optional[float] = None
    unit_price: float
    effective_from: Optional[date] = None
    effective_until: Optional[date] = None
    active: bool = True

    def to_domain(self) -> PricingTier:
        return PricingTier(
            service_code=self.service_code,
            tier_order=self.tier_order,
            min_quantity=self.min_quantity,
            max_quantity=self.max_quantity,
            unit_price=self.unit_price,
            effective_from=self.effective_from,
            effective_until=self.effective_until,
            active=self.active,
        )


class QuoteIn(BaseModel):
    usage: float
    service_code: Optional[ServiceCode] = None
    tiers: list[TierIn]


class TierChargeOut(BaseModel):
    tier_order: int
    quantity: float
    unit_price: float
    amount: float


class QuoteOut(BaseModel):
    service_code: Optional[str] = None
    usage: float
    cost: float
    priced: bool
    unpriced_quantity: float = 0.0
    charges: list[TierChargeOut]


class AuditIn(BaseModel):
    tiers: list[TierIn]
    service_code: Optional[ServiceCode] = None
    on: Optional[date] = None
    # accept 0-50 followed by 51-100 as contiguous
    integer_adjacent: bool = False


class TierGapOut(BaseModel):
    start: float
    end: Optional[float] = None


class TierOverlapOut(BaseModel):
    first_order: int
    second_order: int
    start: float
    end: Optional[float] = None


class AuditOut(BaseModel):
    ok: bool
    tier_count: int
    has_final_tier: bool
    gaps: list[TierGapOut]
    overlaps: list[TierOverlapOut]


def quote_out(q: TieredQuote) -> QuoteOut:
    return QuoteOut(
        service_code=q.service_code.value if q.service_code else None,
        usage=q.usage,
        cost=q.cost,
        priced=q.priced,
        unpriced_quantity=q.unpriced_quantity,
        charges=[TierChargeOut(tier_order=c.tier_order, quantity=c.quantity, unit_price=c.unit_price, amount=c.amount) for c in q.charges],
    )


def audit_out(a: TierAudit) -> AuditOut:
    return AuditOut(
        ok=a.ok,
        tier_count=a.tier_count,
        has_final_tier=a.has_final_tier,
        gaps=[TierGapOut(start=g.start, end=g.end) for g in a.gaps],
        overlaps=[TierOverlapOut(first_order=o.first_order, second_order=o.second_order, start=o.start, end=o.end) for o in a.overlaps],
    )


# -------------------- Settlement --------------------

class UtilityLineOut(BaseModel):
    service_code: str
    amount: float
    source: str
    usage: Optional[float] = None
    invoice_ids: list[str] = Field(default_factory=list)


class SettlementOut(BaseModel):
    unit_id: str
    inspection_id: Optional[str] = None
    damage_total: float
    utility_total: float
    grand_total: float
    is_estimate: bool
    utility_lines: list[UtilityLineOut]
    warnings: list[str] = Field(default_factory=list)


class CompletionOut(BaseModel):
    inspection: InspectionOut
    readings: ReadingBatchOut
    invoice_id: Optional[str] = None
    invoice_paid: bool = False
    warnings: list[str] = Field(default_factory=list)
    settlement: SettlementOut


class UnitSettlementOut(BaseModel):
    unit_id: str
    validity: UnitValidityOut
    inspection: Optional[InspectionOut] = None
    settlement: Optional[SettlementOut] = None


def line_out(l: UtilityLine) -> UtilityLineOut:
    return UtilityLineOut(
        service_code=l.service_code.value,
        amount=l.amount,
        source=l.source.value,
        usage=l.usage,
        invoice_ids=list(l.invoice_ids),
    )


def settlement_out(s: Settlement, *, warnings: Optional[list[str]] = None) -> SettlementOut:
    return SettlementOut(
        unit_id=s.unit_id,
        inspection_id=s.inspection_id,
        damage_total=s.damage_total,
        utility_total=s.utility_total,
        grand_total=s.grand_total,
        is_estimate=s.is_estimate,
        utility_lines=[line_out(l) for l in s.utility_lines],
        warnings=list(warnings or []),
    )
