# moveout/domain/models.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Any, Optional


# -----------------------------------------------------------------------------
# Closed vocabularies
# -----------------------------------------------------------------------------
# The backend ships these as loose strings. Everything entering the engine is
# parsed into one of these enums; unknown or blank values never leak through.
# -----------------------------------------------------------------------------


class ContractType(str, Enum):
    RENTAL = "RENTAL"
    PURCHASE = "PURCHASE"


class ContractStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    INACTIVE = "INACTIVE"
    EXPIRED = "EXPIRED"


class InspectionStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ConditionStatus(str, Enum):
    # UNSET is not a business value; it never goes over the wire.
    UNSET = ""
    GOOD = "GOOD"
    DAMAGED = "DAMAGED"
    MISSING = "MISSING"
    REPAIRED = "REPAIRED"
    REPLACED = "REPLACED"

    @property
    def is_set(self) -> bool:
        return self is not ConditionStatus.UNSET


class CostSource(str, Enum):
    AUTO = "AUTO"
    MANUAL = "MANUAL"


class ServiceCode(str, Enum):
    WATER = "WATER"
    ELECTRIC = "ELECTRIC"


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class CycleStatus(str, Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CLOSED = "CLOSED"


def _parse_enum(enum_cls: type[Enum], raw: Any, default: Any = None) -> Any:
    if isinstance(raw, enum_cls):
        return raw
    s = (str(raw) if raw is not None else "").strip().upper()
    for member in enum_cls:
        if member.value == s:
            return member
    return default


def parse_contract_type(raw: Any) -> Optional[ContractType]:
    return _parse_enum(ContractType, raw)


def parse_contract_status(raw: Any) -> ContractStatus:
    # Unknown statuses are treated as INACTIVE: they never keep a unit occupied.
    return _parse_enum(ContractStatus, raw, ContractStatus.INACTIVE)


def parse_inspection_status(raw: Any) -> InspectionStatus:
    return _parse_enum(InspectionStatus, raw, InspectionStatus.PENDING)


def parse_condition(raw: Any) -> ConditionStatus:
    return _parse_enum(ConditionStatus, raw, ConditionStatus.UNSET)


def parse_service_code(raw: Any) -> Optional[ServiceCode]:
    return _parse_enum(ServiceCode, raw)


def parse_invoice_status(raw: Any) -> InvoiceStatus:
    return _parse_enum(InvoiceStatus, raw, InvoiceStatus.PENDING)


def parse_cycle_status(raw: Any) -> Optional[CycleStatus]:
    return _parse_enum(CycleStatus, raw)


# -----------------------------------------------------------------------------
# Contracts / assets
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class RentalContract:
    id: str
    unit_id: str
    contract_type: Optional[ContractType]
    status: ContractStatus
    start_date: Optional[date]
    end_date: Optional[date]
    monthly_rent: Optional[float] = None
    contract_number: Optional[str] = None


@dataclass(frozen=True)
class Asset:
    id: str
    unit_id: str
    asset_type: Optional[str] = None
    asset_code: Optional[str] = None
    name: Optional[str] = None
    purchase_price: Optional[float] = None
    active: bool = True


# -----------------------------------------------------------------------------
# Inspection
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class DamageCost:
    """
    A damage amount plus where it came from.

    MANUAL amounts were typed by the inspector and are never replaced by a
    suggested value; AUTO amounts may be recomputed when the condition changes.
    """

    amount: float
    source: CostSource = CostSource.AUTO

    @property
    def is_manual(self) -> bool:
        return self.source is CostSource.MANUAL

    @classmethod
    def manual(cls, amount: float) -> "DamageCost":
        return cls(amount=float(amount), source=CostSource.MANUAL)

    @classmethod
    def auto(cls, amount: float) -> "DamageCost":
        return cls(amount=float(amount), source=CostSource.AUTO)


@dataclass(frozen=True)
class InspectionItem:
    id: str
    asset_id: str
    asset_code: Optional[str] = None
    asset_name: Optional[str] = None
    asset_type: Optional[str] = None
    condition: ConditionStatus = ConditionStatus.UNSET
    damage_cost: Optional[DamageCost] = None
    notes: Optional[str] = None
    checked: bool = False
    reference_price: Optional[float] = None

    @property
    def label(self) -> str:
        return self.asset_name or self.asset_code or self.asset_id or self.id

    @property
    def cost_amount(self) -> float:
        return float(self.damage_cost.amount) if self.damage_cost is not None else 0.0


@dataclass(frozen=True)
class AssetInspection:
    id: str
    contract_id: str
    unit_id: str
    status: InspectionStatus
    inspection_date: Optional[date] = None
    inspector_name: Optional[str] = None
    inspector_id: Optional[str] = None
    inspector_notes: Optional[str] = None
    total_damage_cost: Optional[float] = None
    invoice_id: Optional[str] = None
    items: tuple[InspectionItem, ...] = ()

    def item(self, item_id: str) -> Optional[InspectionItem]:
        for it in self.items:
            if it.id == item_id:
                return it
        return None

    def items_total(self) -> float:
        return float(sum(it.cost_amount for it in self.items))

    def with_items(self, items: list[InspectionItem]) -> "AssetInspection":
        return replace(self, items=tuple(items))


# -----------------------------------------------------------------------------
# Meters / pricing / invoices
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Meter:
    id: str
    unit_id: str
    service_code: Optional[ServiceCode]
    last_reading: Optional[float] = None
    building_id: Optional[str] = None
    meter_code: Optional[str] = None

    @property
    def label(self) -> str:
        return self.meter_code or self.id


@dataclass(frozen=True)
class MeterReading:
    meter_id: str
    cycle_id: str
    prev_index: float
    curr_index: float
    reading_date: date

    @property
    def usage(self) -> float:
        return float(self.curr_index) - float(self.prev_index)


@dataclass(frozen=True)
class ReadingCycle:
    id: str
    name: Optional[str]
    status: Optional[CycleStatus]
    period_from: Optional[date] = None
    period_to: Optional[date] = None


@dataclass(frozen=True)
class PricingTier:
    service_code: ServiceCode
    tier_order: int
    min_quantity: float
    max_quantity: Optional[float]
    unit_price: float
    effective_from: Optional[date] = None
    effective_until: Optional[date] = None
    active: bool = True

    @property
    def is_final(self) -> bool:
        return self.max_quantity is None

    @property
    def width(self) -> Optional[float]:
        if self.max_quantity is None:
            return None
        return max(0.0, float(self.max_quantity) - float(self.min_quantity))

    def effective_on(self, on: date) -> bool:
        if not self.active:
            return False
        if self.effective_from is not None and self.effective_from > on:
            return False
        if self.effective_until is not None and self.effective_until < on:
            return False
        return True


@dataclass(frozen=True)
class Invoice:
    id: str
    unit_id: str
    cycle_id: Optional[str]
    status: InvoiceStatus
    total_amount: float
    lines: dict[str, float] = field(default_factory=dict)
