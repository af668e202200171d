# tests/fakes.py
from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Optional

from moveout.clients import Stores
from moveout.clients.invoices import ExportResult
from moveout.domain.errors import RemoteError
from moveout.domain.models import (
    Asset,
    AssetInspection,
    ContractStatus,
    ContractType,
    CycleStatus,
    DamageCost,
    Invoice,
    InspectionItem,
    InspectionStatus,
    InvoiceStatus,
    Meter,
    MeterReading,
    PricingTier,
    ReadingCycle,
    RentalContract,
    ServiceCode,
)


def contract(
    cid: str,
    *,
    unit_id: str = "u1",
    status: ContractStatus = ContractStatus.ACTIVE,
    start: Optional[date] = date(2025, 1, 1),
    end: Optional[date] = date(2026, 12, 31),
    contract_type: ContractType = ContractType.RENTAL,
) -> RentalContract:
    return RentalContract(
        id=cid,
        unit_id=unit_id,
        contract_type=contract_type,
        status=status,
        start_date=start,
        end_date=end,
        monthly_rent=5_000_000.0,
    )


def tier(order: int, lo: float, hi: Optional[float], price: float, code: ServiceCode = ServiceCode.ELECTRIC) -> PricingTier:
    return PricingTier(service_code=code, tier_order=order, min_quantity=lo, max_quantity=hi, unit_price=price)


# -----------------------------------------------------------------------------
# Stores
# -----------------------------------------------------------------------------


@dataclass
class FakeContracts:
    rows: list[RentalContract] = field(default_factory=list)

    def list_by_unit(self, unit_id: str) -> list[RentalContract]:
        return [c for c in self.rows if c.unit_id == unit_id]

    def get(self, contract_id: str) -> Optional[RentalContract]:
        for c in self.rows:
            if c.id == contract_id:
                return c
        return None


@dataclass
class FakeAssets:
    rows: list[Asset] = field(default_factory=list)

    def list_by_unit(self, unit_id: str) -> list[Asset]:
        return [a for a in self.rows if a.unit_id == unit_id]


class FakeInspections:
    """
    Inspection store that derives items and totals out of band.

    item_lag_reads: reads that still see no items after create/start.
    total_lag_reads: reads that still see the old total after an item write.
    drop_cost_source: store damage costs without their MANUAL/AUTO tag.
    """

    def __init__(
        self,
        assets: FakeAssets,
        invoices: "FakeInvoices",
        *,
        item_lag_reads: int = 0,
        total_lag_reads: int = 0,
        drop_cost_source: bool = False,
    ) -> None:
        self.assets = assets
        self.invoices = invoices
        self.item_lag_reads = item_lag_reads
        self.total_lag_reads = total_lag_reads
        self.drop_cost_source = drop_cost_source
        self.rows: dict[str, AssetInspection] = {}
        self.reads = 0
        self.item_writes: list[tuple[InspectionItem, Optional[bool]]] = []
        self.generate_invoice_error: Optional[RemoteError] = None
        self.invoice_total_override: Optional[float] = None
        # raised by complete(), one per call, before anything changes
        self.complete_errors: list[RemoteError] = []
        self.recalculate_calls = 0
        self.reviews: list[tuple[str, str, Optional[str]]] = []
        self.current_inspector_id: Optional[str] = None
        self.assignments_error: Optional[RemoteError] = None
        self._items_pending: dict[str, int] = {}
        self._total_pending: dict[str, int] = {}
        self._stale_total: dict[str, Optional[float]] = {}
        self._seq = 0

    def seed(self, inspection: AssetInspection) -> AssetInspection:
        self.rows[inspection.id] = inspection
        return inspection

    def _view(self, insp: AssetInspection) -> AssetInspection:
        self.reads += 1
        if self._items_pending.get(insp.id, 0) > 0:
            self._items_pending[insp.id] -= 1
            return replace(insp, items=(), total_damage_cost=None)
        if self._total_pending.get(insp.id, 0) > 0:
            self._total_pending[insp.id] -= 1
            return replace(insp, total_damage_cost=self._stale_total.get(insp.id))
        return replace(insp, total_damage_cost=insp.items_total())

    def create(
        self,
        *,
        contract_id: str,
        unit_id: str,
        inspection_date: Optional[date],
        inspector_name: Optional[str],
        inspector_id: Optional[str] = None,
    ) -> AssetInspection:
        self._seq += 1
        items = tuple(
            InspectionItem(
                id=f"item-{a.id}",
                asset_id=a.id,
                asset_code=a.asset_code,
                asset_name=a.name,
                asset_type=a.asset_type,
                reference_price=a.purchase_price,
            )
            for a in self.assets.list_by_unit(unit_id)
        )
        insp = AssetInspection(
            id=f"insp-{self._seq}",
            contract_id=contract_id,
            unit_id=unit_id,
            status=InspectionStatus.PENDING,
            inspection_date=inspection_date,
            inspector_name=inspector_name,
            inspector_id=inspector_id,
            items=items,
        )
        self.rows[insp.id] = insp
        self._items_pending[insp.id] = self.item_lag_reads
        return replace(insp, items=()) if self.item_lag_reads else insp

    def get(self, inspection_id: str) -> Optional[AssetInspection]:
        insp = self.rows.get(inspection_id)
        return self._view(insp) if insp is not None else None

    def get_by_contract(self, contract_id: str) -> Optional[AssetInspection]:
        for insp in self.rows.values():
            if insp.contract_id == contract_id:
                return self._view(insp)
        return None

    def list_all(
        self,
        *,
        inspector_id: Optional[str] = None,
        status: Optional[InspectionStatus] = None,
    ) -> list[AssetInspection]:
        return [
            self._view(i)
            for i in self.rows.values()
            if (status is None or i.status == status) and (inspector_id is None or i.inspector_id == inspector_id)
        ]

    def list_by_technician(self, technician_id: str) -> list[AssetInspection]:
        return self.list_all(inspector_id=technician_id)

    def my_assignments(self) -> list[AssetInspection]:
        if self.assignments_error is not None:
            raise self.assignments_error
        if self.current_inspector_id is None:
            return []
        return self.list_all(inspector_id=self.current_inspector_id)

    def list_pending_approval(self) -> list[AssetInspection]:
        reviewed = {iid for iid, _, _ in self.reviews}
        return [i for i in self.list_all(status=InspectionStatus.COMPLETED) if i.id not in reviewed]

    def approve(self, inspection_id: str) -> Optional[AssetInspection]:
        self.reviews.append((inspection_id, "approve", None))
        return self.get(inspection_id)

    def reject(self, inspection_id: str, rejection_notes: str) -> Optional[AssetInspection]:
        self.reviews.append((inspection_id, "reject", rejection_notes))
        return self.get(inspection_id)

    def update_item(self, item: InspectionItem, *, checked: Optional[bool] = None) -> Optional[InspectionItem]:
        self.item_writes.append((item, checked))
        stored = replace(item, checked=item.checked if checked is None else bool(checked))
        if self.drop_cost_source and stored.damage_cost is not None:
            stored = replace(stored, damage_cost=DamageCost.auto(stored.damage_cost.amount))
        for iid, insp in self.rows.items():
            if insp.item(item.id) is not None:
                # the published total only moves once the lag has run out
                if self._total_pending.get(iid, 0) == 0:
                    self._stale_total[iid] = insp.items_total()
                self._total_pending[iid] = self.total_lag_reads
                self.rows[iid] = insp.with_items([stored if it.id == item.id else it for it in insp.items])
                return stored
        raise RemoteError(f"inspection item {item.id} not found", status_code=404)

    def _set_status(self, inspection_id: str, status: InspectionStatus, **kw: Any) -> Optional[AssetInspection]:
        insp = self.rows.get(inspection_id)
        if insp is None:
            raise RemoteError(f"inspection {inspection_id} not found", status_code=404)
        self.rows[inspection_id] = replace(insp, status=status, **kw)
        return self._view(self.rows[inspection_id])

    def start(self, inspection_id: str) -> Optional[AssetInspection]:
        return self._set_status(inspection_id, InspectionStatus.IN_PROGRESS)

    def complete(self, inspection_id: str, inspector_notes: Optional[str]) -> Optional[AssetInspection]:
        if self.complete_errors:
            raise self.complete_errors.pop(0)
        return self._set_status(inspection_id, InspectionStatus.COMPLETED, inspector_notes=inspector_notes)

    def cancel(self, inspection_id: str) -> Optional[AssetInspection]:
        return self._set_status(inspection_id, InspectionStatus.CANCELLED)

    def recalculate_damage(self, inspection_id: str) -> Optional[AssetInspection]:
        self.recalculate_calls += 1
        self._total_pending[inspection_id] = 0
        return self.get(inspection_id)

    def generate_invoice(self, inspection_id: str) -> Optional[AssetInspection]:
        if self.generate_invoice_error is not None:
            raise self.generate_invoice_error
        insp = self.rows[inspection_id]
        inv = self.invoices.add(
            Invoice(
                id=f"inv-damage-{inspection_id}",
                unit_id=insp.unit_id,
                cycle_id=None,
                status=InvoiceStatus.PENDING,
                total_amount=insp.items_total() if self.invoice_total_override is None else self.invoice_total_override,
            )
        )
        self.rows[inspection_id] = replace(insp, invoice_id=inv.id)
        return self.get(inspection_id)


@dataclass
class FakeMeters:
    meters: list[Meter] = field(default_factory=list)
    cycles: dict[CycleStatus, list[ReadingCycle]] = field(default_factory=dict)
    assignments: list[dict[str, Any]] = field(default_factory=list)
    failing_meter_ids: set[str] = field(default_factory=set)
    assignment_error: Optional[RemoteError] = None
    readings: list[tuple[MeterReading, Optional[str]]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    def list_by_unit(self, unit_id: str) -> list[Meter]:
        return [m for m in self.meters if m.unit_id == unit_id]

    def list_cycles(self, status: CycleStatus) -> list[ReadingCycle]:
        return list(self.cycles.get(status, []))

    def list_assignments(self, cycle_id: str) -> list[dict[str, Any]]:
        if self.assignment_error is not None:
            raise self.assignment_error
        return [a for a in self.assignments if a.get("cycleId") == cycle_id]

    def create_assignment(self, *, cycle_id: str, building_id: Optional[str], assigned_to: Optional[str] = None) -> dict[str, Any]:
        a = {"id": f"asg-{len(self.assignments) + 1}", "cycleId": cycle_id, "buildingId": building_id, "status": "PENDING"}
        self.assignments.append(a)
        return a

    def create_reading(self, reading: MeterReading, *, assignment_id: Optional[str] = None) -> dict[str, Any]:
        if reading.meter_id in self.failing_meter_ids:
            raise RemoteError(f"reading for meter {reading.meter_id} rejected", status_code=400)
        with self._lock:
            self.readings.append((reading, assignment_id))
        return {"id": f"rd-{reading.meter_id}"}


@dataclass
class FakePricing:
    tiers: list[PricingTier] = field(default_factory=list)
    calls: list[ServiceCode] = field(default_factory=list)

    def active_tiers(self, service_code: ServiceCode, on: date) -> list[PricingTier]:
        self.calls.append(service_code)
        return [t for t in self.tiers if t.service_code == service_code and t.effective_on(on)]


@dataclass
class FakeInvoices:
    rows: list[Invoice] = field(default_factory=list)
    status_error: Optional[RemoteError] = None
    export_error: Optional[RemoteError] = None
    # invoices that appear once a cycle is exported
    on_export: list[Invoice] = field(default_factory=list)
    exported: list[str] = field(default_factory=list)

    def add(self, inv: Invoice) -> Invoice:
        self.rows.append(inv)
        return inv

    def list_by_unit(
        self,
        unit_id: str,
        *,
        service_code: Optional[ServiceCode] = None,
        cycle_id: Optional[str] = None,
    ) -> list[Invoice]:
        out = []
        for inv in self.rows:
            if inv.unit_id != unit_id:
                continue
            if cycle_id is not None and inv.cycle_id != cycle_id:
                continue
            if service_code is not None and service_code.value not in inv.lines:
                continue
            out.append(inv)
        return out

    def get(self, invoice_id: str) -> Optional[Invoice]:
        for inv in self.rows:
            if inv.id == invoice_id:
                return inv
        return None

    def update_status(self, invoice_id: str, status: InvoiceStatus) -> Optional[Invoice]:
        if self.status_error is not None:
            raise self.status_error
        for i, inv in enumerate(self.rows):
            if inv.id == invoice_id:
                self.rows[i] = replace(inv, status=status)
                return self.rows[i]
        raise RemoteError(f"invoice {invoice_id} not found", status_code=404)

    def export_cycle(self, cycle_id: str) -> ExportResult:
        if self.export_error is not None:
            raise self.export_error
        self.exported.append(cycle_id)
        created = [inv for inv in self.on_export if inv.cycle_id == cycle_id]
        self.rows.extend(created)
        self.on_export = [inv for inv in self.on_export if inv.cycle_id != cycle_id]
        return ExportResult(cycle_id=cycle_id, total_readings=0, invoices_created=len(created))


@dataclass
class FakeStores:
    contracts: FakeContracts
    assets: FakeAssets
    inspections: FakeInspections
    meters: FakeMeters
    pricing: FakePricing
    invoices: FakeInvoices

    def as_stores(self) -> Stores:
        return Stores(
            contracts=self.contracts,  # type: ignore[arg-type]
            assets=self.assets,  # type: ignore[arg-type]
            inspections=self.inspections,  # type: ignore[arg-type]
            meters=self.meters,  # type: ignore[arg-type]
            pricing=self.pricing,  # type: ignore[arg-type]
            invoices=self.invoices,  # type: ignore[arg-type]
        )


def make_stores(
    *,
    contracts: Optional[list[RentalContract]] = None,
    assets: Optional[list[Asset]] = None,
    meters: Optional[list[Meter]] = None,
    cycles: Optional[dict[CycleStatus, list[ReadingCycle]]] = None,
    tiers: Optional[list[PricingTier]] = None,
    invoices: Optional[list[Invoice]] = None,
    item_lag_reads: int = 0,
    total_lag_reads: int = 0,
    drop_cost_source: bool = False,
) -> FakeStores:
    a = FakeAssets(list(assets or []))
    inv = FakeInvoices(list(invoices or []))
    return FakeStores(
        contracts=FakeContracts(list(contracts or [])),
        assets=a,
        inspections=FakeInspections(
            a,
            inv,
            item_lag_reads=item_lag_reads,
            total_lag_reads=total_lag_reads,
            drop_cost_source=drop_cost_source,
        ),
        meters=FakeMeters(meters=list(meters or []), cycles=dict(cycles or {})),
        pricing=FakePricing(list(tiers or [])),
        invoices=inv,
    )
