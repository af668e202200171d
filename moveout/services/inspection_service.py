# moveout/services/inspection_service.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional

from ..clients import Stores
from ..config import settings
from ..domain.clock import Clock, default_clock
from ..domain.contract_validity import Validity, as_date
from ..domain.errors import (
    CONTRACT_NOT_EXPIRED,
    READING_CYCLE_MISSING,
    NotFoundError,
    PreconditionError,
    RemoteError,
    ValidationError,
    Violation,
)
from ..domain.inspection_workflow import (
    apply_item_update,
    build_readings,
    check_completion,
    ensure_editable,
    ensure_reviewable,
    finalize_items,
    next_status,
    parse_readings,
    rejection_reason,
)
from ..domain.models import (
    AssetInspection,
    InspectionItem,
    InspectionStatus,
    InvoiceStatus,
    ReadingCycle,
    parse_condition,
)
from .contract_service import ContractService
from .manual_costs import ManualCostLedger
from .readings import BatchResult, current_cycle, record_readings, resolve_assignments
from .reconciler import RetryPolicy, has_items, reconcile, total_matches

log = logging.getLogger("moveout.inspections")


@dataclass(frozen=True)
class InspectionSnapshot:
    """An inspection as last read back, plus whether the read-back converged."""

    inspection: AssetInspection
    converged: bool = True
    attempts: int = 0
    cancelled: bool = False


@dataclass(frozen=True)
class ItemUpdate:
    inspection: AssetInspection
    item: InspectionItem
    expected_total: float
    total_converged: bool


@dataclass(frozen=True)
class CompletionResult:
    inspection: AssetInspection
    cycle: Optional[ReadingCycle]
    readings: BatchResult
    expected_total: float
    total_converged: bool
    invoice_id: Optional[str] = None
    invoice_paid: bool = False
    warnings: list[str] = field(default_factory=list)


def _policy_from_settings() -> RetryPolicy:
    return RetryPolicy(max_attempts=settings.reconcile_max_attempts, delay_seconds=settings.reconcile_delay_seconds)


def _item_poll_from_settings() -> RetryPolicy:
    return RetryPolicy(max_attempts=settings.item_poll_max_attempts, delay_seconds=settings.item_poll_delay_seconds)


class InspectionService:
    """
    Move-out asset inspection lifecycle against the remote inspection store.

    Manually typed damage costs are kept in a ManualCostLedger that outlives
    the service instance and are re-applied to every read-back, so a lagging
    or recomputing backend can never replace them with a suggested amount.
    """

    def __init__(
        self,
        stores: Stores,
        *,
        clock: Optional[Clock] = None,
        reconcile_policy: Optional[RetryPolicy] = None,
        item_poll_policy: Optional[RetryPolicy] = None,
        tolerance: Optional[float] = None,
        batch_workers: Optional[int] = None,
        manual_costs: Optional[ManualCostLedger] = None,
    ) -> None:
        self.stores = stores
        self.clock = clock or default_clock()
        self.reconcile_policy = reconcile_policy or _policy_from_settings()
        self.item_poll_policy = item_poll_policy or _item_poll_from_settings()
        self.tolerance = float(tolerance if tolerance is not None else settings.cost_tolerance)
        self.batch_workers = int(batch_workers if batch_workers is not None else settings.reading_batch_workers)
        self.manual_costs = manual_costs if manual_costs is not None else ManualCostLedger()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _with_manual_costs(self, inspection: AssetInspection) -> AssetInspection:
        return self.manual_costs.apply(inspection)

    def _fetch(self, inspection_id: str, contract_id: Optional[str] = None) -> Optional[AssetInspection]:
        """By id first; by contract when the id lookup has not caught up yet."""
        found = self.stores.inspections.get(inspection_id)
        if (found is None or not found.items) and contract_id:
            by_contract = self.stores.inspections.get_by_contract(contract_id)
            if by_contract is not None and by_contract.id == inspection_id:
                found = by_contract
        return self._with_manual_costs(found) if found is not None else None

    def get(self, inspection_id: str) -> AssetInspection:
        found = self._fetch(inspection_id)
        if found is None:
            raise NotFoundError("inspection", inspection_id)
        return found

    def get_by_contract(self, contract_id: str) -> Optional[AssetInspection]:
        found = self.stores.inspections.get_by_contract(contract_id)
        return self._with_manual_costs(found) if found is not None else None

    def _await_items(
        self,
        inspection: AssetInspection,
        policy: RetryPolicy,
        cancel: Optional[threading.Event],
        label: str,
    ) -> InspectionSnapshot:
        if has_items(inspection):
            return InspectionSnapshot(inspection=inspection)
        r = reconcile(
            lambda: self._fetch(inspection.id, inspection.contract_id),
            has_items,
            policy=policy,
            cancel=cancel,
            label=label,
        )
        return InspectionSnapshot(
            inspection=r.value or inspection,
            converged=r.converged,
            attempts=r.attempts,
            cancelled=r.cancelled,
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def create(
        self,
        *,
        contract_id: str,
        unit_id: str,
        inspector_name: str,
        inspection_date: Any = None,
        inspector_id: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> InspectionSnapshot:
        if not (contract_id or "").strip():
            raise ValidationError("contract_id", "contract id is required")
        if not (unit_id or "").strip():
            raise ValidationError("unit_id", "unit id is required")
        if not (inspector_name or "").strip():
            raise ValidationError("inspector_name", "inspector name is required")
        day = as_date(inspection_date) if inspection_date not in (None, "") else self.clock.today()
        if day is None:
            raise ValidationError("inspection_date", f"{inspection_date!r} is not a valid date (YYYY-MM-DD)")

        self._ensure_contract_expired(contract_id, unit_id)

        existing = self.stores.inspections.get_by_contract(contract_id)
        if existing is not None and existing.status != InspectionStatus.CANCELLED:
            log.info("inspection already exists for contract", extra={"contract_id": contract_id, "inspection_id": existing.id})
            return self._await_items(self._with_manual_costs(existing), self.reconcile_policy, cancel, "create.items")

        created = self.stores.inspections.create(
            contract_id=contract_id,
            unit_id=unit_id,
            inspection_date=day,
            inspector_name=inspector_name.strip(),
            inspector_id=inspector_id,
        )
        log.info("inspection created", extra={"contract_id": contract_id, "unit_id": unit_id, "inspection_id": created.id})
        return self._await_items(created, self.reconcile_policy, cancel, "create.items")

    def _ensure_contract_expired(self, contract_id: str, unit_id: str) -> None:
        resolved = ContractService(self.stores, clock=self.clock).unit_validity(unit_id)
        cv = resolved.of(contract_id)
        if cv is None:
            raise NotFoundError("contract", contract_id)
        if cv.validity != Validity.EXPIRED:
            end = cv.contract.end_date.isoformat() if cv.contract.end_date else "open-ended"
            raise PreconditionError(
                [
                    Violation(
                        CONTRACT_NOT_EXPIRED,
                        contract_id,
                        f"contract {contract_id} is {cv.validity.value} (end date {end}); "
                        "a move-out inspection needs an expired contract",
                    )
                ]
            )

    def start(self, inspection_id: str, *, cancel: Optional[threading.Event] = None) -> InspectionSnapshot:
        current = self.get(inspection_id)
        next_status(current.status, "start")

        started = self.stores.inspections.start(inspection_id)
        started = self._with_manual_costs(started) if started is not None else replace(
            current, status=InspectionStatus.IN_PROGRESS
        )
        log.info("inspection started", extra={"inspection_id": inspection_id})
        # item generation can land well after the status change
        return self._await_items(started, self.item_poll_policy, cancel, "start.items")

    def update_item(
        self,
        inspection_id: str,
        item_id: str,
        *,
        condition: Any,
        notes: Optional[str] = None,
        damage_cost: Any = None,
        cancel: Optional[threading.Event] = None,
    ) -> ItemUpdate:
        if not parse_condition(condition).is_set:
            raise ValidationError("condition_status", f"item {item_id}: condition status is required")

        current = self.get(inspection_id)
        ensure_editable(current)
        item = current.item(item_id)
        if item is None:
            raise NotFoundError("inspection item", item_id)
        if item.reference_price is None:
            item = replace(item, reference_price=self._asset_price(current.unit_id, item.asset_id))

        updated = apply_item_update(item, condition=condition, notes=notes, damage_cost=damage_cost)
        self.stores.inspections.update_item(updated)
        if updated.damage_cost is not None and updated.damage_cost.is_manual:
            self.manual_costs.record(inspection_id, item_id, updated.damage_cost.amount)

        local = current.with_items([updated if it.id == item_id else it for it in current.items])
        expected = local.items_total()

        r = reconcile(
            lambda: self._fetch(inspection_id, current.contract_id),
            total_matches(expected, tolerance=self.tolerance),
            policy=self.reconcile_policy,
            cancel=cancel,
            label="update_item.total",
        )
        latest = r.value or local
        return ItemUpdate(
            inspection=latest,
            item=latest.item(item_id) or updated,
            expected_total=expected,
            total_converged=r.converged,
        )

    def _asset_price(self, unit_id: str, asset_id: str) -> Optional[float]:
        """Purchase price from the asset directory, for items read back without one."""
        for a in self.stores.assets.list_by_unit(unit_id):
            if a.id == asset_id:
                return a.purchase_price
        return None

    def cancel(self, inspection_id: str) -> AssetInspection:
        current = self.get(inspection_id)
        next_status(current.status, "cancel")
        cancelled = self.stores.inspections.cancel(inspection_id)
        self.manual_costs.forget(inspection_id)
        log.info("inspection cancelled", extra={"inspection_id": inspection_id})
        if cancelled is None:
            return replace(current, status=InspectionStatus.CANCELLED)
        return self._with_manual_costs(cancelled)

    def complete(
        self,
        inspection_id: str,
        *,
        inspector_notes: Optional[str] = None,
        readings: Optional[Mapping[str, Any]] = None,
        cancel: Optional[threading.Event] = None,
    ) -> CompletionResult:
        """
        IN_PROGRESS -> COMPLETED.

        Every precondition is checked before the first write. Item `checked`
        flags are idempotent writes and go first; meter readings are only
        posted once the store has accepted the transition, so a failed
        completion can be retried without duplicating them. Failures after
        the transition are reported in `readings` / `warnings` and never undo
        the completion.
        """
        current = self.get(inspection_id)
        next_status(current.status, "complete")

        meters = self.stores.meters.list_by_unit(current.unit_id)
        parsed = parse_readings(meters, readings or {})
        check_completion(current, meters=meters, readings=parsed)

        cycle: Optional[ReadingCycle] = None
        if parsed:
            cycle = current_cycle(self.stores.meters)
            if cycle is None:
                raise PreconditionError(
                    [Violation(READING_CYCLE_MISSING, current.unit_id, "no open reading cycle to record meter readings in")]
                )

        # checked=True for every item, carrying the cost the inspector saw
        finalized = finalize_items(current.items)
        for before, after in zip(current.items, finalized):
            if not before.checked:
                self.stores.inspections.update_item(after, checked=True)

        completed = self.stores.inspections.complete(inspection_id, inspector_notes)
        log.info("inspection completed", extra={"inspection_id": inspection_id, "unit_id": current.unit_id})

        warnings: list[str] = []

        batch = BatchResult()
        if cycle is not None:
            assignments = resolve_assignments(self.stores.meters, cycle_id=cycle.id, unit_meters=meters)
            batch = record_readings(
                self.stores.meters,
                build_readings(parsed, cycle_id=cycle.id, reading_date=self.clock.today()),
                building_of={m.id: m.building_id for m in meters},
                assignments=assignments,
                workers=self.batch_workers,
            )
            if batch.notice:
                warnings.append(batch.notice)

        expected = current.with_items(finalized).items_total()
        latest, converged = self._settle_total(current, completed, expected, cancel)

        invoice_id = latest.invoice_id
        invoice_paid = False
        total = float(latest.total_damage_cost if latest.total_damage_cost is not None else expected)
        if total > 0 and not invoice_id:
            invoice_id, invoice_paid = self._invoice_damage(inspection_id, warnings)
            if invoice_id:
                latest = replace(latest, invoice_id=invoice_id)

        return CompletionResult(
            inspection=latest,
            cycle=cycle,
            readings=batch,
            expected_total=expected,
            total_converged=converged,
            invoice_id=invoice_id,
            invoice_paid=invoice_paid,
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Completion follow-ups
    # ------------------------------------------------------------------

    def _settle_total(
        self,
        current: AssetInspection,
        completed: Optional[AssetInspection],
        expected: float,
        cancel: Optional[threading.Event],
    ) -> tuple[AssetInspection, bool]:
        accept = total_matches(expected, tolerance=self.tolerance)
        if completed is not None and accept(completed):
            return self._with_manual_costs(completed), True

        r = reconcile(
            lambda: self._fetch(current.id, current.contract_id),
            accept,
            policy=self.reconcile_policy,
            cancel=cancel,
            label="complete.total",
        )
        if r.converged and r.value is not None:
            return r.value, True

        fallback = r.value or (self._with_manual_costs(completed) if completed else replace(current, status=InspectionStatus.COMPLETED))
        try:
            recalculated = self.stores.inspections.recalculate_damage(current.id)
        except RemoteError as e:
            log.warning("damage recalculation failed: %s", e, extra={"inspection_id": current.id})
            return fallback, False
        if recalculated is None:
            return fallback, False
        recalculated = self._with_manual_costs(recalculated)
        return recalculated, accept(recalculated)

    def _invoice_damage(self, inspection_id: str, warnings: list[str]) -> tuple[Optional[str], bool]:
        """Generate the damage invoice and mark it PAID; damage is collected on the spot."""
        try:
            with_invoice = self.stores.inspections.generate_invoice(inspection_id)
        except RemoteError as e:
            log.warning("damage invoice not generated: %s", e, extra={"inspection_id": inspection_id})
            warnings.append(f"damage invoice could not be generated: {e.message}")
            return None, False

        invoice_id = with_invoice.invoice_id if with_invoice is not None else None
        if not invoice_id:
            warnings.append("damage invoice was requested but no invoice id came back")
            return None, False

        try:
            self.stores.invoices.update_status(invoice_id, InvoiceStatus.PAID)
        except RemoteError as e:
            log.warning(
                "damage invoice created but not marked paid: %s",
                e,
                extra={"inspection_id": inspection_id, "invoice_id": invoice_id},
            )
            warnings.append(f"invoice {invoice_id} was created but could not be marked PAID: {e.message}")
            return invoice_id, False

        log.info("damage invoice paid", extra={"inspection_id": inspection_id, "invoice_id": invoice_id})
        return invoice_id, True

    # ------------------------------------------------------------------
    # Approval
    # ------------------------------------------------------------------

    def pending_approval(self) -> list[AssetInspection]:
        return [self._with_manual_costs(i) for i in self.stores.inspections.list_pending_approval()]

    def approve(self, inspection_id: str) -> AssetInspection:
        current = self.get(inspection_id)
        ensure_reviewable(current, "approve")
        approved = self.stores.inspections.approve(inspection_id)
        log.info("inspection approved", extra={"inspection_id": inspection_id})
        return self._with_manual_costs(approved) if approved is not None else current

    def reject(self, inspection_id: str, rejection_notes: Optional[str]) -> AssetInspection:
        """Send a completed inspection back; a reason is required before anything is read."""
        reason = rejection_reason(rejection_notes)
        current = self.get(inspection_id)
        ensure_reviewable(current, "reject")
        rejected = self.stores.inspections.reject(inspection_id, reason)
        log.info("inspection rejected", extra={"inspection_id": inspection_id})
        return self._with_manual_costs(rejected) if rejected is not None else current

    # ------------------------------------------------------------------
    # Inspector lookups
    # ------------------------------------------------------------------

    def list_inspections(
        self,
        *,
        inspector_id: Optional[str] = None,
        status: Optional[InspectionStatus] = None,
    ) -> list[AssetInspection]:
        rows = self.stores.inspections.list_all(inspector_id=(inspector_id or "").strip() or None, status=status)
        return [self._with_manual_costs(i) for i in rows]

    def by_technician(self, technician_id: str) -> list[AssetInspection]:
        if not (technician_id or "").strip():
            raise ValidationError("technician_id", "technician id is required")
        return [self._with_manual_costs(i) for i in self.stores.inspections.list_by_technician(technician_id.strip())]

    def my_assignments(self) -> list[AssetInspection]:
        return [self._with_manual_costs(i) for i in self.stores.inspections.my_assignments()]
