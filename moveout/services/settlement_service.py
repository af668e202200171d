# moveout/services/settlement_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..clients import Stores
from ..clients.invoices import ExportResult
from ..domain.clock import Clock, default_clock
from ..domain.contract_validity import UnitContractValidity
from ..domain.errors import NotFoundError, RemoteError
from ..domain.models import AssetInspection, Invoice, Meter, MeterReading, PricingTier, ReadingCycle, ServiceCode
from ..domain.settlement import Settlement, aggregate_settlement, usage_by_service
from .contract_service import ContractService
from .inspection_service import CompletionResult
from .readings import current_cycle

log = logging.getLogger("moveout.settlement")


@dataclass(frozen=True)
class SettlementOutcome:
    settlement: Settlement
    cycle_id: Optional[str] = None
    export: Optional[ExportResult] = None
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class UnitSettlement:
    unit_id: str
    validity: UnitContractValidity
    inspection: Optional[AssetInspection]
    outcome: Optional[SettlementOutcome]


class SettlementService:
    """
    Damage total + utility cost for a move-out.

    Utility cost comes from confirmed invoices of the active reading cycle when
    they exist, otherwise from the tier calculator over the readings at hand,
    flagged as an estimate.
    """

    def __init__(self, stores: Stores, *, clock: Optional[Clock] = None) -> None:
        self.stores = stores
        self.clock = clock or default_clock()

    def _invoices(self, unit_id: str, codes: Iterable[ServiceCode], cycle_id: Optional[str]) -> dict[ServiceCode, list[Invoice]]:
        out: dict[ServiceCode, list[Invoice]] = {}
        for code in codes:
            invoices = self.stores.invoices.list_by_unit(unit_id, service_code=code, cycle_id=cycle_id)
            # the store may ignore the cycle filter
            out[code] = [inv for inv in invoices if cycle_id is None or inv.cycle_id in (None, cycle_id)]
        return out

    def _tiers(self, codes: Iterable[ServiceCode]) -> dict[ServiceCode, list[PricingTier]]:
        today = self.clock.today()
        return {code: self.stores.pricing.active_tiers(code, today) for code in codes}

    def settle(
        self,
        *,
        unit_id: str,
        inspection: Optional[AssetInspection],
        readings: Iterable[MeterReading] = (),
        cycle: Optional[ReadingCycle] = None,
        meters: Optional[list[Meter]] = None,
    ) -> Settlement:
        unit_meters = meters if meters is not None else self.stores.meters.list_by_unit(unit_id)
        service_of = {m.id: m.service_code for m in unit_meters if m.service_code is not None}
        codes = sorted(set(service_of.values()), key=lambda c: c.value)

        usage = usage_by_service(readings, service_of)
        invoices = self._invoices(unit_id, codes, cycle.id if cycle is not None else None)

        # tiers are only needed for services that fall back to an estimate
        need_estimate = [c for c in codes if not invoices.get(c) and c in usage]
        tiers = self._tiers(need_estimate)

        s = aggregate_settlement(
            unit_id=unit_id,
            inspection=inspection,
            invoices_by_service=invoices,
            usage=usage,
            tiers_by_service=tiers,
        )
        log.info(
            "settlement computed",
            extra={"unit_id": unit_id, "inspection_id": s.inspection_id, "cycle_id": cycle.id if cycle else None},
        )
        return s

    def settle_completion(self, result: CompletionResult) -> SettlementOutcome:
        """
        Settle right after an inspection completes.

        Readings recorded during completion are exported for their cycle first
        so utility invoices exist; a failed export leaves the utility part as an
        estimate.
        """
        inspection = result.inspection
        warnings: list[str] = []
        export: Optional[ExportResult] = None

        if result.cycle is not None and result.readings.succeeded > 0:
            try:
                export = self.stores.invoices.export_cycle(result.cycle.id)
                log.info(
                    "readings exported",
                    extra={"cycle_id": result.cycle.id, "unit_id": inspection.unit_id},
                )
            except RemoteError as e:
                log.warning("readings export failed: %s", e, extra={"cycle_id": result.cycle.id})
                warnings.append(f"meter readings could not be exported for invoicing: {e.message}")

        settlement = self.settle(
            unit_id=inspection.unit_id,
            inspection=inspection,
            readings=result.readings.recorded,
            cycle=result.cycle,
        )
        return SettlementOutcome(
            settlement=settlement,
            cycle_id=result.cycle.id if result.cycle else None,
            export=export,
            warnings=warnings,
        )

    def settle_inspection(self, inspection_id: str) -> SettlementOutcome:
        inspection = self.stores.inspections.get(inspection_id)
        if inspection is None:
            raise NotFoundError("inspection", inspection_id)
        cycle = current_cycle(self.stores.meters)
        s = self.settle(unit_id=inspection.unit_id, inspection=inspection, cycle=cycle)
        return SettlementOutcome(settlement=s, cycle_id=cycle.id if cycle else None)

    def settle_unit(self, unit_id: str, contracts: Optional[ContractService] = None) -> UnitSettlement:
        """Move-out overview: latest expired rental contract, its inspection, the settlement."""
        validity = (contracts or ContractService(self.stores, clock=self.clock)).unit_validity(unit_id)
        target = validity.latest_expired_rental
        if target is None:
            return UnitSettlement(unit_id=unit_id, validity=validity, inspection=None, outcome=None)

        inspection = self.stores.inspections.get_by_contract(target.id)
        cycle = current_cycle(self.stores.meters)
        s = self.settle(unit_id=unit_id, inspection=inspection, cycle=cycle)
        return UnitSettlement(
            unit_id=unit_id,
            validity=validity,
            inspection=inspection,
            outcome=SettlementOutcome(settlement=s, cycle_id=cycle.id if cycle else None),
        )
