# moveout/services/readings.py
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Optional

from ..clients.meters import MeterClient
from ..domain.errors import RemoteError
from ..domain.models import CycleStatus, Meter, MeterReading, ReadingCycle
from ..middleware.request_id import carry_request_id

log = logging.getLogger("moveout.readings")

# Cycles a reading can still be recorded against, most specific first.
RECORDABLE_CYCLE_STATUSES = (CycleStatus.IN_PROGRESS, CycleStatus.OPEN)

_CLOSED_ASSIGNMENT_STATUSES = {"COMPLETED", "CANCELLED"}


@dataclass(frozen=True)
class BatchResult:
    succeeded: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    recorded: list[MeterReading] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.succeeded + self.failed

    @property
    def partial_failure(self) -> bool:
        return self.failed > 0 and self.succeeded > 0

    @property
    def notice(self) -> Optional[str]:
        if self.failed == 0:
            return None
        return f"{self.failed} of {self.attempted} meter readings could not be saved"


def current_cycle(meters: MeterClient) -> Optional[ReadingCycle]:
    for status in RECORDABLE_CYCLE_STATUSES:
        cycles = meters.list_cycles(status)
        if cycles:
            # latest period first
            return sorted(cycles, key=lambda c: c.period_from or date.min, reverse=True)[0]
    return None


def _open_assignment(assignments: Iterable[dict[str, Any]], building_id: Optional[str]) -> Optional[str]:
    for a in assignments:
        status = str(a.get("status") or "").upper()
        if status in _CLOSED_ASSIGNMENT_STATUSES:
            continue
        if building_id is None or str(a.get("buildingId") or "") == building_id:
            return str(a.get("id")) if a.get("id") is not None else None
    return None


def resolve_assignments(
    meters: MeterClient,
    *,
    cycle_id: str,
    unit_meters: Iterable[Meter],
    assigned_to: Optional[str] = None,
) -> dict[Optional[str], Optional[str]]:
    """
    building_id -> reading assignment id for the cycle, creating missing ones.

    Lookup failures leave the building without an assignment; readings are
    then posted without one.
    """
    out: dict[Optional[str], Optional[str]] = {}
    buildings = {m.building_id for m in unit_meters}
    try:
        existing = meters.list_assignments(cycle_id)
    except RemoteError as e:
        log.warning("could not list reading assignments: %s", e, extra={"cycle_id": cycle_id})
        return {b: None for b in buildings}

    for b in buildings:
        aid = _open_assignment(existing, b)
        if aid is None:
            try:
                created = meters.create_assignment(cycle_id=cycle_id, building_id=b, assigned_to=assigned_to)
                aid = str(created.get("id")) if created.get("id") is not None else None
            except RemoteError as e:
                log.warning("could not create reading assignment: %s", e, extra={"cycle_id": cycle_id})
                aid = None
        out[b] = aid
    return out


def record_readings(
    meters: MeterClient,
    readings: list[MeterReading],
    *,
    building_of: dict[str, Optional[str]],
    assignments: dict[Optional[str], Optional[str]],
    workers: int = 4,
) -> BatchResult:
    """
    Post readings concurrently. Failures are counted, not raised.
    """
    if not readings:
        return BatchResult()

    def _one(r: MeterReading) -> MeterReading:
        meters.create_reading(r, assignment_id=assignments.get(building_of.get(r.meter_id)))
        return r

    succeeded: list[MeterReading] = []
    errors: list[str] = []

    with ThreadPoolExecutor(max_workers=max(1, min(int(workers), len(readings)))) as pool:
        one = carry_request_id(_one)
        futures = [(r, pool.submit(one, r)) for r in readings]
        for r, fut in futures:
            try:
                succeeded.append(fut.result())
            except RemoteError as e:
                errors.append(f"meter {r.meter_id}: {e.message}")
                log.warning("reading not saved: %s", e, extra={"meter_id": r.meter_id, "cycle_id": r.cycle_id})

    result = BatchResult(succeeded=len(succeeded), failed=len(errors), errors=errors, recorded=succeeded)
    if result.failed:
        log.warning(
            "meter reading batch finished with failures",
            extra={"succeeded": result.succeeded, "failed": result.failed},
        )
    return result
