# moveout/clients/meters.py
from __future__ import annotations

from typing import Any, Optional

from ..domain.contract_validity import as_date
from ..domain.models import CycleStatus, Meter, MeterReading, ReadingCycle, parse_cycle_status, parse_service_code
from .base import BackendClient, as_float, as_list, as_str, iso


def meter_from_json(d: dict[str, Any]) -> Meter:
    return Meter(
        id=str(d.get("id")),
        unit_id=str(d.get("unitId") or ""),
        service_code=parse_service_code(d.get("serviceCode") or d.get("meterType")),
        last_reading=as_float(d.get("lastReading")),
        building_id=as_str(d.get("buildingId")),
        meter_code=as_str(d.get("meterCode")),
    )


def cycle_from_json(d: dict[str, Any]) -> ReadingCycle:
    return ReadingCycle(
        id=str(d.get("id")),
        name=as_str(d.get("name")),
        status=parse_cycle_status(d.get("status")),
        period_from=as_date(d.get("periodFrom") or d.get("fromDate")),
        period_to=as_date(d.get("periodTo") or d.get("toDate")),
    )


class MeterClient:
    """Meters, reading cycles, reading assignments and readings."""

    def __init__(self, backend: Optional[BackendClient] = None) -> None:
        self.backend = backend or BackendClient()

    def list_by_unit(self, unit_id: str) -> list[Meter]:
        data = self.backend.get(f"/api/meters/unit/{unit_id}")
        return [meter_from_json(d) for d in as_list(data) if isinstance(d, dict) and d.get("active", True) is not False]

    def list_cycles(self, status: CycleStatus) -> list[ReadingCycle]:
        data = self.backend.get(f"/api/reading-cycles/status/{status.value}")
        return [cycle_from_json(d) for d in as_list(data) if isinstance(d, dict)]

    def list_assignments(self, cycle_id: str) -> list[dict[str, Any]]:
        data = self.backend.get(f"/api/meter-reading-assignments/cycle/{cycle_id}")
        return [d for d in as_list(data) if isinstance(d, dict)]

    def create_assignment(self, *, cycle_id: str, building_id: Optional[str], assigned_to: Optional[str] = None) -> dict[str, Any]:
        payload = {"cycleId": cycle_id, "buildingId": building_id, "assignedTo": assigned_to, "floors": []}
        data = self.backend.post("/api/meter-reading-assignments", json=payload)
        return data if isinstance(data, dict) else {}

    def create_reading(self, reading: MeterReading, *, assignment_id: Optional[str] = None) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "meterId": reading.meter_id,
            "cycleId": reading.cycle_id,
            "reading": reading.curr_index,
            "previousReading": reading.prev_index,
            "readingDate": iso(reading.reading_date),
        }
        if assignment_id:
            payload["assignmentId"] = assignment_id
        data = self.backend.post("/api/meter-readings", json=payload)
        return data if isinstance(data, dict) else {}
