# moveout/clients/invoices.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from ..domain.models import Invoice, InvoiceStatus, ServiceCode, parse_invoice_status, parse_service_code
from .base import BackendClient, as_float, as_list, as_str


def invoice_from_json(d: dict[str, Any]) -> Invoice:
    lines: dict[str, float] = {}
    for ln in d.get("lines") or []:
        if not isinstance(ln, dict):
            continue
        code = as_str(ln.get("serviceCode")) or "OTHER"
        amt = as_float(ln.get("lineTotal", ln.get("amount"))) or 0.0
        lines[code] = lines.get(code, 0.0) + amt

    total = as_float(d.get("totalAmount"))
    return Invoice(
        id=str(d.get("id")),
        unit_id=str(d.get("unitId") or ""),
        cycle_id=as_str(d.get("cycleId")),
        status=parse_invoice_status(d.get("status")),
        total_amount=total if total is not None else float(sum(lines.values())),
        lines=lines,
    )


@dataclass(frozen=True)
class ExportResult:
    cycle_id: str
    total_readings: int
    invoices_created: int
    message: Optional[str] = None


class InvoiceClient:
    def __init__(self, backend: Optional[BackendClient] = None) -> None:
        self.backend = backend or BackendClient()

    def list_by_unit(
        self,
        unit_id: str,
        *,
        service_code: Optional[ServiceCode] = None,
        cycle_id: Optional[str] = None,
    ) -> list[Invoice]:
        params: dict[str, Any] = {}
        if service_code is not None:
            params["serviceCode"] = service_code.value
        if cycle_id:
            params["cycleId"] = cycle_id
        data = self.backend.get(f"/api/invoices/unit/{unit_id}", params=params or None)
        return [invoice_from_json(d) for d in as_list(data) if isinstance(d, dict)]

    def get(self, invoice_id: str) -> Optional[Invoice]:
        data = self.backend.get_or_none(f"/api/invoices/{invoice_id}")
        return invoice_from_json(data) if isinstance(data, dict) else None

    def update_status(self, invoice_id: str, status: InvoiceStatus) -> Optional[Invoice]:
        data = self.backend.put(f"/api/invoices/{invoice_id}/status", params={"status": status.value})
        return invoice_from_json(data) if isinstance(data, dict) else None

    def export_cycle(self, cycle_id: str) -> ExportResult:
        data = self.backend.post(f"/api/meter-readings/export/cycle/{cycle_id}")
        d = data if isinstance(data, dict) else {}
        return ExportResult(
            cycle_id=cycle_id,
            total_readings=int(d.get("totalReadings") or 0),
            invoices_created=int(d.get("invoicesCreated") or 0),
            message=as_str(d.get("message")),
        )
