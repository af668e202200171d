# moveout/clients/inspections.py
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from ..domain.contract_validity import as_date
from ..domain.errors import RemoteError
from ..domain.models import (
    AssetInspection,
    CostSource,
    DamageCost,
    InspectionItem,
    InspectionStatus,
    parse_condition,
    parse_inspection_status,
)
from .base import BackendClient, as_float, as_list, as_str, iso


def item_from_json(d: dict[str, Any]) -> InspectionItem:
    amount = as_float(d.get("damageCost"))
    source = CostSource.MANUAL if str(d.get("damageCostSource") or "").upper() == "MANUAL" else CostSource.AUTO
    return InspectionItem(
        id=str(d.get("id")),
        asset_id=str(d.get("assetId") or ""),
        asset_code=as_str(d.get("assetCode")),
        asset_name=as_str(d.get("assetName")),
        asset_type=as_str(d.get("assetType")),
        condition=parse_condition(d.get("conditionStatus")),
        damage_cost=DamageCost(amount=amount, source=source) if amount is not None else None,
        notes=as_str(d.get("notes")),
        checked=bool(d.get("checked") or False),
        reference_price=as_float(d.get("purchasePrice")),
    )


def inspection_from_json(d: dict[str, Any]) -> AssetInspection:
    items = [item_from_json(x) for x in (d.get("items") or []) if isinstance(x, dict)]
    return AssetInspection(
        id=str(d.get("id")),
        contract_id=str(d.get("contractId") or ""),
        unit_id=str(d.get("unitId") or ""),
        status=parse_inspection_status(d.get("status")),
        inspection_date=as_date(d.get("inspectionDate")),
        inspector_name=as_str(d.get("inspectorName")),
        inspector_id=as_str(d.get("inspectorId")),
        inspector_notes=as_str(d.get("inspectorNotes")),
        total_damage_cost=as_float(d.get("totalDamageCost")),
        invoice_id=as_str(d.get("invoiceId")),
        items=tuple(items),
    )


def _inspection(data: Any) -> Optional[AssetInspection]:
    return inspection_from_json(data) if isinstance(data, dict) else None


class InspectionClient:
    """Asset-inspection store. Derived fields (items, totals) may lag behind writes."""

    prefix = "/api/asset-inspections"

    def __init__(self, backend: Optional[BackendClient] = None) -> None:
        self.backend = backend or BackendClient()

    def create(
        self,
        *,
        contract_id: str,
        unit_id: str,
        inspection_date: Optional[date],
        inspector_name: Optional[str],
        inspector_id: Optional[str] = None,
    ) -> AssetInspection:
        payload: dict[str, Any] = {
            "contractId": contract_id,
            "unitId": unit_id,
            "inspectionDate": iso(inspection_date),
            "inspectorName": inspector_name,
        }
        if inspector_id:
            payload["inspectorId"] = inspector_id
        return inspection_from_json(self.backend.post(self.prefix, json=payload))

    def get(self, inspection_id: str) -> Optional[AssetInspection]:
        return _inspection(self.backend.get_or_none(f"{self.prefix}/{inspection_id}"))

    def get_by_contract(self, contract_id: str) -> Optional[AssetInspection]:
        return _inspection(self.backend.get_or_none(f"{self.prefix}/contract/{contract_id}"))

    def _list(self, path: str, params: Optional[dict[str, Any]] = None) -> list[AssetInspection]:
        data = self.backend.get(path, params=params)
        return [inspection_from_json(d) for d in as_list(data) if isinstance(d, dict)]

    def list_all(
        self,
        *,
        inspector_id: Optional[str] = None,
        status: Optional[InspectionStatus] = None,
    ) -> list[AssetInspection]:
        params: dict[str, Any] = {}
        if inspector_id:
            params["inspectorId"] = inspector_id
        if status is not None:
            params["status"] = status.value
        return self._list(self.prefix, params or None)

    def list_by_technician(self, technician_id: str) -> list[AssetInspection]:
        return self._list(f"{self.prefix}/technician/{technician_id}")

    def my_assignments(self) -> list[AssetInspection]:
        """Inspections assigned to the caller; an unauthenticated caller has none."""
        try:
            return self._list(f"{self.prefix}/my-assignments")
        except RemoteError as e:
            if e.status_code in (401, 403):
                return []
            raise

    def list_pending_approval(self) -> list[AssetInspection]:
        return self._list(f"{self.prefix}/pending-approval")

    def approve(self, inspection_id: str) -> Optional[AssetInspection]:
        return _inspection(self.backend.post(f"{self.prefix}/{inspection_id}/approve"))

    def reject(self, inspection_id: str, rejection_notes: str) -> Optional[AssetInspection]:
        return _inspection(
            self.backend.post(
                f"{self.prefix}/{inspection_id}/reject",
                content=rejection_notes,
                content_type="text/plain",
            )
        )

    def update_item(self, item: InspectionItem, *, checked: Optional[bool] = None) -> Optional[InspectionItem]:
        payload: dict[str, Any] = {
            "conditionStatus": item.condition.value if item.condition.is_set else None,
            "notes": item.notes,
            "checked": item.checked if checked is None else bool(checked),
        }
        if item.damage_cost is not None:
            payload["damageCost"] = item.damage_cost.amount
            payload["damageCostSource"] = item.damage_cost.source.value
        data = self.backend.put(f"{self.prefix}/items/{item.id}", json=payload)
        return item_from_json(data) if isinstance(data, dict) else None

    def start(self, inspection_id: str) -> Optional[AssetInspection]:
        return _inspection(self.backend.put(f"{self.prefix}/{inspection_id}/start"))

    def complete(self, inspection_id: str, inspector_notes: Optional[str]) -> Optional[AssetInspection]:
        return _inspection(
            self.backend.put(
                f"{self.prefix}/{inspection_id}/complete",
                content=inspector_notes or "",
                content_type="text/plain",
            )
        )

    def cancel(self, inspection_id: str) -> Optional[AssetInspection]:
        return _inspection(self.backend.put(f"{self.prefix}/{inspection_id}/cancel"))

    def recalculate_damage(self, inspection_id: str) -> Optional[AssetInspection]:
        return _inspection(self.backend.post(f"{self.prefix}/{inspection_id}/recalculate-damage"))

    def generate_invoice(self, inspection_id: str) -> Optional[AssetInspection]:
        return _inspection(self.backend.post(f"{self.prefix}/{inspection_id}/generate-invoice"))
