# moveout/clients/contracts.py
from __future__ import annotations

from typing import Any, Optional

from ..domain.contract_validity import as_date
from ..domain.models import RentalContract, parse_contract_status, parse_contract_type
from .base import BackendClient, as_float, as_list, as_str


def contract_from_json(d: dict[str, Any]) -> RentalContract:
    return RentalContract(
        id=str(d.get("id")),
        unit_id=str(d.get("unitId") or ""),
        contract_type=parse_contract_type(d.get("contractType")),
        status=parse_contract_status(d.get("status")),
        start_date=as_date(d.get("startDate")),
        end_date=as_date(d.get("endDate")),
        monthly_rent=as_float(d.get("monthlyRent")),
        contract_number=as_str(d.get("contractNumber")),
    )


class ContractClient:
    """Contract directory. Read-only: the engine never writes contracts."""

    def __init__(self, backend: Optional[BackendClient] = None) -> None:
        self.backend = backend or BackendClient()

    def list_by_unit(self, unit_id: str) -> list[RentalContract]:
        data = self.backend.get(f"/api/contracts/units/{unit_id}")
        return [contract_from_json(d) for d in as_list(data) if isinstance(d, dict)]

    def get(self, contract_id: str) -> Optional[RentalContract]:
        data = self.backend.get_or_none(f"/api/contracts/{contract_id}")
        return contract_from_json(data) if isinstance(data, dict) else None
