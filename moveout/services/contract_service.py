# moveout/services/contract_service.py
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from ..clients import Stores
from ..config import settings
from ..domain.clock import Clock, default_clock
from ..domain.contract_validity import (
    ExpiringBasis,
    UnitContractValidity,
    filter_contracts,
    resolve_unit_contracts,
    validate_contract_dates,
    validate_new_contract_start,
)
from ..domain.models import RentalContract, parse_contract_type
from ..domain.errors import ValidationError


class ContractService:
    """Reads a unit's contracts and answers validity questions about them."""

    def __init__(
        self,
        stores: Stores,
        *,
        clock: Optional[Clock] = None,
        window_days: Optional[int] = None,
        basis: Optional[str] = None,
    ) -> None:
        self.stores = stores
        self.clock = clock or default_clock()
        self.window_days = int(window_days if window_days is not None else settings.expiring_window_days)
        self.basis = ExpiringBasis((basis or settings.expiring_basis).strip().lower())

    def contracts(self, unit_id: str) -> list[RentalContract]:
        return self.stores.contracts.list_by_unit(unit_id)

    def unit_validity(self, unit_id: str) -> UnitContractValidity:
        return resolve_unit_contracts(
            self.contracts(unit_id),
            self.clock.today(),
            window_days=self.window_days,
            basis=self.basis,
        )

    def filtered(self, unit_id: str, view: str) -> list[RentalContract]:
        return filter_contracts(
            self.contracts(unit_id),
            view,
            self.clock.today(),
            window_days=self.window_days,
            basis=self.basis,
        )

    def validate_new_contract(
        self,
        unit_id: str,
        *,
        contract_type: Any,
        start_date: Any,
        end_date: Any = None,
    ) -> date:
        """Both date rules for a contract about to be opened on the unit. Returns the start date."""
        ctype = parse_contract_type(contract_type)
        if ctype is None:
            raise ValidationError("contract_type", f"contract type must be RENTAL or PURCHASE, got {contract_type!r}")
        validate_contract_dates(ctype, start_date, end_date)
        return validate_new_contract_start(self.contracts(unit_id), start_date, self.clock.today())
