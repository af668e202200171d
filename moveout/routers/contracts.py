# moveout/routers/contracts.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..domain.errors import SettlementError
from ..schemas import (
    ContractOut,
    NewContractCheckIn,
    NewContractCheckOut,
    UnitValidityOut,
    contract_out,
    unit_validity_out,
)
from ..services.contract_service import ContractService
from .deps import get_contract_service, http_error

router = APIRouter(prefix="/contracts", tags=["contracts"])


@router.get("/units/{unit_id}", response_model=list[ContractOut])
def list_unit_contracts(
    unit_id: str,
    view: str = Query(default="all", description="all | active | expiring | expired"),
    svc: ContractService = Depends(get_contract_service),
):
    try:
        return [contract_out(c) for c in svc.filtered(unit_id, view)]
    except SettlementError as e:
        raise http_error(e)


@router.get("/units/{unit_id}/validity", response_model=UnitValidityOut)
def unit_validity(unit_id: str, svc: ContractService = Depends(get_contract_service)):
    try:
        return unit_validity_out(unit_id, svc.unit_validity(unit_id))
    except SettlementError as e:
        raise http_error(e)


@router.post("/units/{unit_id}/validate-start", response_model=NewContractCheckOut)
def validate_start(
    unit_id: str,
    payload: NewContractCheckIn,
    svc: ContractService = Depends(get_contract_service),
):
    try:
        start = svc.validate_new_contract(
            unit_id,
            contract_type=payload.contract_type,
            start_date=payload.start_date,
            end_date=payload.end_date,
        )
    except SettlementError as e:
        raise http_error(e)
    return NewContractCheckOut(ok=True, start_date=start)
