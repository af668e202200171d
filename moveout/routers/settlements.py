# moveout/routers/settlements.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..domain.errors import SettlementError
from ..schemas import UnitSettlementOut, inspection_out, settlement_out, unit_validity_out
from ..services.settlement_service import SettlementService
from .deps import get_settlement_service, http_error

router = APIRouter(prefix="/settlements", tags=["settlements"])


@router.get("/units/{unit_id}", response_model=UnitSettlementOut)
def unit_settlement(unit_id: str, svc: SettlementService = Depends(get_settlement_service)):
    try:
        r = svc.settle_unit(unit_id)
    except SettlementError as e:
        raise http_error(e)

    return UnitSettlementOut(
        unit_id=unit_id,
        validity=unit_validity_out(unit_id, r.validity),
        inspection=inspection_out(r.inspection) if r.inspection is not None else None,
        settlement=settlement_out(r.outcome.settlement, warnings=r.outcome.warnings) if r.outcome else None,
    )
