# moveout/routers/inspections.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from ..domain.errors import SettlementError
from ..domain.models import InspectionStatus
from ..schemas import (
    CompletionOut,
    InspectionComplete,
    InspectionCreate,
    InspectionItemUpdate,
    InspectionOut,
    InspectionReject,
    ReadingBatchOut,
    inspection_out,
    settlement_out,
)
from ..services.inspection_service import InspectionService
from ..services.settlement_service import SettlementService
from .deps import get_inspection_service, get_settlement_service, http_error, run_cancellable

router = APIRouter(prefix="/inspections", tags=["inspections"])


# -------------------- lookups (static paths before /{inspection_id}) --------------------

@router.get("", response_model=list[InspectionOut])
def list_inspections(
    inspector_id: Optional[str] = None,
    status: Optional[InspectionStatus] = None,
    svc: InspectionService = Depends(get_inspection_service),
):
    try:
        rows = svc.list_inspections(inspector_id=inspector_id, status=status)
    except SettlementError as e:
        raise http_error(e)
    return [inspection_out(i) for i in rows]


@router.get("/pending-approval", response_model=list[InspectionOut])
def pending_approval(svc: InspectionService = Depends(get_inspection_service)):
    try:
        return [inspection_out(i) for i in svc.pending_approval()]
    except SettlementError as e:
        raise http_error(e)


@router.get("/my-assignments", response_model=list[InspectionOut])
def my_assignments(svc: InspectionService = Depends(get_inspection_service)):
    try:
        return [inspection_out(i) for i in svc.my_assignments()]
    except SettlementError as e:
        raise http_error(e)


@router.get("/technician/{technician_id}", response_model=list[InspectionOut])
def by_technician(technician_id: str, svc: InspectionService = Depends(get_inspection_service)):
    try:
        return [inspection_out(i) for i in svc.by_technician(technician_id)]
    except SettlementError as e:
        raise http_error(e)


# -------------------- lifecycle --------------------

@router.post("", response_model=InspectionOut)
async def create_inspection(
    payload: InspectionCreate,
    request: Request,
    svc: InspectionService = Depends(get_inspection_service),
):
    try:
        snap = await run_cancellable(
            request,
            lambda cancel: svc.create(
                contract_id=payload.contract_id,
                unit_id=payload.unit_id,
                inspector_name=payload.inspector_name,
                inspection_date=payload.inspection_date,
                inspector_id=payload.inspector_id,
                cancel=cancel,
            ),
        )
    except SettlementError as e:
        raise http_error(e)
    return inspection_out(snap.inspection, converged=snap.converged)


@router.get("/{inspection_id}", response_model=InspectionOut)
def get_inspection(inspection_id: str, svc: InspectionService = Depends(get_inspection_service)):
    try:
        return inspection_out(svc.get(inspection_id))
    except SettlementError as e:
        raise http_error(e)


@router.put("/{inspection_id}/start", response_model=InspectionOut)
async def start_inspection(
    inspection_id: str,
    request: Request,
    svc: InspectionService = Depends(get_inspection_service),
):
    try:
        snap = await run_cancellable(request, lambda cancel: svc.start(inspection_id, cancel=cancel))
    except SettlementError as e:
        raise http_error(e)
    return inspection_out(snap.inspection, converged=snap.converged)


@router.put("/{inspection_id}/items/{item_id}", response_model=InspectionOut)
async def update_item(
    inspection_id: str,
    item_id: str,
    payload: InspectionItemUpdate,
    request: Request,
    svc: InspectionService = Depends(get_inspection_service),
):
    try:
        r = await run_cancellable(
            request,
            lambda cancel: svc.update_item(
                inspection_id,
                item_id,
                condition=payload.condition_status,
                notes=payload.notes,
                damage_cost=payload.damage_cost,
                cancel=cancel,
            ),
        )
    except SettlementError as e:
        raise http_error(e)
    return inspection_out(r.inspection, converged=r.total_converged)


@router.put("/{inspection_id}/cancel", response_model=InspectionOut)
def cancel_inspection(inspection_id: str, svc: InspectionService = Depends(get_inspection_service)):
    try:
        return inspection_out(svc.cancel(inspection_id))
    except SettlementError as e:
        raise http_error(e)


@router.put("/{inspection_id}/complete", response_model=CompletionOut)
async def complete_inspection(
    inspection_id: str,
    payload: InspectionComplete,
    request: Request,
    svc: InspectionService = Depends(get_inspection_service),
    settlements: SettlementService = Depends(get_settlement_service),
):
    def _run(cancel):
        result = svc.complete(
            inspection_id,
            inspector_notes=payload.inspector_notes,
            readings=payload.readings,
            cancel=cancel,
        )
        return result, settlements.settle_completion(result)

    try:
        result, outcome = await run_cancellable(request, _run)
    except SettlementError as e:
        raise http_error(e)

    return CompletionOut(
        inspection=inspection_out(result.inspection, converged=result.total_converged),
        readings=ReadingBatchOut(
            succeeded=result.readings.succeeded,
            failed=result.readings.failed,
            errors=result.readings.errors,
            notice=result.readings.notice,
        ),
        invoice_id=result.invoice_id,
        invoice_paid=result.invoice_paid,
        warnings=result.warnings + outcome.warnings,
        settlement=settlement_out(outcome.settlement, warnings=outcome.warnings),
    )


# -------------------- approval --------------------

@router.post("/{inspection_id}/approve", response_model=InspectionOut)
def approve_inspection(inspection_id: str, svc: InspectionService = Depends(get_inspection_service)):
    try:
        return inspection_out(svc.approve(inspection_id))
    except SettlementError as e:
        raise http_error(e)


@router.post("/{inspection_id}/reject", response_model=InspectionOut)
def reject_inspection(
    inspection_id: str,
    payload: InspectionReject,
    svc: InspectionService = Depends(get_inspection_service),
):
    try:
        return inspection_out(svc.reject(inspection_id, payload.rejection_notes))
    except SettlementError as e:
        raise http_error(e)
