# moveout/routers/pricing.py
from __future__ import annotations

from fastapi import APIRouter

from ..domain.errors import SettlementError
from ..domain.tiered_rates import audit_tiers, quote_usage
from ..schemas import AuditIn, AuditOut, QuoteIn, QuoteOut, audit_out, quote_out
from .deps import http_error

router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.post("/quote", response_model=QuoteOut)
def quote(payload: QuoteIn):
    tiers = [t.to_domain() for t in payload.tiers]
    try:
        return quote_out(quote_usage(payload.usage, tiers, service_code=payload.service_code))
    except SettlementError as e:
        raise http_error(e)


@router.post("/audit", response_model=AuditOut)
def audit(payload: AuditIn):
    tiers = [t.to_domain() for t in payload.tiers]
    return audit_out(
        audit_tiers(tiers, service_code=payload.service_code, on=payload.on, integer_adjacent=payload.integer_adjacent)
    )
