# moveout/clients/pricing.py
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from ..domain.contract_validity import as_date
from ..domain.models import PricingTier, ServiceCode, parse_service_code
from .base import BackendClient, as_float, as_list


def tier_from_json(d: dict[str, Any], *, default_service: Optional[ServiceCode] = None) -> Optional[PricingTier]:
    code = parse_service_code(d.get("serviceCode")) or default_service
    unit_price = as_float(d.get("unitPrice"))
    if code is None or unit_price is None:
        return None
    order = d.get("tierOrder")
    return PricingTier(
        service_code=code,
        tier_order=int(order) if isinstance(order, (int, float)) else 0,
        min_quantity=as_float(d.get("minQuantity")) or 0.0,
        max_quantity=as_float(d.get("maxQuantity")),
        unit_price=unit_price,
        effective_from=as_date(d.get("effectiveFrom")),
        effective_until=as_date(d.get("effectiveUntil")),
        active=d.get("active") is not False,
    )


class PricingClient:
    def __init__(self, backend: Optional[BackendClient] = None) -> None:
        self.backend = backend or BackendClient()

    def active_tiers(self, service_code: ServiceCode, on: date) -> list[PricingTier]:
        data = self.backend.get(
            f"/api/pricing-tiers/service/{service_code.value}/active",
            params={"effectiveDate": on.isoformat()},
        )
        tiers = [tier_from_json(d, default_service=service_code) for d in as_list(data) if isinstance(d, dict)]
        return [t for t in tiers if t is not None]
