# moveout/clients/assets.py
from __future__ import annotations

from typing import Any, Optional

from ..domain.models import Asset
from .base import BackendClient, as_float, as_list, as_str


def asset_from_json(d: dict[str, Any]) -> Asset:
    active = d.get("active", d.get("isActive", True))
    return Asset(
        id=str(d.get("id")),
        unit_id=str(d.get("unitId") or ""),
        asset_type=as_str(d.get("assetType")),
        asset_code=as_str(d.get("assetCode")),
        name=as_str(d.get("name") or d.get("assetName")),
        purchase_price=as_float(d.get("purchasePrice")),
        active=bool(active) if active is not None else True,
    )


class AssetClient:
    """Asset directory. Read-only."""

    def __init__(self, backend: Optional[BackendClient] = None) -> None:
        self.backend = backend or BackendClient()

    def list_by_unit(self, unit_id: str) -> list[Asset]:
        data = self.backend.get(f"/api/assets/unit/{unit_id}")
        return [asset_from_json(d) for d in as_list(data) if isinstance(d, dict)]
