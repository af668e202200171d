# moveout/clients/__init__.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .assets import AssetClient
from .base import BackendClient
from .contracts import ContractClient
from .inspections import InspectionClient
from .invoices import InvoiceClient
from .meters import MeterClient
from .pricing import PricingClient


@dataclass
class Stores:
    """The remote collaborators the engine reads from and writes to."""

    contracts: ContractClient
    assets: AssetClient
    inspections: InspectionClient
    meters: MeterClient
    pricing: PricingClient
    invoices: InvoiceClient

    @classmethod
    def http(cls, backend: Optional[BackendClient] = None) -> "Stores":
        b = backend or BackendClient()
        return cls(
            contracts=ContractClient(b),
            assets=AssetClient(b),
            inspections=InspectionClient(b),
            meters=MeterClient(b),
            pricing=PricingClient(b),
            invoices=InvoiceClient(b),
        )


__all__ = [
    "AssetClient",
    "BackendClient",
    "ContractClient",
    "InspectionClient",
    "InvoiceClient",
    "MeterClient",
    "PricingClient",
    "Stores",
]
