# moveout/services/manual_costs.py
from __future__ import annotations

import threading
from dataclasses import replace
from typing import Optional

from ..domain.models import AssetInspection, DamageCost


class ManualCostLedger:
    """
    Damage amounts typed in by an inspector, keyed by (inspection id, item id).

    The inspection store does not keep a cost's source, so a read-back item
    looks the same whether its cost was suggested or typed. One ledger is
    shared by every request in the process; read-backs are passed through
    `apply` so a manual amount is never replaced by a suggested one.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._amounts: dict[tuple[str, str], float] = {}

    def record(self, inspection_id: str, item_id: str, amount: float) -> None:
        with self._lock:
            self._amounts[(inspection_id, item_id)] = float(amount)

    def get(self, inspection_id: str, item_id: str) -> Optional[float]:
        with self._lock:
            return self._amounts.get((inspection_id, item_id))

    def forget(self, inspection_id: str) -> None:
        with self._lock:
            for key in [k for k in self._amounts if k[0] == inspection_id]:
                del self._amounts[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._amounts)

    def apply(self, inspection: AssetInspection) -> AssetInspection:
        with self._lock:
            typed = {item_id: amt for (iid, item_id), amt in self._amounts.items() if iid == inspection.id}
        if not typed:
            return inspection
        items = [
            replace(it, damage_cost=DamageCost.manual(typed[it.id])) if it.id in typed else it
            for it in inspection.items
        ]
        return inspection.with_items(items)
