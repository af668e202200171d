# moveout/routers/deps.py
from __future__ import annotations

import asyncio
import logging
import threading
from functools import lru_cache
from typing import Callable, TypeVar

from fastapi import Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from ..clients import Stores
from ..domain.clock import Clock, default_clock
from ..domain.errors import (
    InvalidTransitionError,
    NotFoundError,
    PreconditionError,
    RemoteError,
    SettlementError,
    ValidationError,
)
from ..services.contract_service import ContractService
from ..services.inspection_service import InspectionService
from ..services.manual_costs import ManualCostLedger
from ..services.settlement_service import SettlementService

log = logging.getLogger("moveout.http")

T = TypeVar("T")


@lru_cache(maxsize=1)
def get_stores() -> Stores:
    return Stores.http()


def get_clock() -> Clock:
    return default_clock()


@lru_cache(maxsize=1)
def get_manual_costs() -> ManualCostLedger:
    # one per process; inspection services are built per request
    return ManualCostLedger()


def get_contract_service(stores: Stores = Depends(get_stores), clock: Clock = Depends(get_clock)) -> ContractService:
    return ContractService(stores, clock=clock)


def get_inspection_service(
    stores: Stores = Depends(get_stores),
    clock: Clock = Depends(get_clock),
    manual_costs: ManualCostLedger = Depends(get_manual_costs),
) -> InspectionService:
    return InspectionService(stores, clock=clock, manual_costs=manual_costs)


def get_settlement_service(stores: Stores = Depends(get_stores), clock: Clock = Depends(get_clock)) -> SettlementService:
    return SettlementService(stores, clock=clock)


def http_error(e: SettlementError) -> HTTPException:
    """Engine error -> HTTP error with a structured detail."""
    if isinstance(e, ValidationError):
        return HTTPException(status_code=422, detail=e.to_dict())
    if isinstance(e, PreconditionError):
        return HTTPException(status_code=409, detail=e.to_dict())
    if isinstance(e, InvalidTransitionError):
        return HTTPException(status_code=409, detail=e.to_dict())
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail={"error": "not_found", "entity": e.entity, "id": e.entity_id})
    if isinstance(e, RemoteError):
        return HTTPException(
            status_code=502,
            detail={"error": "upstream", "message": e.message, "upstream_status": e.status_code},
        )
    return HTTPException(status_code=400, detail={"error": "settlement", "message": str(e)})


async def run_cancellable(
    request: Request,
    fn: Callable[[threading.Event], T],
    *,
    poll_seconds: float = 0.25,
) -> T:
    """
    Run blocking service work in the threadpool with a cancel event that is
    set when the client disconnects. Retry loops in the services stop at
    their next wait once it is set.
    """
    cancel = threading.Event()

    async def watch() -> None:
        while True:
            if await request.is_disconnected():
                log.info("client disconnected; cancelling", extra={"path": request.url.path})
                cancel.set()
                return
            await asyncio.sleep(poll_seconds)

    watcher = asyncio.create_task(watch())
    try:
        return await run_in_threadpool(fn, cancel)
    finally:
        watcher.cancel()
