# moveout/services/reconciler.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

from ..domain.errors import RemoteError
from ..domain.models import AssetInspection

log = logging.getLogger("moveout.reconciler")

T = TypeVar("T")

# -----------------------------------------------------------------------------
# Read-after-write reconciliation
# -----------------------------------------------------------------------------
# The backing store computes some fields out of band (generated checklist
# items, total damage cost). After a mutation we re-read a bounded number of
# times until the expected post-condition shows up. Running out of attempts is
# not an error: the last value read is returned with converged=False and
# callers treat it as best-effort.
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    delay_seconds: float = 1.0

    def __post_init__(self) -> None:
        if int(self.max_attempts) < 1:
            raise ValueError("max_attempts must be >= 1")
        if float(self.delay_seconds) < 0:
            raise ValueError("delay_seconds cannot be negative")


@dataclass(frozen=True)
class Reconciled(Generic[T]):
    value: Optional[T]
    converged: bool
    attempts: int
    cancelled: bool = False


def reconcile(
    fetch: Callable[[], T],
    accept: Callable[[T], bool],
    *,
    policy: RetryPolicy,
    cancel: Optional[threading.Event] = None,
    label: str = "reconcile",
) -> Reconciled[T]:
    """
    Call `fetch` up to policy.max_attempts times, `policy.delay_seconds` apart,
    until `accept(value)` holds.

    Transient remote errors count as a failed attempt. If every attempt
    errored, the last error is raised. Setting `cancel` stops the loop at the
    next fetch or during a wait.
    """
    stop = cancel if cancel is not None else threading.Event()
    last: Optional[T] = None
    have_value = False
    last_error: Optional[RemoteError] = None
    attempts = 0

    for attempt in range(1, int(policy.max_attempts) + 1):
        if stop.is_set():
            log.info("%s cancelled before attempt %s", label, attempt)
            return Reconciled(value=last, converged=False, attempts=attempts, cancelled=True)

        attempts = attempt
        try:
            value = fetch()
        except RemoteError as e:
            if not e.is_transient:
                raise
            last_error = e
            log.warning("%s attempt %s/%s failed: %s", label, attempt, policy.max_attempts, e)
        else:
            last, have_value = value, True
            if accept(value):
                return Reconciled(value=value, converged=True, attempts=attempt)

        if attempt < int(policy.max_attempts) and stop.wait(float(policy.delay_seconds)):
            log.info("%s cancelled while waiting after attempt %s", label, attempt)
            return Reconciled(value=last, converged=False, attempts=attempts, cancelled=True)

    if not have_value and last_error is not None:
        raise last_error

    log.warning("%s did not converge after %s attempts; using last value", label, attempts)
    return Reconciled(value=last, converged=False, attempts=attempts)


# -----------------------------------------------------------------------------
# Common post-conditions
# -----------------------------------------------------------------------------


def has_items(inspection: Optional[AssetInspection]) -> bool:
    return inspection is not None and len(inspection.items) > 0


def total_matches(expected: float, *, tolerance: float = 0.01) -> Callable[[Optional[AssetInspection]], bool]:
    def _accept(inspection: Optional[AssetInspection]) -> bool:
        if inspection is None or inspection.total_damage_cost is None:
            return False
        return abs(float(inspection.total_damage_cost) - float(expected)) <= float(tolerance)

    return _accept


def total_matches_items(*, tolerance: float = 0.01) -> Callable[[Optional[AssetInspection]], bool]:
    """Server total agrees with the sum of the item costs it returned alongside."""

    def _accept(inspection: Optional[AssetInspection]) -> bool:
        if inspection is None or inspection.total_damage_cost is None:
            return False
        return abs(float(inspection.total_damage_cost) - inspection.items_total()) <= float(tolerance)

    return _accept
