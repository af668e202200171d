# moveout/domain/contract_validity.py
from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, Optional

from .errors import ValidationError
from .models import ContractStatus, ContractType, RentalContract


class Validity(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRING = "EXPIRING"
    # cancelled, but still paid through a future end date
    CANCELLED_LIVE = "CANCELLED_LIVE"
    EXPIRED = "EXPIRED"
    # not live and no end date to have expired on
    INACTIVE = "INACTIVE"


class ExpiringBasis(str, Enum):
    # whole term: end_date - start_date (what the review screen has always shown)
    DURATION = "duration"
    # time left: end_date - today
    REMAINING = "remaining"


@dataclass(frozen=True)
class ContractValidity:
    contract: RentalContract
    validity: Validity
    days_remaining: Optional[int]
    term_days: Optional[int]

    @property
    def effectively_active(self) -> bool:
        return self.validity in (Validity.ACTIVE, Validity.EXPIRING, Validity.CANCELLED_LIVE)

    @property
    def blocks_new_contract(self) -> bool:
        return self.validity in (Validity.ACTIVE, Validity.EXPIRING)


@dataclass(frozen=True)
class UnitContractValidity:
    today: date
    contracts: list[ContractValidity]
    latest_expired_rental: Optional[RentalContract]
    can_open_new_contract: bool

    @property
    def occupied(self) -> bool:
        return any(c.effectively_active for c in self.contracts)

    def of(self, contract_id: str) -> Optional[ContractValidity]:
        for c in self.contracts:
            if c.contract.id == contract_id:
                return c
        return None

    def blocking_contracts(self) -> list[RentalContract]:
        return [c.contract for c in self.contracts if c.blocks_new_contract]


def as_date(v: Any) -> Optional[date]:
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    s = str(v).strip()
    try:
        if "T" in s:
            return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
        return date.fromisoformat(s)
    except ValueError:
        return None


def add_months(d: date, months: int) -> date:
    """Calendar month arithmetic, clamped to the last day of the target month."""
    m0 = d.month - 1 + int(months)
    y = d.year + m0 // 12
    m = m0 % 12 + 1
    last_day = calendar.monthrange(y, m)[1]
    return date(y, m, min(d.day, last_day))


# -----------------------------------------------------------------------------
# Effective state
# -----------------------------------------------------------------------------


def is_effectively_active(c: RentalContract, on: date) -> bool:
    if c.status == ContractStatus.ACTIVE:
        return c.end_date is None or c.end_date > on
    if c.status == ContractStatus.CANCELLED:
        # cancellation never vacates the unit before its paid-through date
        return c.end_date is not None and c.end_date >= on
    return False


def is_expired(c: RentalContract, on: date) -> bool:
    return (not is_effectively_active(c, on)) and c.end_date is not None


def classify_contract(
    c: RentalContract,
    today: date,
    *,
    window_days: int = 30,
    basis: ExpiringBasis = ExpiringBasis.DURATION,
) -> ContractValidity:
    days_remaining = (c.end_date - today).days if c.end_date is not None else None
    # inclusive of both end points: a 02-01..03-02 lease is a 30-day term
    term_days = (c.end_date - c.start_date).days + 1 if (c.end_date is not None and c.start_date is not None) else None

    if is_effectively_active(c, today):
        if c.status == ContractStatus.CANCELLED:
            v = Validity.CANCELLED_LIVE
        else:
            span = term_days if basis == ExpiringBasis.DURATION else days_remaining
            v = Validity.EXPIRING if (span is not None and 0 < span <= int(window_days)) else Validity.ACTIVE
    elif c.end_date is not None:
        v = Validity.EXPIRED
    else:
        v = Validity.INACTIVE

    return ContractValidity(contract=c, validity=v, days_remaining=days_remaining, term_days=term_days)


def resolve_unit_contracts(
    contracts: Iterable[RentalContract],
    today: date,
    *,
    window_days: int = 30,
    basis: ExpiringBasis = ExpiringBasis.DURATION,
) -> UnitContractValidity:
    classified = [classify_contract(c, today, window_days=window_days, basis=basis) for c in contracts]

    expired_rentals = [
        cv.contract
        for cv in classified
        if cv.validity == Validity.EXPIRED and cv.contract.contract_type == ContractType.RENTAL
    ]
    latest = None
    if expired_rentals:
        # end_date descending; first one wins on ties
        latest = sorted(expired_rentals, key=lambda c: c.end_date, reverse=True)[0]

    return UnitContractValidity(
        today=today,
        contracts=classified,
        latest_expired_rental=latest,
        can_open_new_contract=not any(cv.blocks_new_contract for cv in classified),
    )


def filter_contracts(
    contracts: Iterable[RentalContract],
    view: str,
    today: date,
    *,
    window_days: int = 30,
    basis: ExpiringBasis = ExpiringBasis.DURATION,
) -> list[RentalContract]:
    """Review-screen views: all | active | expiring | expired."""
    v = (view or "all").strip().lower()
    if v == "all":
        return list(contracts)
    if v not in ("active", "expiring", "expired"):
        raise ValidationError("view", f"unknown view {view!r}; expected all, active, expiring or expired")

    out = []
    for c in contracts:
        cv = classify_contract(c, today, window_days=window_days, basis=basis)
        if v == "active" and cv.validity in (Validity.ACTIVE, Validity.EXPIRING):
            out.append(c)
        elif v == "expiring" and cv.validity == Validity.EXPIRING:
            out.append(c)
        elif v == "expired" and cv.validity == Validity.EXPIRED:
            out.append(c)
    return out


# -----------------------------------------------------------------------------
# Date rules for new contracts
# -----------------------------------------------------------------------------


def validate_contract_dates(contract_type: ContractType, start_date: Any, end_date: Any = None) -> None:
    s = as_date(start_date)
    e = as_date(end_date)

    if s is None:
        raise ValidationError("start_date", "start date is required and must be a valid date (YYYY-MM-DD)")
    if end_date not in (None, "") and e is None:
        raise ValidationError("end_date", f"end date {end_date!r} is not a valid date (YYYY-MM-DD)")

    if e is not None and e < s:
        raise ValidationError("end_date", f"end date {e.isoformat()} cannot be before start date {s.isoformat()}")

    if contract_type == ContractType.RENTAL:
        if e is None:
            raise ValidationError("end_date", "end date is required for a rental contract")
        minimum = add_months(s, 1)
        if e < minimum:
            raise ValidationError(
                "end_date",
                f"end date must be >= 1 month after start ({minimum.isoformat()} or later), got {e.isoformat()}",
            )


def reference_contract(contracts: Iterable[RentalContract], today: date) -> Optional[RentalContract]:
    """
    The contract a new one has to start after.

    A cancelled contract still inside its paid period wins; otherwise the
    latest expired rental contract.
    """
    items = list(contracts)
    live_cancelled = [
        c for c in items
        if c.status == ContractStatus.CANCELLED and is_effectively_active(c, today)
    ]
    if live_cancelled:
        return sorted(live_cancelled, key=lambda c: c.end_date, reverse=True)[0]
    return resolve_unit_contracts(items, today).latest_expired_rental


def validate_new_contract_start(contracts: Iterable[RentalContract], candidate_start: Any, today: date) -> date:
    """
    Raise ValidationError unless a new contract may start on `candidate_start`.

    Returns the parsed start date.
    """
    items = list(contracts)
    s = as_date(candidate_start)
    if s is None:
        raise ValidationError("start_date", f"start date {candidate_start!r} is not a valid date (YYYY-MM-DD)")

    resolved = resolve_unit_contracts(items, today)
    if not resolved.can_open_new_contract:
        ids = ", ".join(c.id for c in resolved.blocking_contracts())
        raise ValidationError("unit_id", f"unit already has an active contract ({ids})")

    ref = reference_contract(items, today)
    if ref is not None and ref.end_date is not None:
        if not s > ref.end_date:
            raise ValidationError(
                "start_date",
                f"start date must be after {ref.end_date.isoformat()} (end of contract {ref.id}), got {s.isoformat()}",
            )
        return s

    if not s > today:
        raise ValidationError("start_date", f"start date must be after today ({today.isoformat()}), got {s.isoformat()}")
    return s
