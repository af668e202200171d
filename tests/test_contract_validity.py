# tests/test_contract_validity.py
from __future__ import annotations

from datetime import date, timedelta

import pytest

from moveout.domain.contract_validity import (
    ExpiringBasis,
    Validity,
    add_months,
    classify_contract,
    filter_contracts,
    reference_contract,
    resolve_unit_contracts,
    validate_contract_dates,
    validate_new_contract_start,
)
from moveout.domain.errors import ValidationError
from moveout.domain.models import ContractStatus, ContractType

from fakes import contract

TODAY = date(2026, 10, 19)


def test_active_with_future_end_is_active():
    cv = classify_contract(contract("c1", end=date(2027, 6, 30)), TODAY)
    assert cv.validity == Validity.ACTIVE
    assert cv.effectively_active and cv.blocks_new_contract


def test_active_ending_today_has_expired():
    cv = classify_contract(contract("c1", end=TODAY), TODAY)
    assert cv.validity == Validity.EXPIRED
    assert not cv.effectively_active


def test_open_ended_active_contract_is_active():
    cv = classify_contract(contract("c1", end=None), TODAY)
    assert cv.validity == Validity.ACTIVE


def test_cancelled_inside_paid_period_occupies_but_does_not_block():
    c = contract("c1", status=ContractStatus.CANCELLED, end=TODAY + timedelta(days=10))
    v = resolve_unit_contracts([c], TODAY)
    cv = v.of("c1")
    assert cv.validity == Validity.CANCELLED_LIVE
    assert v.occupied is True
    assert v.can_open_new_contract is True


def test_cancelled_in_the_past_is_expired():
    c = contract("c1", status=ContractStatus.CANCELLED, end=date(2026, 9, 1))
    assert classify_contract(c, TODAY).validity == Validity.EXPIRED


def test_inactive_without_end_date():
    c = contract("c1", status=ContractStatus.INACTIVE, end=None)
    assert classify_contract(c, TODAY).validity == Validity.INACTIVE


def test_expiring_uses_term_length_by_default():
    short = contract("c1", start=date(2026, 10, 1), end=date(2026, 10, 25))
    long_ = contract("c2", start=date(2025, 1, 1), end=date(2026, 11, 10))
    assert classify_contract(short, TODAY).validity == Validity.EXPIRING
    assert classify_contract(long_, TODAY).validity == Validity.ACTIVE


def test_term_length_counts_first_and_last_day():
    today = date(2026, 2, 10)
    month_long = contract("c1", start=date(2026, 2, 1), end=date(2026, 3, 3))
    cv = classify_contract(month_long, today)
    assert cv.term_days == 31
    assert cv.validity == Validity.ACTIVE

    thirty = contract("c2", start=date(2026, 2, 1), end=date(2026, 3, 2))
    cv = classify_contract(thirty, today)
    assert cv.term_days == 30
    assert cv.validity == Validity.EXPIRING


def test_expiring_on_remaining_days_when_configured():
    long_ = contract("c2", start=date(2025, 1, 1), end=date(2026, 11, 10))
    cv = classify_contract(long_, TODAY, basis=ExpiringBasis.REMAINING)
    assert cv.validity == Validity.EXPIRING
    assert cv.days_remaining == 22


def test_each_contract_gets_exactly_one_label():
    contracts = [
        contract("a", end=date(2027, 1, 1)),
        contract("b", status=ContractStatus.CANCELLED, end=date(2026, 11, 1)),
        contract("c", end=date(2026, 5, 1)),
        contract("d", status=ContractStatus.INACTIVE, end=None),
    ]
    v = resolve_unit_contracts(contracts, TODAY)
    assert [cv.validity for cv in v.contracts] == [
        Validity.ACTIVE,
        Validity.CANCELLED_LIVE,
        Validity.EXPIRED,
        Validity.INACTIVE,
    ]


def test_latest_expired_rental_ignores_purchases():
    contracts = [
        contract("old", end=date(2025, 12, 31)),
        contract("recent", end=date(2026, 9, 30)),
        contract("buy", end=date(2026, 10, 1), contract_type=ContractType.PURCHASE),
    ]
    v = resolve_unit_contracts(contracts, TODAY)
    assert v.latest_expired_rental.id == "recent"


def test_filter_views():
    contracts = [
        contract("active", start=date(2025, 1, 1), end=date(2027, 1, 1)),
        contract("soon", start=date(2026, 10, 1), end=date(2026, 10, 25)),
        contract("gone", end=date(2026, 1, 1)),
    ]
    assert [c.id for c in filter_contracts(contracts, "all", TODAY)] == ["active", "soon", "gone"]
    assert [c.id for c in filter_contracts(contracts, "active", TODAY)] == ["active", "soon"]
    assert [c.id for c in filter_contracts(contracts, "expiring", TODAY)] == ["soon"]
    assert [c.id for c in filter_contracts(contracts, "expired", TODAY)] == ["gone"]


def test_unknown_filter_view():
    with pytest.raises(ValidationError):
        filter_contracts([], "archived", TODAY)


# -------------------- date rules --------------------

def test_add_months_clamps_to_month_end():
    assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2026, 12, 15), 1) == date(2027, 1, 15)


def test_rental_end_exactly_one_month_after_start_passes():
    validate_contract_dates(ContractType.RENTAL, "2026-03-15", "2026-04-15")
    validate_contract_dates(ContractType.RENTAL, date(2026, 1, 31), date(2026, 2, 28))


def test_rental_end_one_day_short_fails():
    with pytest.raises(ValidationError) as ei:
        validate_contract_dates(ContractType.RENTAL, "2026-03-15", "2026-04-14")
    assert "end date must be >= 1 month after start" in ei.value.message


def test_rental_requires_end_date_purchase_does_not():
    with pytest.raises(ValidationError):
        validate_contract_dates(ContractType.RENTAL, "2026-03-15", None)
    validate_contract_dates(ContractType.PURCHASE, "2026-03-15", None)


def test_end_before_start_rejected():
    with pytest.raises(ValidationError) as ei:
        validate_contract_dates(ContractType.PURCHASE, "2026-03-15", "2026-03-01")
    assert ei.value.field == "end_date"


def test_malformed_dates_rejected():
    with pytest.raises(ValidationError):
        validate_contract_dates(ContractType.RENTAL, "15/03/2026", "2026-05-01")
    with pytest.raises(ValidationError):
        validate_contract_dates(ContractType.RENTAL, "2026-03-15", "soon")


def test_new_contract_blocked_by_active_one():
    with pytest.raises(ValidationError) as ei:
        validate_new_contract_start([contract("c1", end=date(2027, 1, 1))], "2027-02-01", TODAY)
    assert "c1" in ei.value.message


def test_new_contract_after_cancelled_paid_period():
    live = contract("c1", status=ContractStatus.CANCELLED, end=TODAY + timedelta(days=10))
    assert reference_contract([live], TODAY) == live
    with pytest.raises(ValidationError) as ei:
        validate_new_contract_start([live], TODAY + timedelta(days=10), TODAY)
    assert (TODAY + timedelta(days=10)).isoformat() in ei.value.message
    assert validate_new_contract_start([live], TODAY + timedelta(days=11), TODAY) == TODAY + timedelta(days=11)


def test_new_contract_after_latest_expired_rental():
    contracts = [contract("old", end=date(2026, 3, 31)), contract("last", end=date(2026, 9, 30))]
    with pytest.raises(ValidationError):
        validate_new_contract_start(contracts, "2026-09-30", TODAY)
    assert validate_new_contract_start(contracts, "2026-10-01", TODAY) == date(2026, 10, 1)


def test_new_contract_on_empty_unit_starts_after_today():
    with pytest.raises(ValidationError):
        validate_new_contract_start([], TODAY, TODAY)
    assert validate_new_contract_start([], "2026-10-20", TODAY) == date(2026, 10, 20)
