# tests/test_reconciler.py
from __future__ import annotations

import threading

import pytest

from moveout.domain.errors import RemoteError
from moveout.domain.models import AssetInspection, DamageCost, InspectionItem, InspectionStatus
from moveout.services.reconciler import RetryPolicy, reconcile, total_matches, total_matches_items

FAST = RetryPolicy(max_attempts=3, delay_seconds=0)


class Source:
    """Returns the scripted values in order, repeating the last one."""

    def __init__(self, *values):
        self.values = list(values)
        self.calls = 0

    def __call__(self):
        v = self.values[min(self.calls, len(self.values) - 1)]
        self.calls += 1
        if isinstance(v, Exception):
            raise v
        return v


def test_converges_when_value_lands():
    src = Source(0, 0, 5)
    r = reconcile(src, lambda v: v == 5, policy=FAST)
    assert (r.value, r.converged, r.attempts) == (5, True, 3)


def test_gives_up_with_last_value():
    src = Source(1, 2, 3, 4)
    r = reconcile(src, lambda v: v == 9, policy=FAST)
    assert (r.value, r.converged, r.attempts) == (3, False, 3)
    assert src.calls == 3


def test_refetch_of_converged_state_is_stable():
    src = Source(7)
    first = reconcile(src, lambda v: v == 7, policy=FAST)
    second = reconcile(src, lambda v: v == 7, policy=FAST)
    assert first == second
    assert first.attempts == 1


def test_transient_errors_count_as_attempts():
    src = Source(RemoteError("upstream down", status_code=503), 5)
    r = reconcile(src, lambda v: v == 5, policy=FAST)
    assert r.converged and r.attempts == 2


def test_all_attempts_erroring_raises_last_error():
    boom = RemoteError("timeout")
    with pytest.raises(RemoteError) as ei:
        reconcile(Source(boom), lambda v: True, policy=FAST)
    assert ei.value is boom


def test_client_errors_are_not_retried():
    src = Source(RemoteError("bad request", status_code=400), 5)
    with pytest.raises(RemoteError):
        reconcile(src, lambda v: True, policy=FAST)
    assert src.calls == 1


def test_cancelled_before_first_fetch():
    stop = threading.Event()
    stop.set()
    src = Source(1)
    r = reconcile(src, lambda v: True, policy=FAST, cancel=stop)
    assert r.cancelled and not r.converged
    assert src.calls == 0


def test_cancel_interrupts_the_wait():
    stop = threading.Event()

    def fetch():
        stop.set()
        return 1

    # a long delay would hang the test if the wait were not interrupted
    r = reconcile(fetch, lambda v: False, policy=RetryPolicy(max_attempts=5, delay_seconds=30), cancel=stop)
    assert r.cancelled
    assert (r.value, r.attempts) == (1, 1)


def test_policy_validation():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
    with pytest.raises(ValueError):
        RetryPolicy(delay_seconds=-1)


def _insp(total, *amounts):
    items = tuple(
        InspectionItem(id=str(i), asset_id=str(i), damage_cost=DamageCost.auto(a)) for i, a in enumerate(amounts)
    )
    return AssetInspection(id="i1", contract_id="c1", unit_id="u1", status=InspectionStatus.COMPLETED, total_damage_cost=total, items=items)


def test_total_predicates_use_tolerance():
    assert total_matches(100.0)(_insp(100.004))
    assert not total_matches(100.0)(_insp(100.5))
    assert not total_matches(100.0)(_insp(None))
    assert total_matches_items()(_insp(300.0, 100.0, 200.0))
    assert not total_matches_items()(_insp(250.0, 100.0, 200.0))
