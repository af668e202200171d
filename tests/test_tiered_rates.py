# tests/test_tiered_rates.py
from __future__ import annotations

from datetime import date

import pytest

from moveout.domain.errors import ValidationError
from moveout.domain.models import PricingTier, ServiceCode
from moveout.domain.tiered_rates import audit_tiers, compute_tiered_cost, quote_usage, select_tiers

from fakes import tier


TIERS = [tier(1, 0, 100, 1.0), tier(2, 100, 200, 2.0), tier(3, 200, None, 3.0)]


def test_progressive_cost_across_three_tiers():
    assert compute_tiered_cost(250, TIERS) == 450.0


def test_usage_on_band_boundary_stays_in_first_tier():
    q = quote_usage(100, TIERS)
    assert q.cost == 100.0
    assert [c.tier_order for c in q.charges] == [1]


def test_zero_and_negative_usage_cost_nothing():
    assert compute_tiered_cost(0, TIERS) == 0.0
    assert compute_tiered_cost(-5, TIERS) == 0.0


def test_tier_order_not_input_order():
    shuffled = [TIERS[2], TIERS[0], TIERS[1]]
    assert compute_tiered_cost(250, shuffled) == 450.0


def test_no_tiers_is_zero_and_unpriced():
    q = quote_usage(42, [])
    assert q.cost == 0.0
    assert q.priced is False
    assert q.unpriced_quantity == 42.0


def test_bounded_last_tier_leaves_remainder_unpriced():
    q = quote_usage(250, TIERS[:2])
    assert q.cost == 300.0
    assert q.unpriced_quantity == 50.0


def test_charges_break_down_each_band():
    q = quote_usage(250, TIERS, service_code=ServiceCode.ELECTRIC)
    assert [(c.tier_order, c.quantity, c.amount) for c in q.charges] == [
        (1, 100.0, 100.0),
        (2, 100.0, 200.0),
        (3, 50.0, 150.0),
    ]


def test_non_numeric_usage_is_a_validation_error():
    with pytest.raises(ValidationError) as ei:
        quote_usage("lots", TIERS)
    assert ei.value.field == "usage"


def test_select_tiers_filters_service_and_effective_date():
    old = PricingTier(
        service_code=ServiceCode.ELECTRIC,
        tier_order=1,
        min_quantity=0,
        max_quantity=None,
        unit_price=9.0,
        effective_until=date(2025, 12, 31),
    )
    water = tier(1, 0, None, 5.0, code=ServiceCode.WATER)
    picked = select_tiers([old, water] + TIERS, service_code=ServiceCode.ELECTRIC, on=date(2026, 10, 19))
    assert picked == TIERS


# -------------------- audit --------------------

def test_audit_contiguous_half_open_bands_are_ok():
    a = audit_tiers(TIERS)
    assert a.ok
    assert a.gaps == [] and a.overlaps == []


def test_audit_reports_gap_between_bands():
    a = audit_tiers([tier(1, 0, 100, 1.0), tier(2, 150, None, 2.0)])
    assert not a.ok
    assert [(g.start, g.end) for g in a.gaps] == [(100.0, 150.0)]


def test_audit_whole_unit_bands_are_a_gap_unless_integer_adjacent():
    bands = [tier(1, 0, 50, 1.0), tier(2, 51, 100, 2.0), tier(3, 101, None, 3.0)]
    strict = audit_tiers(bands)
    assert [(g.start, g.end) for g in strict.gaps] == [(50.0, 51.0), (100.0, 101.0)]

    loose = audit_tiers(bands, integer_adjacent=True)
    assert loose.ok
    assert loose.gaps == []

    # a real hole is still reported
    holed = audit_tiers([tier(1, 0, 50, 1.0), tier(2, 60, None, 2.0)], integer_adjacent=True)
    assert [(g.start, g.end) for g in holed.gaps] == [(50.0, 60.0)]


def test_audit_reports_first_tier_not_at_zero():
    a = audit_tiers([tier(1, 10, None, 1.0)])
    assert [(g.start, g.end) for g in a.gaps] == [(0.0, 10.0)]


def test_audit_reports_overlap():
    a = audit_tiers([tier(1, 0, 120, 1.0), tier(2, 100, None, 2.0)])
    assert len(a.overlaps) == 1
    o = a.overlaps[0]
    assert (o.first_order, o.second_order, o.start, o.end) == (1, 2, 100.0, 120.0)


def test_audit_reports_missing_final_tier():
    a = audit_tiers(TIERS[:2])
    assert a.has_final_tier is False
    assert [(g.start, g.end) for g in a.gaps] == [(200.0, None)]


def test_audit_of_nothing_is_not_ok():
    a = audit_tiers([])
    assert a.tier_count == 0
    assert not a.ok
