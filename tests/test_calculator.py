import pytest
from pydantic import ValidationError

from core.calculator import calculate_estimate, calculate_quote, line_items
from core.models import TIERS, PricingInput
from core.rules import countertop_area, round_to, variance_band


def approx(a, b, tol=1e-6):
    return abs(a - b) <= tol


def medium(**overrides):
    fields = dict(
        length_ft=12,
        width_ft=12,
        cabinet_lf=25,
        countertop_lf=16,
        tier="BETTER",
        countertop_material="QUARTZ",
        flooring_material="LVP",
        plumbing_move_count=1,
        include_demo=True,
    )
    fields.update(overrides)
    return PricingInput(**fields)


# ---------- rules ----------

def test_round_to_nearest_ten_halves_up():
    assert round_to(10644.99) == 10640
    assert round_to(10645) == 10650
    assert round_to(4.9) == 0
    assert round_to(5) == 10


def test_countertop_area_uses_25_inch_depth():
    assert approx(countertop_area(12), 25.0)
    assert approx(countertop_area(16), 16 * 25 / 12)


def test_variance_band_is_eight_percent():
    low, high = variance_band(10000, 8)
    assert (low, high) == (9200, 10800)


# ---------- engine ----------

def test_medium_example_scenario(pricebook):
    est = calculate_estimate(medium(), pricebook)

    cabinets = 175 * 25 + 55 * 25
    countertops = 85 * (16 * 25 / 12) + 45 * 16
    flooring = 3.1 * 144
    plumbing = 500
    demo = 400
    raw = cabinets + countertops + flooring + plumbing + demo

    assert est.subtotal == round_to(raw) == 10650
    assert est.low == round_to(raw * 0.92) == 9800
    assert est.high == round_to(raw * 1.08) == 11500
    assert est.deposit_credit == 28.75


def test_line_items_sum_to_unrounded_subtotal(pricebook):
    items = line_items(medium(), pricebook)
    by_code = {i.code: i for i in items}

    assert [i.code for i in items] == [
        "cabinets",
        "cabinet_install",
        "countertops",
        "template_fab",
        "flooring",
        "plumbing_moves",
        "demo",
    ]
    assert approx(by_code["cabinets"].total, 4375)
    assert approx(by_code["flooring"].quantity, 144)
    assert approx(sum(i.total for i in items), 10649.7333333, tol=1e-4)


def test_good_tier_uses_base_cabinet_rate(pricebook):
    items = line_items(medium(tier="GOOD"), pricebook)
    cab = next(i for i in items if i.code == "cabinets")
    assert cab.unit_price == 140


@pytest.mark.parametrize("countertop", ["QUARTZ", "GRANITE"])
@pytest.mark.parametrize("flooring", ["LVP", "TILE"])
def test_price_is_monotonic_in_tier(pricebook, countertop, flooring):
    subtotals = [
        calculate_estimate(medium(tier=t, countertop_material=countertop, flooring_material=flooring), pricebook).subtotal
        for t in TIERS
    ]
    assert subtotals == sorted(subtotals)


@pytest.mark.parametrize(
    "sizes",
    [
        dict(length_ft=10, width_ft=10, cabinet_lf=18, countertop_lf=12),
        dict(length_ft=14, width_ft=14, cabinet_lf=32, countertop_lf=22),
        dict(length_ft=0.5, width_ft=0.5, cabinet_lf=0, countertop_lf=0),
        dict(length_ft=30, width_ft=22.5, cabinet_lf=61.5, countertop_lf=40),
    ],
)
def test_band_brackets_subtotal(pricebook, sizes):
    est = calculate_estimate(medium(include_demo=False, plumbing_move_count=0, **sizes), pricebook)
    assert est.low <= est.subtotal <= est.high
    spread = est.high - est.low
    assert spread >= 0
    # ~16% of subtotal, give or take the two roundings
    assert abs(spread - 0.16 * est.subtotal) <= 20 + 0.16 * 10


def test_demo_and_plumbing_add_ons(pricebook):
    base = calculate_estimate(medium(include_demo=False, plumbing_move_count=0), pricebook)
    with_demo = calculate_estimate(medium(include_demo=True, plumbing_move_count=0), pricebook)
    with_moves = calculate_estimate(medium(include_demo=False, plumbing_move_count=2, tier="BEST"), pricebook)
    best_base = calculate_estimate(medium(include_demo=False, plumbing_move_count=0, tier="BEST"), pricebook)

    assert with_demo.subtotal - base.subtotal == pytest.approx(400, abs=10)
    assert with_moves.subtotal - best_base.subtotal == pytest.approx(1500, abs=10)


def test_estimate_is_cached_for_equal_inputs(pricebook):
    a = calculate_estimate(medium(), pricebook)
    b = calculate_estimate(medium(), pricebook)
    assert a is b


@pytest.mark.parametrize(
    "bad",
    [
        dict(cabinet_lf=-1),
        dict(countertop_lf=-0.5),
        dict(length_ft=0),
        dict(width_ft=-12),
        dict(plumbing_move_count=-1),
    ],
)
def test_invalid_inputs_are_rejected(bad):
    with pytest.raises(ValidationError):
        medium(**bad)


def test_calculate_quote_notes_and_breakdown(pricebook):
    result = calculate_quote(medium(include_demo=False, plumbing_move_count=0), pricebook, preset="MEDIUM")

    assert "Preset 'MEDIUM' sizes applied." in result.notes
    assert "Demo excluded." in result.notes
    assert "No plumbing moves." in result.notes
    demo = next(i for i in result.line_items if i.code == "demo")
    assert demo.total == 0
    assert result.estimate == calculate_estimate(medium(include_demo=False, plumbing_move_count=0), pricebook)
