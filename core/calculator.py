from __future__ import annotations

from functools import lru_cache
from typing import Optional

from .models import Estimate, LineItem, PricingInput, QuoteResult
from .pricebook import Pricebook, default_pricebook
from .rules import countertop_area, room_area, round_to, variance_band


def _money(x: float) -> float:
    # stable cents rounding
    return round(float(x) + 1e-9, 2)


def line_items(inputs: PricingInput, pricebook: Optional[Pricebook] = None) -> list[LineItem]:
    """Itemised costs. Their totals add up to the unrounded subtotal."""
    pb = pricebook or default_pricebook()
    tier = inputs.tier

    # Cabinets: GOOD base + tier delta, per linear foot; install is tier-independent
    cab = pb.cabinets
    cab_unit = cab.good + (cab.for_tier(tier) - cab.good)

    # Countertops: LF -> SF at standard depth
    ct_rates = pb.countertops.for_material(inputs.countertop_material)
    ct_sf = countertop_area(inputs.countertop_lf, pb.countertop_depth_in)
    ct_unit = ct_rates.for_tier(tier)

    fl_rates = pb.flooring.for_material(inputs.flooring_material)
    fl_sf = room_area(inputs.length_ft, inputs.width_ft)
    fl_unit = fl_rates.for_tier(tier)

    plumb_unit = pb.addons.plumbing_move_each.for_tier(tier)

    rows = [
        ("cabinets", f"Cabinets ({tier.title()})", inputs.cabinet_lf, "lf", cab_unit),
        ("cabinet_install", "Cabinet install", inputs.cabinet_lf, "lf", cab.install_lf),
        ("countertops", f"{inputs.countertop_material.title()} countertops ({tier.title()})", ct_sf, "sf", ct_unit),
        ("template_fab", "Template + fabrication", inputs.countertop_lf, "lf", pb.countertops.template_fab_lf),
        ("flooring", f"{inputs.flooring_material} flooring ({tier.title()})", fl_sf, "sf", fl_unit),
        ("plumbing_moves", "Move plumbing", float(inputs.plumbing_move_count), "ea", plumb_unit),
        ("demo", "Demo allowance", 1.0 if inputs.include_demo else 0.0, "ea", pb.addons.demo_allowance),
    ]

    return [
        LineItem(code=code, description=desc, quantity=qty, unit=unit, unit_price=price, total=qty * price)
        for code, desc, qty, unit, price in rows
    ]


@lru_cache(maxsize=256)
def calculate_estimate(inputs: PricingInput, pricebook: Optional[Pricebook] = None) -> Estimate:
    """Ballpark range for a kitchen. Same inputs -> same (cached) Estimate."""
    pb = pricebook or default_pricebook()

    subtotal = sum(item.total for item in line_items(inputs, pb))

    # ±variance on the unrounded subtotal
    low, high = variance_band(subtotal, pb.variance_pct, pb.round_step)

    return Estimate(
        low=low,
        high=high,
        subtotal=round_to(subtotal, pb.round_step),
        deposit_credit=pb.deposit,
    )


def calculate_quote(inputs: PricingInput, pricebook: Optional[Pricebook] = None, preset: Optional[str] = None) -> QuoteResult:
    pb = pricebook or default_pricebook()
    notes: list[str] = []

    if preset is not None:
        notes.append(f"Preset '{preset}' sizes applied.")
    if not inputs.include_demo:
        notes.append("Demo excluded.")
    if inputs.plumbing_move_count == 0:
        notes.append("No plumbing moves.")
    notes.append(f"Deposit of {pb.deposit:.2f} is credited toward the order.")

    items = [
        item.model_copy(update={"total": _money(item.total), "quantity": _money(item.quantity)})
        for item in line_items(inputs, pb)
    ]

    return QuoteResult(
        estimate=calculate_estimate(inputs, pb),
        line_items=items,
        notes=notes,
    )
