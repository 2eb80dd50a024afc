# core/rules.py
# Area and rounding rules shared by the pricing engine.

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal


def countertop_area(countertop_lf: float, depth_in: float = 25) -> float:
    """Countertop area (sqft) = run length * standard depth in feet."""
    return countertop_lf * (depth_in / 12.0)


def room_area(length_ft: float, width_ft: float) -> float:
    """Flooring covers the whole room footprint."""
    return length_ft * width_ft


def round_to(value: float, step: float = 10) -> float:
    """Round to the nearest multiple of step, halves away from zero."""
    units = (Decimal(str(value)) / Decimal(str(step))).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return float(units * Decimal(str(step)))


def variance_band(subtotal: float, variance_pct: float, step: float = 10) -> tuple[float, float]:
    """(low, high) around an unrounded subtotal, each rounded to step."""
    spread = variance_pct / 100.0
    return round_to(subtotal * (1 - spread), step), round_to(subtotal * (1 + spread), step)
