# cli/app.py
# CLI = terminal kiosk. Drives core.wizard exactly like a touch screen would.

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Sequence

from core.calculator import calculate_quote
from core.config import settings
from core.logs import setup_logging
from core.store import build_store
from core.wizard import (
    ChooseCountertop,
    ChooseFlooring,
    ChoosePreset,
    ChooseSizeMode,
    ChooseSlot,
    ChooseTier,
    EditAddOns,
    EditCustomer,
    EditDimensions,
    EditLinearFeet,
    KioskWizard,
    WizardEvent,
)

logger = logging.getLogger(__name__)


# ---------- INPUT HELPERS ----------

def ask_float_default(
    prompt: str, default: float, *, min_value: float | None = None, positive: bool = False
) -> float:
    """Number input with a default: Enter -> default."""
    while True:
        raw = input(f"{prompt} [{default}]: ").strip()
        if raw == "":
            value = float(default)
        else:
            raw = raw.replace(",", ".")
            try:
                value = float(raw)
            except ValueError:
                print("❌ Enter a number or press Enter")
                continue

        if min_value is not None and value < min_value:
            print(f"❌ Value must be >= {min_value}")
            continue
        if positive and value <= 0:
            print("❌ Value must be > 0")
            continue
        return value


def ask_int_default(prompt: str, default: int, *, min_value: int = 0) -> int:
    while True:
        raw = input(f"{prompt} [{default}]: ").strip()
        if raw == "":
            return default
        try:
            value = int(raw)
        except ValueError:
            print("❌ Enter a whole number or press Enter")
            continue
        if value < min_value:
            print(f"❌ Value must be >= {min_value}")
            continue
        return value


def ask_yes_no(prompt: str) -> bool:
    """Yes/no input: returns True or False."""
    while True:
        raw = input(prompt + " (y/n): ").strip().lower()
        if raw in ("y", "yes"):
            return True
        if raw in ("n", "no"):
            return False
        print("❌ Enter y or n")


def ask_choice(prompt: str, options: Sequence[str], default: str | None = None) -> str:
    """Pick one option by number or by exact value."""
    for i, opt in enumerate(options, start=1):
        print(f" {i}) {opt}")
    suffix = f" [{default}]" if default else ""
    while True:
        raw = input(f"{prompt}{suffix}: ").strip()
        if raw == "" and default:
            return default
        if raw.isdigit() and 1 <= int(raw) <= len(options):
            return options[int(raw) - 1]
        for opt in options:
            if raw.upper() == opt.upper():
                return opt
        print("❌ Choose one of the listed options")


def money(x: float) -> str:
    return f"${x:,.2f}"


class ConsoleNotifier:
    """Toasts for the terminal."""

    def notify(self, kind: str, message: str) -> None:
        mark = {"error": "❌", "success": "✅"}.get(kind, "ℹ️")
        print(f"{mark} {message}")


# ---------- STEPS ----------

def step_welcome(wizard: KioskWizard) -> None:
    deposit = wizard.pricebook.deposit
    print("\n=== Kiosk – Quick Estimate & Appointment ===\n")
    print("Plan your dream kitchen: a fast estimate in minutes.")
    print(f"A refundable {money(deposit)} deposit reserves your design consultation.")
    print("Your estimate is for planning only. Final quote after on-site measure & design.\n")
    input("Press Enter to start...")


def dispatch_until_ok(wizard: KioskWizard, ask: Callable[[], WizardEvent]) -> None:
    """Asks again until the wizard accepts the edit; the notifier shows why it didn't."""
    while not wizard.dispatch(ask()).ok:
        print("Please try again.")


def step_customer(wizard: KioskWizard) -> None:
    print("\n--- Your Info ---")

    def ask() -> EditCustomer:
        current = wizard.state.draft.customer
        return EditCustomer(
            name=input(f"Full name [{current.name}]: ").strip() or current.name,
            phone=input(f"Phone [{current.phone}]: ").strip() or current.phone,
            email=input(f"Email [{current.email}]: ").strip() or current.email,
        )

    dispatch_until_ok(wizard, ask)


def step_kitchen(wizard: KioskWizard) -> None:
    pb = wizard.pricebook
    print("\n--- Kitchen Basics ---")

    if ask_yes_no("Use a preset kitchen size?"):
        labels = [
            f"{p.id}: {p.label} ({p.length_ft:g}×{p.width_ft:g} ft, cabinets {p.cabinet_lf:g} lf, CT {p.countertop_lf:g} lf)"
            for p in pb.presets
        ]
        dispatch_until_ok(wizard, lambda: ChoosePreset(preset_id=ask_choice("Choose preset", labels).split(":", 1)[0]))
        return

    dispatch_until_ok(wizard, lambda: ChooseSizeMode(mode="MANUAL"))

    def ask_dimensions() -> EditDimensions:
        dims = wizard.state.draft.dimensions
        return EditDimensions(
            length_ft=ask_float_default("Room length (ft)", dims.length_ft, positive=True),
            width_ft=ask_float_default("Room width (ft)", dims.width_ft, positive=True),
        )

    def ask_linear_feet() -> EditLinearFeet:
        lf = wizard.state.draft.linear_feet
        return EditLinearFeet(
            cabinet_lf=ask_float_default("Cabinets (linear ft)", lf.cabinet_lf, min_value=0),
            countertop_lf=ask_float_default("Countertops (linear ft)", lf.countertop_lf, min_value=0),
        )

    dispatch_until_ok(wizard, ask_dimensions)
    dispatch_until_ok(wizard, ask_linear_feet)


def step_materials(wizard: KioskWizard) -> None:
    draft = wizard.state.draft
    print("\n--- Materials & Tier ---")
    dispatch_until_ok(wizard, lambda: ChooseTier(tier=ask_choice("Quality tier", ["GOOD", "BETTER", "BEST"], draft.tier)))
    dispatch_until_ok(
        wizard,
        lambda: ChooseCountertop(material=ask_choice("Countertops", ["QUARTZ", "GRANITE"], draft.countertop_material)),
    )
    dispatch_until_ok(
        wizard, lambda: ChooseFlooring(material=ask_choice("Flooring", ["LVP", "TILE"], draft.flooring_material))
    )
    dispatch_until_ok(
        wizard,
        lambda: EditAddOns(
            plumbing_move_count=ask_int_default("Plumbing moves (qty)", draft.add_ons.plumbing_move_count),
            include_demo=ask_yes_no("Include demo allowance?"),
        ),
    )

    est = wizard.state.draft.estimate
    print(f"\nLive total: {money(est.low)} – {money(est.high)} (subtotal approx. {money(est.subtotal)})")


def step_estimate(wizard: KioskWizard) -> None:
    draft = wizard.state.draft
    result = calculate_quote(draft.pricing_input(), wizard.pricebook, draft.preset_id if draft.size_mode == "PRESET" else None)

    print("\n--- Your Estimate ---")
    for item in result.line_items:
        if item.quantity:
            print(f"{item.description:<34} {item.quantity:>8,.2f} {item.unit:<3} {money(item.total):>12}")
    print(f"{'Subtotal (approx.)':<47} {money(result.estimate.subtotal):>12}")
    print(f"{'Range':<34} {money(result.estimate.low)} – {money(result.estimate.high)}")

    if result.notes:
        print("\nNotes:")
        for n in result.notes:
            print(f" - {n}")
    input("\nPress Enter to choose an appointment...")


def step_appointment(wizard: KioskWizard) -> None:
    print("\n--- Book Your Consultation ---")
    slots = list(wizard.pricebook.slots)
    dispatch_until_ok(
        wizard, lambda: ChooseSlot(slot=ask_choice("Select a time", slots, wizard.state.draft.appointment_slot))
    )


def step_payment(wizard: KioskWizard) -> bool:
    draft = wizard.state.draft
    print("\n--- Reserve with Deposit ---")
    print(f"Amount: {money(wizard.pricebook.deposit)} (refundable as credit toward your order)")
    print(f"Customer: {draft.customer.name} • {draft.customer.phone} • {draft.customer.email}")
    print(f"Slot: {draft.appointment_slot}")
    return ask_yes_no(f"Pay {money(wizard.pricebook.deposit)} & confirm?")


def step_confirm(wizard: KioskWizard) -> bool:
    draft = wizard.state.draft
    print("\n=== You're Booked! ===")
    print(f"Thanks, {draft.customer.name or 'Customer'}. Your consultation is reserved for {draft.appointment_slot}.")
    print(f"Reference: {draft.reference_code}")
    print(f"Your {money(wizard.pricebook.deposit)} deposit is credited toward your order.\n")
    return ask_yes_no("Start a new quote?")


# ---------- MAIN LOOP ----------

async def run_kiosk(wizard: KioskWizard) -> None:
    steps = {
        "welcome": step_welcome,
        "customer": step_customer,
        "kitchen": step_kitchen,
        "materials": step_materials,
        "estimate": step_estimate,
        "appointment": step_appointment,
    }

    while True:
        step = wizard.state.step

        if step == "confirm":
            if not step_confirm(wizard):
                return
            wizard.reset()
            continue

        if step == "payment":
            if not step_payment(wizard):
                print("Deposit not taken. Your quote is saved as a draft.")
                return
        else:
            steps[step](wizard)

        await wizard.advance()


def main() -> None:
    setup_logging()
    store = build_store(settings)
    wizard = KioskWizard(store, notifier=ConsoleNotifier())
    logger.info("Kiosk started (store=%s, env=%s)", settings.store, settings.environment)
    try:
        asyncio.run(run_kiosk(wizard))
    except (KeyboardInterrupt, EOFError):
        print("\nBye.")


if __name__ == "__main__":
    main()
