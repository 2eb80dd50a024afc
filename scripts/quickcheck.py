"""Quick runtime checks for the kiosk quote builder.
Run: python scripts/quickcheck.py
Exits with code 0 on success, non-zero on failure.
"""
import asyncio

from core.calculator import calculate_estimate
from core.models import PricingInput
from core.store import InMemoryQuoteStore
from core.wizard import ChooseSlot, EditCustomer, KioskWizard


def approx(a, b, tol=1e-6):
    return abs(a - b) <= tol


async def walk_wizard():
    store = InMemoryQuoteStore()
    wizard = KioskWizard(store)

    await wizard.advance()  # welcome -> customer
    wizard.dispatch(EditCustomer(name="Jane Customer", phone="(555) 123-4567", email="jane@example.com"))
    for _ in range(4):  # customer -> kitchen -> materials -> estimate -> appointment
        assert (await wizard.advance()).ok
    wizard.dispatch(ChooseSlot(slot="Wed 9:30 AM"))
    assert (await wizard.advance()).ok  # -> payment
    assert (await wizard.advance()).ok  # -> confirm

    draft = wizard.state.draft
    assert draft.status == "APPOINTMENT_BOOKED"
    assert draft.reference_code.startswith("KQ-")
    stored = await store.get(draft.id)
    assert stored.reference_code == draft.reference_code


def main():
    # MEDIUM kitchen, BETTER, quartz, LVP, 1 plumbing move, demo
    inputs = PricingInput(
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

    est = calculate_estimate(inputs)

    assert approx(est.subtotal, 10650.0)
    assert approx(est.low, 9800.0)
    assert approx(est.high, 11500.0)
    assert approx(est.deposit_credit, 28.75)

    asyncio.run(walk_wizard())

    print("Quickcheck OK")


if __name__ == '__main__':
    main()
