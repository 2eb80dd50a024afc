# core/wizard.py
# Kiosk quote wizard: an explicit state machine over (step, draft).
#
# apply_event / check_advance are pure. KioskWizard wraps them with the
# store, the toast sink and the busy guard.

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Annotated, Callable, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .booking import finalize, mint_reference_code
from .calculator import calculate_estimate
from .collaborators import CurrentUser, LoggingNotifier, Notifier, anonymous_user
from .errors import AlreadyBookedError, FinalizationError, StoreError
from .models import (
    AddOns,
    CountertopMaterial,
    Dimensions,
    FlooringMaterial,
    LinearFeet,
    PricingInput,
    QuoteDraft,
    SizeMode,
    Tier,
)
from .pricebook import Pricebook, default_pricebook
from .store import QuoteStore

logger = logging.getLogger(__name__)

Step = Literal["welcome", "customer", "kitchen", "materials", "estimate", "appointment", "payment", "confirm"]

STEPS: tuple[Step, ...] = ("welcome", "customer", "kitchen", "materials", "estimate", "appointment", "payment", "confirm")


def next_step(step: Step) -> Step:
    i = STEPS.index(step)
    if i == len(STEPS) - 1:
        raise ValueError("confirm is the last step")
    return STEPS[i + 1]


class WizardState(BaseModel):
    model_config = ConfigDict(frozen=True)

    step: Step = "welcome"
    draft: Optional[QuoteDraft] = None


class Rejected(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = "Invalid input"
    messages: tuple[str, ...]


class Outcome(BaseModel):
    ok: bool
    step: Step
    title: Optional[str] = None
    messages: list[str] = []


# ---------- EVENTS ----------


class EditCustomer(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["customer"] = "customer"

    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class ChooseSizeMode(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["size_mode"] = "size_mode"

    mode: SizeMode


class ChoosePreset(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["preset"] = "preset"

    preset_id: str


class EditDimensions(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["dimensions"] = "dimensions"

    length_ft: float
    width_ft: float


class EditLinearFeet(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["linear_feet"] = "linear_feet"

    cabinet_lf: float
    countertop_lf: float


class ChooseTier(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["tier"] = "tier"

    tier: Tier


class ChooseCountertop(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["countertop"] = "countertop"

    material: CountertopMaterial


class ChooseFlooring(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["flooring"] = "flooring"

    material: FlooringMaterial


class EditAddOns(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["add_ons"] = "add_ons"

    plumbing_move_count: Optional[int] = None
    include_demo: Optional[bool] = None


class ChooseSlot(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["slot"] = "slot"

    slot: str


WizardEvent = Annotated[
    Union[
        EditCustomer,
        ChooseSizeMode,
        ChoosePreset,
        EditDimensions,
        EditLinearFeet,
        ChooseTier,
        ChooseCountertop,
        ChooseFlooring,
        EditAddOns,
        ChooseSlot,
    ],
    Field(discriminator="kind"),
]

# step on which each kind of edit is accepted
_OWNER: dict[str, Step] = {
    "customer": "customer",
    "size_mode": "kitchen",
    "preset": "kitchen",
    "dimensions": "kitchen",
    "linear_feet": "kitchen",
    "tier": "materials",
    "countertop": "materials",
    "flooring": "materials",
    "add_ons": "materials",
    "slot": "appointment",
}


# ---------- PURE TRANSITIONS ----------


def _refresh(draft: QuoteDraft, pricebook: Pricebook, **changes) -> QuoteDraft:
    """Apply field changes and recompute the estimate from the result."""
    updated = draft.model_copy(update=changes)
    return updated.model_copy(update={"estimate": calculate_estimate(updated.pricing_input(), pricebook)})


def new_draft(pricebook: Pricebook) -> QuoteDraft:
    preset = pricebook.preset(pricebook.default_preset)
    if preset is None:
        raise ValueError(f"Default preset '{pricebook.default_preset}' is not in the pricebook")
    seed = PricingInput(
        length_ft=preset.length_ft,
        width_ft=preset.width_ft,
        cabinet_lf=preset.cabinet_lf,
        countertop_lf=preset.countertop_lf,
    )
    draft = QuoteDraft(
        preset_id=preset.id,
        dimensions=preset.dimensions,
        linear_feet=preset.linear_feet,
        estimate=calculate_estimate(seed, pricebook),
    )
    return _refresh(draft, pricebook)


def _error_messages(exc: ValidationError) -> tuple[str, ...]:
    return tuple(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())


def _changes_for(draft: QuoteDraft, event, pricebook: Pricebook) -> Union[dict, Rejected]:
    if isinstance(event, EditCustomer):
        given = {k: v.strip() for k, v in event.model_dump(exclude={"kind"}).items() if v is not None}
        return {"customer": draft.customer.model_copy(update=given)}

    if isinstance(event, ChooseSizeMode):
        if event.mode == "MANUAL":
            return {"size_mode": "MANUAL"}
        preset = pricebook.preset(draft.preset_id) or pricebook.preset(pricebook.default_preset)
        return {
            "size_mode": "PRESET",
            "preset_id": preset.id,
            "dimensions": preset.dimensions,
            "linear_feet": preset.linear_feet,
        }

    if isinstance(event, ChoosePreset):
        preset = pricebook.preset(event.preset_id)
        if preset is None:
            return Rejected(messages=(f"Unknown kitchen size '{event.preset_id}'.",))
        return {
            "size_mode": "PRESET",
            "preset_id": preset.id,
            "dimensions": preset.dimensions,
            "linear_feet": preset.linear_feet,
        }

    if isinstance(event, (EditDimensions, EditLinearFeet)):
        if draft.size_mode != "MANUAL":
            return Rejected(messages=("Switch to manual entry to edit the kitchen size.",))
        if isinstance(event, EditDimensions):
            return {"dimensions": Dimensions(length_ft=event.length_ft, width_ft=event.width_ft)}
        return {"linear_feet": LinearFeet(cabinet_lf=event.cabinet_lf, countertop_lf=event.countertop_lf)}

    if isinstance(event, ChooseTier):
        return {"tier": event.tier}
    if isinstance(event, ChooseCountertop):
        return {"countertop_material": event.material}
    if isinstance(event, ChooseFlooring):
        return {"flooring_material": event.material}

    if isinstance(event, EditAddOns):
        current = draft.add_ons
        return {
            "add_ons": AddOns(
                plumbing_move_count=current.plumbing_move_count
                if event.plumbing_move_count is None
                else event.plumbing_move_count,
                include_demo=current.include_demo if event.include_demo is None else event.include_demo,
            )
        }

    if isinstance(event, ChooseSlot):
        if event.slot not in pricebook.slots:
            return Rejected(title="Select Time Slot", messages=(f"'{event.slot}' is not an available time.",))
        return {"appointment_slot": event.slot}

    raise TypeError(f"Unsupported wizard event: {event!r}")


def apply_event(state: WizardState, event: WizardEvent, pricebook: Pricebook) -> Union[WizardState, Rejected]:
    """Field edit on the current step. Returns the next state or why it was refused."""
    owner = _OWNER[event.kind]
    if state.step != owner or state.draft is None:
        return Rejected(messages=(f"'{event.kind}' can only be changed on the {owner} step.",))

    try:
        changes = _changes_for(state.draft, event, pricebook)
    except ValidationError as e:
        return Rejected(messages=_error_messages(e))
    if isinstance(changes, Rejected):
        return changes

    return state.model_copy(update={"draft": _refresh(state.draft, pricebook, **changes)})


def _check_slot(draft: QuoteDraft, pricebook: Pricebook) -> Optional[Rejected]:
    if not draft.appointment_slot:
        return Rejected(title="Select Time Slot", messages=("Please select an appointment time.",))
    if draft.appointment_slot not in pricebook.slots:
        return Rejected(
            title="Select Time Slot",
            messages=(f"'{draft.appointment_slot}' is not an available time.",),
        )
    return None


def check_advance(state: WizardState, pricebook: Pricebook) -> Optional[Rejected]:
    """Gate for leaving the current step; None means the step may be left."""
    if state.step == "confirm":
        return Rejected(title="Booking complete", messages=("This booking is complete. Start a new quote.",))
    if state.step == "welcome":
        return None

    draft = state.draft
    if state.step == "customer":
        missing = draft.customer.missing_fields()
        if missing:
            return Rejected(
                title="Missing Information",
                messages=tuple(f"Customer {field} is required." for field in missing),
            )
    if state.step in ("appointment", "payment"):
        return _check_slot(draft, pricebook)
    return None


# ---------- SESSION ----------


class KioskWizard:
    """One kiosk session. Owns its draft until reset()."""

    def __init__(
        self,
        store: QuoteStore,
        *,
        pricebook: Optional[Pricebook] = None,
        notifier: Optional[Notifier] = None,
        current_user: Optional[CurrentUser] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.pricebook = pricebook or default_pricebook()
        self.notifier = notifier or LoggingNotifier()
        self.current_user = current_user or anonymous_user
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._state = WizardState()
        self._busy = False
        # minted on the first payment attempt, reused until it commits
        self._pending_code: Optional[str] = None

    @property
    def state(self) -> WizardState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def pending_reference_code(self) -> Optional[str]:
        return self._pending_code

    def _refuse(self, rejected: Rejected) -> Outcome:
        self.notifier.notify("error", " ".join(rejected.messages))
        return Outcome(ok=False, step=self._state.step, title=rejected.title, messages=list(rejected.messages))

    def _busy_outcome(self) -> Outcome:
        return Outcome(ok=False, step=self._state.step, title="Busy", messages=["Please wait, still saving."])

    def dispatch(self, event: WizardEvent) -> Outcome:
        if self._busy:
            return self._busy_outcome()

        result = apply_event(self._state, event, self.pricebook)
        if isinstance(result, Rejected):
            return self._refuse(result)

        self._state = result
        return Outcome(ok=True, step=result.step)

    async def advance(self) -> Outcome:
        """The Continue / Pay button."""
        if self._busy:
            return self._busy_outcome()

        state = self._state
        rejected = check_advance(state, self.pricebook)
        if rejected is not None:
            return self._refuse(rejected)

        self._busy = True
        try:
            new_state = await self._forward(state)
        except FinalizationError as e:
            logger.warning("Payment failed on step %s: %s", state.step, e)
            self.notifier.notify("error", "Failed to process payment. Please try again.")
            return Outcome(ok=False, step=self._state.step, title="Payment Error", messages=[str(e)])
        except StoreError as e:
            logger.warning("Saving quote failed on step %s: %s", state.step, e)
            self.notifier.notify("error", "Failed to save quote. Please try again.")
            return Outcome(ok=False, step=self._state.step, title="Error", messages=[str(e)])
        finally:
            self._busy = False

        self._state = new_state
        if new_state.step == "confirm":
            self.notifier.notify("success", "Your appointment has been confirmed.")
        logger.info("Kiosk quote %s: %s -> %s", new_state.draft.id, state.step, new_state.step)
        return Outcome(ok=True, step=new_state.step)

    def reset(self) -> Outcome:
        """Finish button on the confirmation screen: start over with nothing carried across."""
        if self._busy:
            return self._busy_outcome()
        if self._state.step != "confirm":
            return self._refuse(Rejected(messages=("Only a finished booking can be reset.",)))

        self._state = WizardState()
        self._pending_code = None
        return Outcome(ok=True, step="welcome")

    async def _save(self, draft: QuoteDraft) -> QuoteDraft:
        if draft.id is None and draft.user_id is None:
            try:
                user = await self.current_user()
            except Exception:
                logger.warning("Current user lookup failed; saving quote anonymously", exc_info=True)
                user = None
            if user:
                draft = draft.model_copy(update={"user_id": str(user["id"])})

        quote_id = await self.store.upsert(draft)
        return draft.model_copy(update={"id": quote_id})

    async def _forward(self, state: WizardState) -> WizardState:
        if state.step == "welcome":
            return WizardState(step="customer", draft=new_draft(self.pricebook))

        if state.step != "payment":
            return WizardState(step=next_step(state.step), draft=await self._save(state.draft))

        draft = state.draft
        if draft.id is None:
            draft = await self._save(draft)
            # keep the id even if the charge below fails, so a retry updates the same row
            self._state = state.model_copy(update={"draft": draft})

        now = self._clock()
        if self._pending_code is None:
            self._pending_code = mint_reference_code(now)
        try:
            booked = await finalize(self.store, draft, reference_code=self._pending_code, now=now)
        except AlreadyBookedError as e:
            # booked elsewhere; show that booking instead of charging again
            stored = await self.store.get(draft.id)
            if stored is None or not stored.is_booked:
                raise
            logger.warning("Quote %s was already booked as %s", draft.id, e.reference_code)
            booked = stored
        self._pending_code = None
        return WizardState(step="confirm", draft=booked)
