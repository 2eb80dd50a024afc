from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Tier = Literal["GOOD", "BETTER", "BEST"]
CountertopMaterial = Literal["QUARTZ", "GRANITE"]
FlooringMaterial = Literal["LVP", "TILE"]
SizeMode = Literal["PRESET", "MANUAL"]
DraftStatus = Literal["DRAFT", "APPOINTMENT_BOOKED"]

TIERS: tuple[Tier, ...] = ("GOOD", "BETTER", "BEST")


class Customer(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = ""
    phone: str = ""
    email: str = ""

    def missing_fields(self) -> list[str]:
        return [f for f in ("name", "email", "phone") if not getattr(self, f).strip()]


class Dimensions(BaseModel):
    model_config = ConfigDict(frozen=True)

    length_ft: float = Field(gt=0)
    width_ft: float = Field(gt=0)

    @property
    def area_sf(self) -> float:
        return self.length_ft * self.width_ft


class LinearFeet(BaseModel):
    model_config = ConfigDict(frozen=True)

    cabinet_lf: float = Field(ge=0)
    countertop_lf: float = Field(ge=0)


class AddOns(BaseModel):
    model_config = ConfigDict(frozen=True)

    plumbing_move_count: int = Field(default=0, ge=0)
    include_demo: bool = False


class PricingInput(BaseModel):
    """Everything the pricing engine reads. Hashable, so estimates can be memoised."""

    model_config = ConfigDict(frozen=True)

    length_ft: float = Field(gt=0)
    width_ft: float = Field(gt=0)
    cabinet_lf: float = Field(ge=0)
    countertop_lf: float = Field(ge=0)

    tier: Tier = "BETTER"
    countertop_material: CountertopMaterial = "QUARTZ"
    flooring_material: FlooringMaterial = "LVP"

    plumbing_move_count: int = Field(default=0, ge=0)
    include_demo: bool = False


class Estimate(BaseModel):
    model_config = ConfigDict(frozen=True)

    low: float
    high: float
    subtotal: float
    deposit_credit: float


class LineItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    description: str
    quantity: float
    unit: str
    unit_price: float
    total: float


class QuoteResult(BaseModel):
    estimate: Estimate
    line_items: list[LineItem]

    notes: list[str] = []


class QuoteDraft(BaseModel):
    """One kiosk session's quote. Frozen: every change goes through model_copy."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    user_id: Optional[str] = None

    customer: Customer = Customer()

    size_mode: SizeMode = "PRESET"
    preset_id: Optional[str] = None
    dimensions: Dimensions
    linear_feet: LinearFeet

    tier: Tier = "BETTER"
    countertop_material: CountertopMaterial = "QUARTZ"
    flooring_material: FlooringMaterial = "LVP"
    add_ons: AddOns = AddOns()

    estimate: Estimate

    appointment_slot: Optional[str] = None

    status: DraftStatus = "DRAFT"
    deposit_paid: bool = False
    deposit_paid_at: Optional[datetime] = None
    reference_code: Optional[str] = None
    payment_receipt: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_booked(self) -> bool:
        return self.status == "APPOINTMENT_BOOKED"

    def pricing_input(self) -> PricingInput:
        return PricingInput(
            length_ft=self.dimensions.length_ft,
            width_ft=self.dimensions.width_ft,
            cabinet_lf=self.linear_feet.cabinet_lf,
            countertop_lf=self.linear_feet.countertop_lf,
            tier=self.tier,
            countertop_material=self.countertop_material,
            flooring_material=self.flooring_material,
            plumbing_move_count=self.add_ons.plumbing_move_count,
            include_demo=self.add_ons.include_demo,
        )

    # ---------- ROW MAPPING (kiosk_quotes) ----------

    def to_record(self) -> dict[str, Any]:
        """Flat row as stored in the quotes table."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "customer_name": self.customer.name,
            "customer_phone": self.customer.phone,
            "customer_email": self.customer.email,
            "size_mode": self.size_mode,
            "preset_id": self.preset_id if self.size_mode == "PRESET" else None,
            "length_ft": self.dimensions.length_ft,
            "width_ft": self.dimensions.width_ft,
            "cabinet_lf": self.linear_feet.cabinet_lf,
            "countertop_lf": self.linear_feet.countertop_lf,
            "area_sf": self.dimensions.area_sf,
            "tier": self.tier,
            "countertop_material": self.countertop_material,
            "flooring_material": self.flooring_material,
            "plumbing_moves": self.add_ons.plumbing_move_count,
            "include_demo": self.add_ons.include_demo,
            "estimate_low": self.estimate.low,
            "estimate_high": self.estimate.high,
            "estimate_subtotal": self.estimate.subtotal,
            "deposit_amount": self.estimate.deposit_credit,
            "appointment_slot": self.appointment_slot or "",
            "status": self.status,
            "deposit_paid": self.deposit_paid,
            "deposit_paid_at": self.deposit_paid_at.isoformat() if self.deposit_paid_at else None,
            "reference_code": self.reference_code,
            "payment_receipt": self.payment_receipt,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_record(cls, row: dict[str, Any]) -> "QuoteDraft":
        return cls(
            id=row.get("id"),
            user_id=row.get("user_id"),
            customer=Customer(
                name=row.get("customer_name") or "",
                phone=row.get("customer_phone") or "",
                email=row.get("customer_email") or "",
            ),
            size_mode=row.get("size_mode", "PRESET"),
            preset_id=row.get("preset_id"),
            dimensions=Dimensions(length_ft=row["length_ft"], width_ft=row["width_ft"]),
            linear_feet=LinearFeet(cabinet_lf=row["cabinet_lf"], countertop_lf=row["countertop_lf"]),
            tier=row.get("tier", "BETTER"),
            countertop_material=row.get("countertop_material", "QUARTZ"),
            flooring_material=row.get("flooring_material", "LVP"),
            add_ons=AddOns(
                plumbing_move_count=row.get("plumbing_moves", 0),
                include_demo=bool(row.get("include_demo", False)),
            ),
            estimate=Estimate(
                low=row["estimate_low"],
                high=row["estimate_high"],
                subtotal=row["estimate_subtotal"],
                deposit_credit=row["deposit_amount"],
            ),
            appointment_slot=row.get("appointment_slot") or None,
            status=row.get("status", "DRAFT"),
            deposit_paid=bool(row.get("deposit_paid", False)),
            deposit_paid_at=row.get("deposit_paid_at"),
            reference_code=row.get("reference_code"),
            payment_receipt=row.get("payment_receipt"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )
