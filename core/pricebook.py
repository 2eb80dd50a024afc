# core/pricebook.py
# Rate table, room presets and appointment slots, loaded from data/pricebook.json.

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .config import settings
from .models import CountertopMaterial, Dimensions, FlooringMaterial, LinearFeet, Tier

logger = logging.getLogger(__name__)


class TierRates(BaseModel):
    model_config = ConfigDict(frozen=True)

    good: float = Field(ge=0)
    better: float = Field(ge=0)
    best: float = Field(ge=0)

    @model_validator(mode="after")
    def _check_order(self) -> "TierRates":
        if not (self.good <= self.better <= self.best):
            raise ValueError(
                f"tier prices must not decrease: good={self.good} better={self.better} best={self.best}"
            )
        return self

    def for_tier(self, tier: Tier) -> float:
        return {"GOOD": self.good, "BETTER": self.better, "BEST": self.best}[tier]


class CabinetRates(TierRates):
    unit: str = "lf"
    install_lf: float = Field(ge=0)


class CountertopRates(BaseModel):
    model_config = ConfigDict(frozen=True)

    unit: str = "sf"
    quartz: TierRates
    granite: TierRates
    template_fab_lf: float = Field(ge=0)

    def for_material(self, material: CountertopMaterial) -> TierRates:
        return self.quartz if material == "QUARTZ" else self.granite


class FlooringRates(BaseModel):
    model_config = ConfigDict(frozen=True)

    unit: str = "sf"
    lvp: TierRates
    tile: TierRates

    def for_material(self, material: FlooringMaterial) -> TierRates:
        return self.lvp if material == "LVP" else self.tile


class AddOnRates(BaseModel):
    model_config = ConfigDict(frozen=True)

    plumbing_move_each: TierRates
    demo_allowance: float = Field(ge=0)


class Preset(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    length_ft: float = Field(gt=0)
    width_ft: float = Field(gt=0)
    cabinet_lf: float = Field(ge=0)
    countertop_lf: float = Field(ge=0)

    @property
    def dimensions(self) -> Dimensions:
        return Dimensions(length_ft=self.length_ft, width_ft=self.width_ft)

    @property
    def linear_feet(self) -> LinearFeet:
        return LinearFeet(cabinet_lf=self.cabinet_lf, countertop_lf=self.countertop_lf)


class Pricebook(BaseModel):
    model_config = ConfigDict(frozen=True)

    currency: str = "USD"
    deposit: float = Field(ge=0)
    countertop_depth_in: float = Field(default=25, gt=0)
    variance_pct: float = Field(default=8, ge=0, lt=100)
    round_step: float = Field(default=10, gt=0)

    cabinets: CabinetRates
    countertops: CountertopRates
    flooring: FlooringRates
    addons: AddOnRates

    default_preset: str
    presets: tuple[Preset, ...]
    slots: tuple[str, ...]

    @model_validator(mode="after")
    def _check_presets(self) -> "Pricebook":
        ids = [p.id for p in self.presets]
        if len(set(ids)) != len(ids):
            raise ValueError(f"duplicate preset ids: {ids}")
        if self.default_preset not in ids:
            raise ValueError(f"default preset '{self.default_preset}' is not defined")
        return self

    def preset(self, preset_id: Optional[str]) -> Optional[Preset]:
        for p in self.presets:
            if p.id == preset_id:
                return p
        return None


def load_pricebook(path: Path) -> Pricebook:
    """Reads a pricebook JSON file. Raises ValueError on bad rates."""
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    pricebook = Pricebook.model_validate(raw)
    logger.info(
        "Loaded pricebook from %s (%d presets, %d slots)",
        path,
        len(pricebook.presets),
        len(pricebook.slots),
    )
    return pricebook


@lru_cache(maxsize=1)
def default_pricebook() -> Pricebook:
    return load_pricebook(settings.pricebook_path)
