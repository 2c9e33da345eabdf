"""Result fragments — renderable pipeline output, one per produced field."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from quickroll.models.roll import RollOutcome, RollState


class MultiRollFragment(BaseModel):
    """Attack, check and custom rolls: several outcomes, one chosen."""

    kind: Literal["attack", "check", "custom"]
    title: str | None = None
    formula: str
    roll_state: RollState | None = None
    outcomes: list[RollOutcome]
    total: int
    is_crit: bool = False


class DamageFragment(BaseModel):
    """Damage, other-formula and extra crit damage rolls."""

    kind: Literal["damage", "other", "crit"]
    index: int | None = None
    damage_type: str = ""
    context: str | None = None
    versatile: bool = False
    base: RollOutcome
    crit: RollOutcome | None = None
    max_base: int
    max_crit: int | None = None
    crit_label: str | None = None
    is_crit: bool = False


class SaveButtonFragment(BaseModel):
    kind: Literal["save"] = "save"
    save_id: str
    dc: int | None = None
    hide_dc: bool = False


class TextFragment(BaseModel):
    kind: Literal["text", "description"] = "text"
    content: str


class FlavorFragment(BaseModel):
    kind: Literal["flavor"] = "flavor"
    content: str


ResultFragment = Annotated[
    Union[
        MultiRollFragment,
        DamageFragment,
        SaveButtonFragment,
        TextFragment,
        FlavorFragment,
    ],
    Field(discriminator="kind"),
]
