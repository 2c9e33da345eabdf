"""Per-item quick-roll flags — every toggle has a primary and an alternate column."""

from __future__ import annotations

from pydantic import BaseModel

from quickroll.models.roll import ConsumptionRequest, PresetSelector


class Toggle(BaseModel):
    primary: bool = False
    alternate: bool = False

    def pick(self, selector: PresetSelector) -> bool:
        return self.alternate if selector == PresetSelector.ALTERNATE else self.primary


class DamageToggles(BaseModel):
    """One boolean per damage formula slot, plus an optional label per slot."""

    primary: list[bool] = []
    alternate: list[bool] = []
    context: list[str | None] = []

    def pick(self, selector: PresetSelector) -> list[bool]:
        return self.alternate if selector == PresetSelector.ALTERNATE else self.primary

    def context_for(self, index: int) -> str | None:
        if 0 <= index < len(self.context):
            return self.context[index]
        return None


class ChargeToggles(BaseModel):
    primary: ConsumptionRequest = ConsumptionRequest()
    alternate: ConsumptionRequest = ConsumptionRequest()

    def pick(self, selector: PresetSelector) -> ConsumptionRequest:
        return self.alternate if selector == PresetSelector.ALTERNATE else self.primary


class ActionFlags(BaseModel):
    """Quick-roll configuration of one item.

    A toggle left as None does not apply to the item's type.
    """

    crit_range: int | None = None
    crit_damage: int | None = None  # damage slot rolled as extra crit damage
    quick_desc: Toggle | None = None
    quick_attack: Toggle | None = None
    quick_save: Toggle | None = None
    quick_check: Toggle | None = None
    quick_damage: DamageToggles | None = None
    quick_versatile: Toggle | None = None
    quick_properties: Toggle | None = None
    quick_charges: ChargeToggles | None = None
    quick_template: Toggle | None = None
    quick_other: Toggle | None = None
    other_context: str | None = None
    quick_flavor: Toggle | None = None
    quick_prompt: Toggle | None = None

    def is_on(self, name: str, selector: PresetSelector) -> bool:
        toggle = getattr(self, name)
        return toggle is not None and toggle.pick(selector)
