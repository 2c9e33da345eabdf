"""Roll value types — dice results, roll parameters, config snapshot."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class RollState(str, Enum):
    HIGHEST = "highest"
    LOWEST = "lowest"


class CritTag(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    MIXED = "mixed"
    NONE = "none"


class CritBehavior(str, Enum):
    OFF = "off"
    DEFAULT = "default"
    MAXIMIZE_BASE = "maximize_base"
    MAXIMIZE_BOTH = "maximize_both"


class PresetSelector(str, Enum):
    PRIMARY = "primary"
    ALTERNATE = "alternate"


class HideDC(str, Enum):
    NEVER = "never"
    NPC = "npc"
    ALWAYS = "always"


def roll_state_for(advantage: int, disadvantage: int) -> RollState | None:
    """Advantage beats disadvantage only when strictly greater, and vice versa."""
    if advantage > disadvantage:
        return RollState.HIGHEST
    if disadvantage > advantage:
        return RollState.LOWEST
    return None


class DieResult(BaseModel):
    face_count: int
    rolled_value: int
    discarded: bool = False


class RollOutcome(BaseModel):
    """One evaluated formula: its rendered formula, total and individual dice."""

    formula: str
    total: int
    dice: list[DieResult] = []
    ignored: bool = False
    crit: CritTag = CritTag.NONE


class ResolvedRoll(BaseModel):
    formula: str
    outcomes: list[RollOutcome]
    chosen_total: int
    is_crit: bool = False
    roll_state: RollState | None = None


class ConsumptionRequest(BaseModel):
    """Four independent resource axes; any subset may be requested."""

    model_config = {"frozen": True}

    use_charge: bool = False
    use_quantity: bool = False
    use_resource_pool: bool = False
    use_recharge: bool = False

    @property
    def is_empty(self) -> bool:
        return not (
            self.use_charge
            or self.use_quantity
            or self.use_resource_pool
            or self.use_recharge
        )


class RollParameters(BaseModel):
    model_config = {"frozen": True}

    advantage_count: int = Field(0, ge=0)
    disadvantage_count: int = Field(0, ge=0)
    triple_requested: bool = False
    force_crit: bool = False
    crit_threshold_override: int | None = None
    spent_cost: int | None = None
    consumption: ConsumptionRequest | None = None  # None: taken from the preset
    preset: PresetSelector | None = None
    crit_behavior: CritBehavior | None = None  # per-action override of the config
    versatile: bool = False
    properties: bool = True
    use_template: bool = False
    target_type: str | None = None
    title: str | None = None

    @property
    def roll_state(self) -> RollState | None:
        return roll_state_for(self.advantage_count, self.disadvantage_count)


class RollConfig(BaseModel):
    """Settings snapshot taken once per action."""

    model_config = {"frozen": True}

    d20_mode: int = Field(1, ge=1)
    crit_behavior: CritBehavior = CritBehavior.DEFAULT
    crit_string: str = "Crit"
    query_advantage_enabled: bool = False
    alt_secondary_enabled: bool = True
    quick_default_description_enabled: bool = False
    hide_dc: HideDC = HideDC.NEVER
