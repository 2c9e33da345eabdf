"""Immutable actor/item snapshots consumed by the roll pipeline."""

from __future__ import annotations

from pydantic import BaseModel

from quickroll.models.flags import ActionFlags

ATTACK_ACTION_TYPES = ("mwak", "rwak", "msak", "rsak")
WEAPON_ACTION_TYPES = ("mwak", "rwak")


class SaveStat(BaseModel):
    value: int = 0
    prof: float = 0


class PoolState(BaseModel):
    remaining: int = 0
    limit: int = 0


class ActionBonus(BaseModel):
    attack: str = ""
    damage: str = ""


class ActorFlags(BaseModel):
    savage_attacks: bool = False
    weapon_critical_threshold: int | None = None
    halfling_luck: bool = False
    jack_of_all_trades: bool = False


class ActorSnapshot(BaseModel):
    model_config = {"frozen": True}

    id: str
    name: str
    img: str | None = None
    actor_type: str = "character"  # "character" | "npc"
    abilities: dict[str, int] = {}
    proficiency: int = 0
    bonuses: dict[str, ActionBonus] = {}
    check_bonus: str = ""
    save_bonus: str = ""
    skill_bonus: str = ""
    saves: dict[str, SaveStat] = {}
    skills: dict[str, int] = {}
    flags: ActorFlags = ActorFlags()
    resources: dict[str, PoolState] = {}

    def ability_value(self, ability: str | None) -> int:
        if not ability:
            return 0
        return self.abilities.get(ability, 0)

    def roll_bindings(self) -> dict:
        """Base binding map shared by every roll of this actor."""
        return {
            "abilities": {k: {"value": v} for k, v in self.abilities.items()},
            "attributes": {"prof": self.proficiency},
            "prof": self.proficiency,
            "bonuses": {k: b.model_dump() for k, b in self.bonuses.items()},
        }


class DamagePart(BaseModel):
    formula: str
    damage_type: str = ""


class SaveSpec(BaseModel):
    save_id: str
    dc: int | None = None
    ability: str | None = None


class ScalingSpec(BaseModel):
    mode: str = "none"  # "none" | "augment" | "enhance"
    formula: str = ""


class ConsumeSpec(BaseModel):
    type: str = ""  # "ammo" | "charges" | "attribute"
    target: str | None = None
    amount: int = 1


class ItemResources(BaseModel):
    uses_value: int = 0
    uses_max: int = 0
    uses_per: str | None = None
    quantity: int = 1
    auto_destroy: bool = False
    recharge_charged: bool | None = None
    consume: ConsumeSpec = ConsumeSpec()


class ItemSnapshot(BaseModel):
    model_config = {"frozen": True}

    id: str
    name: str
    img: str | None = None
    item_type: str  # weapon | superpower | equipment | feature | tool | consumable | loot
    action_type: str = ""
    ability: str = ""
    proficient: bool = False
    check_proficiency: float | None = None
    attack_bonus: str = ""
    check_bonus: str = ""
    finesse: bool = False
    damage_parts: list[DamagePart] = []
    versatile_formula: str = ""
    other_formula: str = ""
    save: SaveSpec | None = None
    chat_flavor: str = ""
    description: str = ""
    cost: int | None = None
    is_maneuver: bool = False
    scaling: ScalingSpec = ScalingSpec()
    target_type: str = ""
    has_placeable_template: bool = False
    details: dict = {}
    resources: ItemResources = ItemResources()
    flags: ActionFlags | None = None
    actor: ActorSnapshot

    @property
    def is_attack(self) -> bool:
        return self.action_type in ATTACK_ACTION_TYPES

    @property
    def is_weapon_attack(self) -> bool:
        return self.action_type in WEAPON_ACTION_TYPES

    @property
    def is_check(self) -> bool:
        return self.item_type == "tool" or self.check_proficiency is not None

    @property
    def has_save(self) -> bool:
        return self.save is not None

    @property
    def ability_mod(self) -> str:
        """Ability governing attack rolls."""
        if self.ability:
            return self.ability
        if self.item_type == "weapon":
            if self.finesse:
                strength = self.actor.ability_value("str")
                return "str" if strength >= self.actor.ability_value("dex") else "dex"
            if self.action_type == "rwak":
                return "dex"
            return "str"
        return ""

    @property
    def resource_pool_name(self) -> str:
        return "stamina" if self.is_maneuver else "mana"

    def save_dc(self) -> int | None:
        if self.save is None:
            return None
        if self.save.dc is not None:
            return self.save.dc
        ability = self.save.ability or self.ability_mod
        return 8 + self.actor.proficiency + self.actor.ability_value(ability)
