"""Critical hits — action-wide crit state, thresholds and crit damage dice."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass

from quickroll.models.item import ItemSnapshot
from quickroll.models.roll import CritBehavior, ResolvedRoll, RollOutcome
from quickroll.modules.dice.parser import FormulaEvaluator, add_dice, has_dice

# Natural maximum of the attack die.
GLOBAL_CRIT_MAX = 20

# Additive flat terms (+3, - @mod, +@bonuses.mwak.damage) that crit dice drop.
_FLAT_TERM = re.compile(r"[+-]+\s*(?:@[\w.]+|\d+(?![\dd]))", re.IGNORECASE)


@dataclass
class CritState:
    """Single source of truth for "is this action a critical hit".

    Seeded by ``force_crit`` or by the first attack roll; later attack-like
    fields cannot change it.
    """

    is_crit: bool = False
    seeded_by_attack: bool = False

    @classmethod
    def start(cls, force_crit: bool) -> CritState:
        return cls(is_crit=force_crit)

    def record_attack(self, resolved: ResolvedRoll) -> None:
        if self.seeded_by_attack:
            return
        self.seeded_by_attack = True
        if resolved.is_crit:
            self.is_crit = True


def attack_crit_threshold(item: ItemSnapshot, explicit: int | None = None) -> int:
    """Lowest d20 result that crits an attack made with ``item``.

    An explicit override is used verbatim. Otherwise the natural maximum is
    lowered by the item's crit range and, for weapon attacks only, by the
    wielder's weapon crit threshold.
    """
    if explicit:
        return explicit
    candidates = [GLOBAL_CRIT_MAX]
    if item.flags is not None and item.flags.crit_range:
        candidates.append(item.flags.crit_range)
    if item.is_weapon_attack and item.actor.flags.weapon_critical_threshold:
        candidates.append(item.actor.flags.weapon_critical_threshold)
    return min(candidates)


def crit_formula(formula: str) -> str:
    """Dice-only portion of a formula: additive constants and @terms removed."""
    return _FLAT_TERM.sub("", formula).strip()


def wants_crit_dice(
    is_crit: bool, force_crit: bool | str | None, behavior: CritBehavior
) -> bool:
    if behavior == CritBehavior.OFF:
        return False
    if force_crit is True:
        return True
    return is_crit and force_crit != "never"


def extra_crit_dice(item: ItemSnapshot) -> int:
    """Savage attacks add one die per dice term to weapon crits."""
    return 1 if item.item_type == "weapon" and item.actor.flags.savage_attacks else 0


def roll_crit(
    evaluator: FormulaEvaluator,
    formula: str,
    bindings: Mapping,
    base: RollOutcome,
    behavior: CritBehavior,
    extra_dice: int = 0,
) -> RollOutcome | None:
    """Roll the additional crit damage for a base damage roll.

    The result is reported beside the base roll, never merged into it.
    Returns None for dice-free formulas.
    """
    dice_only = crit_formula(formula)
    if not dice_only or not has_dice(dice_only):
        return None

    crit_bindings = {**bindings, "value": 0}
    formula = add_dice(dice_only, extra_dice)

    if behavior == CritBehavior.MAXIMIZE_BASE:
        return evaluator.maximize_outcome(formula, crit_bindings)
    if behavior == CritBehavior.MAXIMIZE_BOTH:
        delta = evaluator.maximize(base.formula) - base.total
        return evaluator.maximize_outcome(f"{formula} + {delta}", crit_bindings)
    return evaluator.evaluate(formula, crit_bindings)
