"""Actor-level standalone rolls — ability checks, saving throws, skill checks."""

from __future__ import annotations

import math
from typing import Literal

from pydantic import BaseModel, Field

from quickroll.models.fragments import MultiRollFragment
from quickroll.models.item import ActorSnapshot
from quickroll.models.result import ActionMessage
from quickroll.models.roll import RollConfig, roll_state_for
from quickroll.modules.dice.parser import FormulaEvaluator
from quickroll.modules.dice.roller import D20_FACES, resolve


class StandaloneRoll(BaseModel):
    kind: Literal["check", "save", "skill"]
    target: str  # ability id, save id or skill id
    advantage: int = Field(0, ge=0)
    disadvantage: int = Field(0, ge=0)
    triple: bool = False
    crit_threshold: int | None = None


def _d20(actor: ActorSnapshot) -> str:
    return "1d20r<2" if actor.flags.halfling_luck else "1d20"


def _check_parts(actor: ActorSnapshot, ability: str) -> tuple[list[str], dict]:
    if ability not in actor.abilities:
        raise ValueError(f"Actor {actor.id} has no ability {ability}")
    parts = ["@value"]
    bindings = {**actor.roll_bindings(), "value": actor.abilities[ability]}
    if actor.check_bonus:
        parts.append("@checkBonus")
        bindings["checkBonus"] = actor.check_bonus
    if actor.flags.jack_of_all_trades:
        parts.append("@jack")
        bindings["jack"] = math.floor(actor.proficiency / 2)
    return parts, bindings


def _save_parts(actor: ActorSnapshot, save_id: str) -> tuple[list[str], dict]:
    save = actor.saves.get(save_id)
    if save is None:
        raise ValueError(f"Actor {actor.id} has no save {save_id}")
    # Only non-zero modifiers make it into the formula.
    mods = [
        str(m)
        for m in (save.value, math.floor(save.prof * actor.proficiency))
        if m
    ]
    if actor.save_bonus:
        mods.append(actor.save_bonus)
    if not mods:
        return [], actor.roll_bindings()
    return ["@value"], {**actor.roll_bindings(), "value": " + ".join(mods)}


def _skill_parts(actor: ActorSnapshot, skill: str) -> tuple[list[str], dict]:
    if skill not in actor.skills:
        raise ValueError(f"Actor {actor.id} has no skill {skill}")
    parts = ["@value"]
    bindings = {**actor.roll_bindings(), "value": actor.skills[skill]}
    if actor.skill_bonus:
        parts.append("@skillBonus")
        bindings["skillBonus"] = actor.skill_bonus
    return parts, bindings


_TITLES = {"check": "Check", "save": "Save", "skill": "Skill"}


def roll_standalone(
    actor: ActorSnapshot,
    request: StandaloneRoll,
    config: RollConfig,
    evaluator: FormulaEvaluator,
) -> ActionMessage:
    """Roll a check, save or skill for an actor without any item.

    These never seed crit state; the d20 still gets tagged for display.

    Raises:
        ValueError: If the actor lacks the requested ability, save or skill.
    """
    if request.kind == "check":
        parts, bindings = _check_parts(actor, request.target)
    elif request.kind == "save":
        parts, bindings = _save_parts(actor, request.target)
    else:
        parts, bindings = _skill_parts(actor, request.target)

    resolved = resolve(
        evaluator,
        config.d20_mode,
        _d20(actor),
        parts,
        bindings=bindings,
        roll_state=roll_state_for(request.advantage, request.disadvantage),
        crit_threshold=request.crit_threshold,
        crit_faces=D20_FACES,
        triggers_crit=False,
        triple=request.triple,
    )
    title = f"{request.target.upper()} {_TITLES[request.kind]}"
    fragment = MultiRollFragment(
        kind="check",
        title=title,
        formula=resolved.formula,
        roll_state=resolved.roll_state,
        outcomes=resolved.outcomes,
        total=resolved.chosen_total,
    )
    return ActionMessage(
        actor_id=actor.id,
        title=title,
        img=actor.img,
        crit_string=config.crit_string,
        fragments=[fragment],
        dice_pool=[d for o in resolved.outcomes for d in o.dice],
    )
