"""Field pipeline — runs an action's field requests in order and collects fragments."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from quickroll.domain.errors import EvaluatorFailure
from quickroll.domain.rules.crit import (
    CritState,
    attack_crit_threshold,
    extra_crit_dice,
    roll_crit,
    wants_crit_dice,
)
from quickroll.models.fields import (
    AttackField,
    CheckField,
    CritExtraField,
    CustomField,
    DamageField,
    DescriptionField,
    FieldRequest,
    FlavorField,
    OtherField,
    SaveButtonField,
    TextField,
)
from quickroll.models.fragments import (
    DamageFragment,
    FlavorFragment,
    MultiRollFragment,
    ResultFragment,
    SaveButtonFragment,
    TextFragment,
)
from quickroll.models.item import ItemSnapshot
from quickroll.models.roll import (
    CritBehavior,
    DieResult,
    HideDC,
    ResolvedRoll,
    RollConfig,
    RollParameters,
    roll_state_for,
)
from quickroll.modules.dice.parser import FormulaError, FormulaEvaluator
from quickroll.modules.dice.roller import D20_FACES, resolve

logger = logging.getLogger("quickroll.pipeline")

# Abilities always proficient for these item types.
_ALWAYS_PROFICIENT = ("superpower", "feature")

# Superpower scaling modes that grow damage with the spent cost.
_SCALING_MODES = ("augment", "enhance")


@dataclass
class ActionContext:
    """Mutable state of one action run, passed explicitly through every producer."""

    item: ItemSnapshot
    params: RollParameters
    config: RollConfig
    crit: CritState
    ammo: ItemSnapshot | None = None
    damage_emitted: bool = False
    first_damage_force_crit: bool | str | None = None
    ammo_done: bool = False
    dice_pool: list[DieResult] = field(default_factory=list)
    _stack: list[ItemSnapshot] = field(default_factory=list)

    @property
    def crit_behavior(self) -> CritBehavior:
        return self.params.crit_behavior or self.config.crit_behavior

    def push_item(self, item: ItemSnapshot) -> None:
        self._stack.append(self.item)
        self.item = item

    def pop_item(self) -> None:
        self.item = self._stack.pop()


@dataclass
class PipelineResult:
    fragments: list[ResultFragment]
    is_crit: bool
    dice_pool: list[DieResult]


def _d20(item: ItemSnapshot) -> str:
    return "1d20r<2" if item.actor.flags.halfling_luck else "1d20"


class FieldPipeline:
    """Executes field requests strictly in order against one evaluator."""

    def __init__(self, evaluator: FormulaEvaluator) -> None:
        self.evaluator = evaluator

    def execute(
        self,
        item: ItemSnapshot,
        params: RollParameters,
        fields: list[FieldRequest],
        config: RollConfig,
        ammo: ItemSnapshot | None = None,
    ) -> PipelineResult:
        ctx = ActionContext(
            item=item,
            params=params,
            config=config,
            crit=CritState.start(params.force_crit),
            ammo=ammo,
        )
        fragments: list[ResultFragment] = []
        try:
            for request in fields:
                fragments.extend(self._produce(ctx, request))

            # Ammunition damage rides along once, after the weapon's own damage.
            if ctx.ammo is not None and ctx.damage_emitted and not ctx.ammo_done:
                ctx.ammo_done = True
                ctx.push_item(ctx.ammo)
                try:
                    fragments.extend(
                        self._damage(
                            ctx,
                            DamageField(
                                index="all",
                                force_crit=ctx.first_damage_force_crit,
                                context=f"[{ctx.ammo.name}]",
                            ),
                        )
                    )
                finally:
                    ctx.pop_item()

            crit_index = item.flags.crit_damage if item.flags is not None else None
            if ctx.crit.is_crit and ctx.damage_emitted and crit_index is not None:
                fragments.extend(self._crit_extra(ctx, CritExtraField(index=crit_index)))
        except FormulaError as exc:
            logger.error("Dice evaluation failed for item %s", item.id, exc_info=True)
            raise EvaluatorFailure(str(exc)) from exc

        return PipelineResult(
            fragments=fragments, is_crit=ctx.crit.is_crit, dice_pool=ctx.dice_pool
        )

    def _produce(self, ctx: ActionContext, request: FieldRequest) -> list[ResultFragment]:
        if isinstance(request, AttackField):
            return self._attack(ctx, request)
        elif isinstance(request, CheckField):
            return self._check(ctx, request)
        elif isinstance(request, DamageField):
            return self._damage(ctx, request)
        elif isinstance(request, SaveButtonField):
            return self._save(ctx, request)
        elif isinstance(request, OtherField):
            return self._other(ctx)
        elif isinstance(request, CustomField):
            return self._custom(ctx, request)
        elif isinstance(request, DescriptionField):
            return [TextFragment(kind="description", content=ctx.item.description)]
        elif isinstance(request, TextField):
            return [TextFragment(content=request.content)]
        elif isinstance(request, FlavorField):
            content = request.content or ctx.item.chat_flavor
            return [FlavorFragment(content=content)] if content else []
        elif isinstance(request, CritExtraField):
            return self._crit_extra(ctx, request)
        logger.debug("Ignoring unsupported field %r", request)
        return []

    # --- multi-roll fields ---

    def _multi_fragment(
        self, ctx: ActionContext, kind: str, title: str | None, resolved: ResolvedRoll
    ) -> MultiRollFragment:
        for outcome in resolved.outcomes:
            ctx.dice_pool.extend(outcome.dice)
        return MultiRollFragment(
            kind=kind,
            title=title,
            formula=resolved.formula,
            roll_state=resolved.roll_state,
            outcomes=resolved.outcomes,
            total=resolved.chosen_total,
            is_crit=resolved.is_crit,
        )

    def _attack(self, ctx: ActionContext, request: AttackField) -> list[ResultFragment]:
        item = ctx.item
        actor = item.actor
        ammo = ctx.ammo

        parts: list[str] = []
        ability = item.ability_mod
        if ability:
            parts.append("@abl")
        if item.item_type in _ALWAYS_PROFICIENT or item.proficient:
            parts.append("@prof")
        if item.attack_bonus:
            parts.append("@bonus")
        if ammo is not None and ammo.attack_bonus:
            parts.append("@ammo")
        if request.bonus:
            parts.append(request.bonus)
        action_bonus = actor.bonuses.get(item.action_type)
        if action_bonus is not None and action_bonus.attack:
            parts.append(f"@bonuses.{item.action_type}.attack")

        bindings = {
            **actor.roll_bindings(),
            "abl": actor.ability_value(ability),
            "bonus": item.attack_bonus,
            "ammo": ammo.attack_bonus if ammo is not None else "",
        }

        roll_state = roll_state_for(
            ctx.params.advantage_count + int(request.advantage),
            ctx.params.disadvantage_count + int(request.disadvantage),
        )
        threshold = attack_crit_threshold(
            item, request.crit_threshold or ctx.params.crit_threshold_override
        )
        resolved = resolve(
            self.evaluator,
            ctx.config.d20_mode,
            _d20(item),
            parts,
            bindings=bindings,
            roll_state=roll_state,
            crit_threshold=threshold,
            crit_faces=D20_FACES,
            triggers_crit=request.triggers_crit,
            triple=request.triple or ctx.params.triple_requested,
        )
        if request.triggers_crit:
            ctx.crit.record_attack(resolved)

        title = "Attack"
        if ammo is not None:
            title = f"Attack [{ammo.name}]"
        return [self._multi_fragment(ctx, "attack", title, resolved)]

    def _check(self, ctx: ActionContext, request: CheckField) -> list[ResultFragment]:
        item = ctx.item
        actor = item.actor

        parts: list[str] = []
        if item.ability:
            parts.append("@value")
        if item.check_proficiency:
            parts.append("@prof")
        if item.check_bonus:
            parts.append("@bonus")
        if request.bonus:
            parts.append(request.bonus)

        bindings = {
            **actor.roll_bindings(),
            "value": actor.ability_value(item.ability),
            "prof": math.floor((item.check_proficiency or 0) * actor.proficiency),
            "bonus": item.check_bonus,
        }
        resolved = resolve(
            self.evaluator,
            ctx.config.d20_mode,
            _d20(item),
            parts,
            bindings=bindings,
            roll_state=ctx.params.roll_state,
            crit_threshold=request.crit_threshold,
            crit_faces=D20_FACES,
            triggers_crit=False,
            triple=ctx.params.triple_requested,
        )
        return [self._multi_fragment(ctx, "check", request.title or "Check", resolved)]

    def _custom(self, ctx: ActionContext, request: CustomField) -> list[ResultFragment]:
        resolved = resolve(
            self.evaluator,
            request.roll_count,
            request.formula,
            bindings=ctx.item.actor.roll_bindings(),
            roll_state=request.roll_state,
            crit_faces=None,
            triggers_crit=False,
        )
        return [self._multi_fragment(ctx, "custom", request.title, resolved)]

    # --- damage-like fields ---

    def _damage(self, ctx: ActionContext, request: DamageField) -> list[ResultFragment]:
        if not ctx.damage_emitted and ctx.first_damage_force_crit is None:
            ctx.first_damage_force_crit = request.force_crit

        item = ctx.item
        if request.index == "all":
            slots = [
                (i, (request.force_versatile or ctx.params.versatile) and i == 0)
                for i in range(len(item.damage_parts))
            ]
        else:
            index = request.index
            if not 0 <= index < len(item.damage_parts):
                logger.debug("Item %s has no damage slot %s", item.id, index)
                return []
            slots = [(index, request.force_versatile or (ctx.params.versatile and index == 0))]

        fragments: list[ResultFragment] = []
        for index, versatile in slots:
            fragments.append(
                self._roll_damage(
                    ctx,
                    "damage",
                    index,
                    versatile=versatile,
                    force_crit=request.force_crit,
                    context=request.context,
                )
            )
        if fragments:
            ctx.damage_emitted = True
        return fragments

    def _crit_extra(self, ctx: ActionContext, request: CritExtraField) -> list[ResultFragment]:
        item = ctx.item
        index = request.index
        if index is None and item.flags is not None:
            index = item.flags.crit_damage
        if index is None or not 0 <= index < len(item.damage_parts):
            return []
        return [self._roll_damage(ctx, "crit", index, force_crit="never")]

    def _other(self, ctx: ActionContext) -> list[ResultFragment]:
        item = ctx.item
        if not item.other_formula:
            return []
        context = item.flags.other_context if item.flags is not None else None
        return [
            self._roll_formula(
                ctx,
                "other",
                item.other_formula,
                self._damage_bindings(ctx, None),
                index=None,
                damage_type="",
                context=context,
                force_crit=None,
            )
        ]

    def _damage_bindings(self, ctx: ActionContext, index: int | None) -> dict:
        item = ctx.item
        actor = item.actor
        # The weapon ability fallback only feeds the first damage slot.
        ability = item.ability_mod if index == 0 or item.item_type == "superpower" else item.ability
        return {
            **actor.roll_bindings(),
            "value": actor.ability_value(ability),
            "mod": actor.ability_value(ability),
            "item": {"name": item.name, **item.details},
            "spentCost": ctx.params.spent_cost or 0,
        }

    def _roll_damage(
        self,
        ctx: ActionContext,
        kind: str,
        index: int,
        versatile: bool = False,
        force_crit: bool | str | None = None,
        context: str | None = None,
    ) -> DamageFragment:
        item = ctx.item
        actor = item.actor
        part = item.damage_parts[index]

        formula = part.formula
        versatile = versatile and index == 0 and bool(item.versatile_formula)
        if versatile:
            formula = item.versatile_formula

        if index == 0:
            action_bonus = actor.bonuses.get(item.action_type)
            if action_bonus is not None and action_bonus.damage:
                formula = f"{formula} + @bonuses.{item.action_type}.damage"
            formula = self._augment(ctx, formula)

        if context is None and item.flags is not None and item.flags.quick_damage:
            context = item.flags.quick_damage.context_for(index)

        return self._roll_formula(
            ctx,
            kind,
            formula,
            self._damage_bindings(ctx, index),
            index=index,
            damage_type=part.damage_type,
            context=context,
            force_crit=force_crit,
            versatile=versatile,
        )

    def _augment(self, ctx: ActionContext, formula: str) -> str:
        """Superpower slot 0 scales once per point of spent cost above the base cost."""
        item = ctx.item
        spent = ctx.params.spent_cost
        if (
            item.item_type != "superpower"
            or item.scaling.mode not in _SCALING_MODES
            or not item.scaling.formula
            or spent is None
            or item.cost is None
            or spent <= item.cost
        ):
            return formula
        return " + ".join([formula] + [item.scaling.formula] * (spent - item.cost))

    def _roll_formula(
        self,
        ctx: ActionContext,
        kind: str,
        formula: str,
        bindings: dict,
        index: int | None,
        damage_type: str,
        context: str | None,
        force_crit: bool | str | None,
        versatile: bool = False,
    ) -> DamageFragment:
        base = self.evaluator.evaluate(formula, bindings)
        ctx.dice_pool.extend(base.dice)

        crit = None
        behavior = ctx.crit_behavior
        if kind != "crit" and wants_crit_dice(ctx.crit.is_crit, force_crit, behavior):
            crit = roll_crit(
                self.evaluator,
                formula,
                bindings,
                base,
                behavior,
                extra_crit_dice(ctx.item),
            )
            if crit is not None:
                ctx.dice_pool.extend(crit.dice)

        return DamageFragment(
            kind=kind,
            index=index,
            damage_type=damage_type,
            context=context,
            versatile=versatile,
            base=base,
            crit=crit,
            max_base=self.evaluator.maximize(formula, bindings),
            max_crit=self.evaluator.maximize(crit.formula) if crit is not None else None,
            crit_label=ctx.config.crit_string if crit is not None else None,
            is_crit=crit is not None,
        )

    # --- content fields ---

    def _save(self, ctx: ActionContext, request: SaveButtonField) -> list[ResultFragment]:
        item = ctx.item
        save_id = request.save_id or (item.save.save_id if item.save else None)
        if not save_id:
            return []
        dc = request.dc if request.dc is not None else item.save_dc()
        hide_dc = ctx.config.hide_dc == HideDC.ALWAYS or (
            ctx.config.hide_dc == HideDC.NPC and item.actor.actor_type == "npc"
        )
        return [SaveButtonFragment(save_id=save_id, dc=dc, hide_dc=hide_dc)]
