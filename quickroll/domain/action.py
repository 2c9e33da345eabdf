"""Action runner — one complete item roll: prompts, gate, pipeline, commit, emit."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from quickroll.domain import item as item_mod
from quickroll.domain import resources, store
from quickroll.domain.errors import ActionAborted, InteractionCancelled, ResourceDenied
from quickroll.domain.pipeline import FieldPipeline
from quickroll.domain.preset import compile_preset
from quickroll.domain.prompts import PromptService
from quickroll.models.fields import FieldRequest
from quickroll.models.item import ItemSnapshot
from quickroll.models.result import ActionMessage, ActionResult
from quickroll.models.roll import (
    ConsumptionRequest,
    PresetSelector,
    RollConfig,
    RollParameters,
)
from quickroll.modules.dice.parser import FormulaEvaluator

logger = logging.getLogger("quickroll.action")

MessageSink = Callable[[ActionMessage], Awaitable[None]]

# Item types for which the advantage query is offered.
_ADVANTAGE_QUERY_TYPES = ("weapon", "tool")


def _selector(params: RollParameters, config: RollConfig) -> PresetSelector:
    selector = params.preset or PresetSelector.PRIMARY
    if selector == PresetSelector.ALTERNATE and not config.alt_secondary_enabled:
        return PresetSelector.PRIMARY
    return selector


def _needs_augment_prompt(item: ItemSnapshot) -> bool:
    if item.item_type != "superpower" or item.cost is None:
        return False
    pool = item.actor.resources.get(item.resource_pool_name)
    limit = pool.limit if pool is not None else 0
    return (
        item.has_placeable_template
        or 0 < item.cost < limit
        or item.target_type == "coneOrLine"
    )


async def run_action(
    db: AsyncSession,
    item_id: str,
    params: RollParameters,
    fields: list[FieldRequest] | None = None,
    *,
    config: RollConfig,
    evaluator: FormulaEvaluator,
    prompts: PromptService,
    sink: MessageSink | None = None,
) -> ActionResult:
    """Run one action for an item and commit its resource consumption.

    With ``fields`` omitted the item's quick-roll preset decides what is
    rolled. Aborts (denied resources, cancelled prompts) come back as an
    aborted result with nothing consumed and nothing emitted. When another
    action spends the resources between the gate and the commit, the session
    is rolled back before the aborted result is returned.

    Raises:
        ValueError: If the item does not exist.
        EvaluatorFailure: If a formula cannot be evaluated.
    """
    async with store.item_lock(item_id):
        item = await item_mod.load_item_snapshot(db, item_id)
        try:
            return await _run(db, item, params, fields, config, evaluator, prompts, sink)
        except ActionAborted as exc:
            logger.warning("Action on item %s aborted (%s): %s", item_id, exc.kind, exc.reason)
            return ActionResult(status="aborted", error_kind=exc.kind, reason=exc.reason)


async def _run(
    db: AsyncSession,
    item: ItemSnapshot,
    params: RollParameters,
    fields: list[FieldRequest] | None,
    config: RollConfig,
    evaluator: FormulaEvaluator,
    prompts: PromptService,
    sink: MessageSink | None,
) -> ActionResult:
    # 1. Plan: explicit fields or the item's preset
    prompt_advantage = False
    if fields is None:
        plan = compile_preset(item, _selector(params, config))
        fields = plan.fields
        show_properties = plan.properties
        consumption = params.consumption or plan.consumption
        place_template = plan.place_template or params.use_template
        prompt_advantage = plan.prompt_advantage
    else:
        show_properties = params.properties
        consumption = params.consumption or ConsumptionRequest()
        place_template = params.use_template

    # 2. Prompts
    no_modifier = params.advantage_count == 0 and params.disadvantage_count == 0
    if no_modifier and (
        prompt_advantage
        or (config.query_advantage_enabled and item.item_type in _ADVANTAGE_QUERY_TYPES)
    ):
        choice = await prompts.ask_advantage(item)
        if choice is None:
            raise InteractionCancelled("Advantage prompt dismissed")
        params = params.model_copy(
            update={
                "advantage_count": int(choice.advantage),
                "disadvantage_count": int(choice.disadvantage),
            }
        )

    deduct_cost = False
    target_type = params.target_type or item.target_type or None
    if item.item_type == "superpower" and item.cost is not None and params.spent_cost is None:
        spent_cost = item.cost
        deduct_cost = True
        if _needs_augment_prompt(item):
            augment = await prompts.ask_resource_augment(item)
            if augment is None:
                raise InteractionCancelled("Resource prompt dismissed")
            spent_cost = augment.spent_cost
            deduct_cost = augment.consume_resources
            place_template = place_template or augment.place_template
            if augment.target_type:
                target_type = augment.target_type
        params = params.model_copy(update={"spent_cost": spent_cost})

    # 3. Resource gate; nothing is written yet
    decision = await resources.evaluate(
        store.snapshot_state(item),
        consumption,
        pool_check=lambda: store.check_linked_resource(db, item.id),
    )
    if isinstance(decision, resources.Deny):
        raise ResourceDenied(decision.reason)

    ammo = None
    consume = item.resources.consume
    if consumption.use_resource_pool and consume.type == "ammo" and consume.target:
        ammo = await item_mod.load_item_snapshot(db, consume.target)

    # 4. Pipeline
    result = FieldPipeline(evaluator).execute(item, params, fields, config, ammo)

    # 5. Commit against fresh state; a lost race undoes any partial writes
    try:
        mutation, changes = await store.apply_consumption(
            db,
            item.id,
            consumption,
            spent_cost=params.spent_cost if deduct_cost else None,
        )
    except ResourceDenied:
        await db.rollback()
        raise

    special_paid_cost = None
    if item.item_type == "superpower" and params.spent_cost != item.cost:
        special_paid_cost = f"{params.spent_cost} {item.resource_pool_name}"

    message = ActionMessage(
        item_id=item.id,
        actor_id=item.actor.id,
        title=params.title or item.name,
        img=item.img,
        is_crit=result.is_crit,
        crit_string=config.crit_string,
        special_paid_cost=special_paid_cost,
        fragments=result.fragments,
        properties=item_mod.list_properties(item) if show_properties else None,
        place_template=place_template and item.has_placeable_template,
        target_type=target_type,
        dice_pool=result.dice_pool,
    )

    # 6. Emit
    if sink is not None:
        await sink(message)

    return ActionResult(
        status="completed",
        message=message,
        mutation=mutation,
        state_changes=changes,
    )
