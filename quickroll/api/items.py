"""Items API — actors, items, quick-roll flags and roll actions."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from quickroll.domain import item as item_mod
from quickroll.domain.action import run_action
from quickroll.domain.errors import EvaluatorFailure
from quickroll.domain.prompts import AdvantageChoice, AugmentChoice, PresetPrompts
from quickroll.domain.rules.checks import StandaloneRoll, roll_standalone
from quickroll.infra.config import settings
from quickroll.infra.db import get_db
from quickroll.infra.ws_manager import ws_manager
from quickroll.models.flags import ActionFlags
from quickroll.models.item import ActionBonus, ActorFlags, DamagePart, ItemResources, PoolState
from quickroll.models.fields import parse_fields
from quickroll.models.result import ActionMessage, ActionResult
from quickroll.models.roll import RollConfig, RollOutcome, RollParameters
from quickroll.modules.dice.parser import FormulaError, FormulaEvaluator

router = APIRouter(prefix="/api", tags=["items"])

_evaluator = FormulaEvaluator(seed=settings.dice_seed)


def get_evaluator() -> FormulaEvaluator:
    return _evaluator


def get_roll_config() -> RollConfig:
    return settings.roll_config()


# --- Request schemas ---

class CreateActorRequest(BaseModel):
    name: str
    img: str | None = None
    actor_type: str = "character"
    abilities: dict[str, int] | None = None
    proficiency: int = 0
    bonuses: dict[str, ActionBonus] | None = None
    check_bonus: str = ""
    save_bonus: str = ""
    skill_bonus: str = ""
    saves: dict[str, dict] | None = None
    skills: dict[str, int] | None = None
    flags: ActorFlags | None = None
    resources: dict[str, PoolState] | None = None


class CreateItemRequest(BaseModel):
    name: str
    item_type: str
    img: str | None = None
    action_type: str = ""
    ability: str = ""
    proficient: bool = False
    attack_bonus: str = ""
    description: str = ""
    chat_flavor: str = ""
    cost: int | None = None
    is_maneuver: bool = False
    target_type: str = ""
    resources: ItemResources | None = None
    # damage_parts, versatile_formula, other_formula, save, scaling, details, ...
    system: dict | None = None
    flags: dict | None = None


class DamagePartsRequest(BaseModel):
    parts: list[DamagePart]


class RollRequest(BaseModel):
    params: RollParameters = RollParameters()
    fields: list[dict] | None = None
    table_id: str | None = None
    # Pre-answered prompts; without them the defaults are used.
    advantage: AdvantageChoice | None = None
    augment: AugmentChoice | None = None


class FormulaRequest(BaseModel):
    formula: str
    bindings: dict | None = None


# --- Helpers ---

def _actor_dict(actor) -> dict:
    return item_mod.actor_snapshot(actor).model_dump()


async def _item_dict(db: AsyncSession, item_id: str) -> dict:
    try:
        snapshot = await item_mod.load_item_snapshot(db, item_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    data = snapshot.model_dump(exclude={"actor"})
    data["actor_id"] = snapshot.actor.id
    return data


# --- Endpoints ---

@router.post("/actors")
async def create_actor(
    req: CreateActorRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    actor = await item_mod.create_actor(
        db,
        name=req.name,
        img=req.img,
        actor_type=req.actor_type,
        abilities=req.abilities,
        proficiency=req.proficiency,
        bonuses={k: v.model_dump() for k, v in req.bonuses.items()} if req.bonuses else None,
        check_bonus=req.check_bonus,
        save_bonus=req.save_bonus,
        skill_bonus=req.skill_bonus,
        saves=req.saves,
        skills=req.skills,
        flags=req.flags.model_dump() if req.flags else None,
        resources={k: v.model_dump() for k, v in req.resources.items()} if req.resources else None,
    )
    return _actor_dict(actor)


@router.get("/actors/{actor_id}")
async def get_actor(
    actor_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    actor = await item_mod.get_actor(db, actor_id)
    if actor is None:
        raise HTTPException(status_code=404, detail="Actor not found")
    return _actor_dict(actor)


@router.post("/actors/{actor_id}/items")
async def create_item(
    actor_id: str,
    req: CreateItemRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    try:
        item = await item_mod.create_item(
            db,
            actor_id,
            name=req.name,
            item_type=req.item_type,
            img=req.img,
            action_type=req.action_type,
            ability=req.ability,
            proficient=req.proficient,
            attack_bonus=req.attack_bonus,
            description=req.description,
            chat_flavor=req.chat_flavor,
            cost=req.cost,
            is_maneuver=req.is_maneuver,
            target_type=req.target_type,
            resources=req.resources,
            system=req.system,
            flags=req.flags,
            description_default=settings.quick_default_description_enabled,
        )
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return await _item_dict(db, item.id)


@router.get("/items/{item_id}")
async def get_item(
    item_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    return await _item_dict(db, item_id)


@router.put("/items/{item_id}/flags")
async def update_flags(
    item_id: str,
    req: ActionFlags,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    try:
        await item_mod.set_flags(
            db,
            item_id,
            req.model_dump(exclude_unset=True),
            description_default=settings.quick_default_description_enabled,
        )
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return await _item_dict(db, item_id)


@router.put("/items/{item_id}/damage")
async def update_damage(
    item_id: str,
    req: DamagePartsRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    try:
        await item_mod.set_damage_parts(
            db,
            item_id,
            req.parts,
            description_default=settings.quick_default_description_enabled,
        )
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return await _item_dict(db, item_id)


@router.post("/items/{item_id}/roll")
async def roll_item(
    item_id: str,
    req: RollRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    evaluator: Annotated[FormulaEvaluator, Depends(get_evaluator)],
    config: Annotated[RollConfig, Depends(get_roll_config)],
) -> ActionResult:
    """Run one quick-roll action; completed messages go to the table's clients."""
    sink = None
    if req.table_id:
        table_id = req.table_id

        async def sink(message: ActionMessage) -> None:
            await ws_manager.broadcast(table_id, message)

    fields = parse_fields(req.fields) if req.fields is not None else None
    try:
        return await run_action(
            db,
            item_id,
            req.params,
            fields,
            config=config,
            evaluator=evaluator,
            prompts=PresetPrompts(advantage=req.advantage, augment=req.augment),
            sink=sink,
        )
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except EvaluatorFailure as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/actors/{actor_id}/rolls")
async def roll_actor(
    actor_id: str,
    req: StandaloneRoll,
    db: Annotated[AsyncSession, Depends(get_db)],
    evaluator: Annotated[FormulaEvaluator, Depends(get_evaluator)],
    config: Annotated[RollConfig, Depends(get_roll_config)],
) -> ActionMessage:
    try:
        actor = await item_mod.load_actor_snapshot(db, actor_id)
        return roll_standalone(actor, req, config, evaluator)
    except FormulaError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/roll")
async def roll_formula(
    req: FormulaRequest,
    evaluator: Annotated[FormulaEvaluator, Depends(get_evaluator)],
) -> RollOutcome:
    try:
        return evaluator.evaluate(req.formula, req.bindings)
    except FormulaError as e:
        raise HTTPException(status_code=422, detail=str(e))
