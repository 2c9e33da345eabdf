"""Actors and items — create, look up, repair flags, build roll snapshots."""

from __future__ import annotations

import json

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quickroll.domain.flags import normalize_flags
from quickroll.models.db_models import Actor, Item
from quickroll.models.flags import ActionFlags
from quickroll.models.item import (
    ActorSnapshot,
    ConsumeSpec,
    DamagePart,
    ItemResources,
    ItemSnapshot,
)


def _loads(raw: str | None, default):
    return json.loads(raw) if raw else default


def _dumps(value) -> str | None:
    return json.dumps(value) if value else None


# --- Actors ---


async def create_actor(
    db: AsyncSession,
    name: str,
    img: str | None = None,
    actor_type: str = "character",
    abilities: dict | None = None,
    proficiency: int = 0,
    bonuses: dict | None = None,
    check_bonus: str = "",
    save_bonus: str = "",
    skill_bonus: str = "",
    saves: dict | None = None,
    skills: dict | None = None,
    flags: dict | None = None,
    resources: dict | None = None,
) -> Actor:
    actor = Actor(
        name=name,
        img=img,
        actor_type=actor_type,
        abilities_json=_dumps(abilities),
        proficiency=proficiency,
        bonuses_json=_dumps(bonuses),
        check_bonus=check_bonus,
        save_bonus=save_bonus,
        skill_bonus=skill_bonus,
        saves_json=_dumps(saves),
        skills_json=_dumps(skills),
        flags_json=_dumps(flags),
        resources_json=_dumps(resources),
    )
    db.add(actor)
    await db.flush()
    return actor


async def get_actor(db: AsyncSession, actor_id: str) -> Actor | None:
    result = await db.execute(select(Actor).where(Actor.id == actor_id))
    return result.scalar_one_or_none()


def actor_snapshot(actor: Actor) -> ActorSnapshot:
    return ActorSnapshot.model_validate(
        {
            "id": actor.id,
            "name": actor.name,
            "img": actor.img,
            "actor_type": actor.actor_type,
            "abilities": _loads(actor.abilities_json, {}),
            "proficiency": actor.proficiency or 0,
            "bonuses": _loads(actor.bonuses_json, {}),
            "check_bonus": actor.check_bonus or "",
            "save_bonus": actor.save_bonus or "",
            "skill_bonus": actor.skill_bonus or "",
            "saves": _loads(actor.saves_json, {}),
            "skills": _loads(actor.skills_json, {}),
            "flags": _loads(actor.flags_json, {}),
            "resources": _loads(actor.resources_json, {}),
        }
    )


async def load_actor_snapshot(db: AsyncSession, actor_id: str) -> ActorSnapshot:
    actor = await get_actor(db, actor_id)
    if actor is None:
        raise ValueError(f"Actor {actor_id} not found")
    return actor_snapshot(actor)


# --- Items ---


def _damage_count(system: dict) -> int:
    return len(system.get("damage_parts") or [])


def _store_flags(item: Item, flags: ActionFlags | dict | None, description_default: bool) -> None:
    system = _loads(item.system_json, {})
    normalized = normalize_flags(
        item.item_type, flags, _damage_count(system), description_default
    )
    item.flags_json = normalized.model_dump_json() if normalized is not None else None


async def create_item(
    db: AsyncSession,
    actor_id: str,
    name: str,
    item_type: str,
    img: str | None = None,
    action_type: str = "",
    ability: str = "",
    proficient: bool = False,
    attack_bonus: str = "",
    description: str = "",
    chat_flavor: str = "",
    cost: int | None = None,
    is_maneuver: bool = False,
    target_type: str = "",
    resources: ItemResources | None = None,
    system: dict | None = None,
    flags: dict | None = None,
    description_default: bool = False,
) -> Item:
    """Create an item for an actor; its quick-roll flags are repaired on the way in."""
    if await get_actor(db, actor_id) is None:
        raise ValueError(f"Actor {actor_id} not found")

    resources = resources or ItemResources()
    item = Item(
        actor_id=actor_id,
        name=name,
        img=img,
        item_type=item_type,
        action_type=action_type,
        ability=ability,
        proficient=proficient,
        attack_bonus=attack_bonus,
        description=description,
        chat_flavor=chat_flavor,
        cost=cost,
        is_maneuver=is_maneuver,
        target_type=target_type,
        uses_value=resources.uses_value,
        uses_max=resources.uses_max,
        uses_per=resources.uses_per,
        quantity=resources.quantity,
        auto_destroy=resources.auto_destroy,
        recharge_charged=resources.recharge_charged,
        consume_type=resources.consume.type,
        consume_target=resources.consume.target,
        consume_amount=resources.consume.amount,
        system_json=_dumps(system),
    )
    _store_flags(item, flags, description_default)
    db.add(item)
    await db.flush()
    return item


async def get_item(db: AsyncSession, item_id: str) -> Item | None:
    result = await db.execute(select(Item).where(Item.id == item_id))
    return result.scalar_one_or_none()


async def _require_item(db: AsyncSession, item_id: str) -> Item:
    item = await get_item(db, item_id)
    if item is None:
        raise ValueError(f"Item {item_id} not found")
    return item


async def set_flags(
    db: AsyncSession, item_id: str, flags: dict, description_default: bool = False
) -> Item:
    """Store new quick-roll flags, merged over what the item already has."""
    item = await _require_item(db, item_id)
    current = _loads(item.flags_json, {})
    current.update(flags)
    _store_flags(item, current, description_default)
    await db.flush()
    return item


async def set_damage_parts(
    db: AsyncSession,
    item_id: str,
    parts: list[DamagePart],
    description_default: bool = False,
) -> Item:
    """Replace the damage formulas and resize the damage toggles to match."""
    item = await _require_item(db, item_id)
    system = _loads(item.system_json, {})
    system["damage_parts"] = [p.model_dump() for p in parts]
    item.system_json = json.dumps(system)
    _store_flags(item, _loads(item.flags_json, None), description_default)
    await db.flush()
    return item


def item_resources(item: Item) -> ItemResources:
    return ItemResources(
        uses_value=item.uses_value or 0,
        uses_max=item.uses_max or 0,
        uses_per=item.uses_per,
        quantity=item.quantity or 0,
        auto_destroy=bool(item.auto_destroy),
        recharge_charged=item.recharge_charged,
        consume=ConsumeSpec(
            type=item.consume_type or "",
            target=item.consume_target,
            amount=item.consume_amount or 1,
        ),
    )


def item_snapshot(item: Item, actor: Actor) -> ItemSnapshot:
    system = _loads(item.system_json, {})
    flags = _loads(item.flags_json, None)
    return ItemSnapshot.model_validate(
        {
            **system,
            "id": item.id,
            "name": item.name,
            "img": item.img,
            "item_type": item.item_type,
            "action_type": item.action_type or "",
            "ability": item.ability or "",
            "proficient": bool(item.proficient),
            "attack_bonus": item.attack_bonus or "",
            "description": item.description or "",
            "chat_flavor": item.chat_flavor or "",
            "cost": item.cost,
            "is_maneuver": bool(item.is_maneuver),
            "target_type": item.target_type or "",
            "resources": item_resources(item),
            "flags": flags,
            "actor": actor_snapshot(actor),
        }
    )


async def load_item_snapshot(db: AsyncSession, item_id: str) -> ItemSnapshot:
    """Read an item and its owner into an immutable snapshot.

    Raises:
        ValueError: If the item or its actor does not exist.
    """
    item = await _require_item(db, item_id)
    actor = await get_actor(db, item.actor_id)
    if actor is None:
        raise ValueError(f"Actor {item.actor_id} not found")
    return item_snapshot(item, actor)


# --- Properties footer ---


def list_properties(item: ItemSnapshot) -> list[str]:
    """Display labels summarizing an item, shown under the roll output."""
    details = item.details
    props: list[str] = []

    def add(value) -> None:
        if value not in (None, "", []):
            props.append(str(value))

    if item.item_type == "weapon":
        add(details.get("weapon_type"))
    elif item.item_type == "superpower":
        add(details.get("school"))
        if details.get("level") is not None:
            add(f"Level {details['level']}")
    elif item.item_type == "tool":
        add(details.get("tool_type"))

    add(details.get("activation"))
    add(details.get("duration"))
    rng = details.get("range")
    if isinstance(rng, dict):
        value, long, units = rng.get("value"), rng.get("long"), rng.get("units", "")
        if value:
            add(f"{value}/{long} {units}".strip() if long else f"{value} {units}".strip())
    else:
        add(rng)
    add(details.get("target"))
    if details.get("weight"):
        add(f"{details['weight']} lbs.")
    for tag in details.get("properties") or []:
        add(tag)

    if item.item_type in ("weapon", "tool"):
        props.append("Proficient" if item.proficient else "Not Proficient")
    return props
