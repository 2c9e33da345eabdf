"""Item resource storage — linked-resource checks and the atomic consumption commit."""

from __future__ import annotations

import asyncio
import json
import logging
import weakref

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from quickroll.domain.errors import ResourceDenied
from quickroll.domain.resources import ResourceState, plan_mutation, precheck
from quickroll.models.db_models import Actor, Item
from quickroll.models.item import ItemSnapshot
from quickroll.models.result import ResourceMutation, StateChange
from quickroll.models.roll import ConsumptionRequest

logger = logging.getLogger("quickroll.store")

# Entries vanish once no action holds or waits on the lock.
_item_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

_RACE_LOST = "Resources were changed by another action"


def item_lock(item_id: str) -> asyncio.Lock:
    """Lock serializing actions on one item within this process."""
    lock = _item_locks.get(item_id)
    if lock is None:
        lock = asyncio.Lock()
        _item_locks[item_id] = lock
    return lock


def row_state(item: Item) -> ResourceState:
    return ResourceState(
        uses_current=item.uses_value or 0,
        uses_max=item.uses_max or 0,
        quantity=item.quantity or 0,
        auto_destroy_on_zero=bool(item.auto_destroy),
        recharge_charged=bool(item.recharge_charged),
    )


def snapshot_state(item: ItemSnapshot) -> ResourceState:
    res = item.resources
    return ResourceState(
        uses_current=res.uses_value,
        uses_max=res.uses_max,
        quantity=res.quantity,
        auto_destroy_on_zero=res.auto_destroy,
        recharge_charged=bool(res.recharge_charged),
    )


def _pool_key(target: str) -> str:
    # Accepts "mana", "resources.mana" or "resources.mana.remaining".
    parts = target.split(".")
    if parts[0] == "resources":
        parts = parts[1:]
    return parts[0] if parts else ""


async def _lock_item(db: AsyncSession, item_id: str) -> Item | None:
    result = await db.execute(
        select(Item)
        .where(Item.id == item_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _lock_actor(db: AsyncSession, actor_id: str) -> Actor | None:
    result = await db.execute(
        select(Actor)
        .where(Actor.id == actor_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _compare_and_set(db: AsyncSession, row: Item | Actor, values: dict) -> bool:
    """Write ``values`` only if the row still holds the values last read.

    Row locks are not available on every backend (SQLite ignores FOR UPDATE),
    so each write is conditioned on the state it was planned from. False
    means another transaction got there first.
    """
    model = type(row)
    criteria = [model.id == row.id]
    for attr in values:
        column = getattr(model, attr)
        old = getattr(row, attr)
        criteria.append(column.is_(None) if old is None else column == old)

    result = await db.execute(
        update(model)
        .where(*criteria)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False
    for attr, value in values.items():
        set_committed_value(row, attr, value)
    return True


async def linked_resource_available(db: AsyncSession, item: Item) -> bool:
    """Whether the resource the item consumes has enough left. Read-only."""
    consume_type = item.consume_type
    target = item.consume_target
    amount = item.consume_amount or 1
    if not consume_type or not target:
        return True

    if consume_type in ("ammo", "charges"):
        result = await db.execute(
            select(Item).where(Item.id == target, Item.actor_id == item.actor_id)
        )
        linked = result.scalar_one_or_none()
        if linked is None:
            return False
        have = linked.quantity if consume_type == "ammo" else linked.uses_value
        return (have or 0) >= amount

    if consume_type == "attribute":
        result = await db.execute(select(Actor).where(Actor.id == item.actor_id))
        actor = result.scalar_one_or_none()
        if actor is None:
            return False
        pool = json.loads(actor.resources_json or "{}").get(_pool_key(target)) or {}
        return pool.get("remaining", 0) >= amount

    logger.debug("Unknown consume type %s on item %s", consume_type, item.id)
    return True


async def check_linked_resource(db: AsyncSession, item_id: str) -> bool:
    item = await db.get(Item, item_id)
    return item is not None and await linked_resource_available(db, item)


async def _consume_linked(db: AsyncSession, item: Item, changes: list[StateChange]) -> None:
    consume_type = item.consume_type
    target = item.consume_target
    amount = item.consume_amount or 1
    if not consume_type or not target:
        return

    if consume_type in ("ammo", "charges"):
        linked = await _lock_item(db, target)
        if linked is None:
            raise ResourceDenied("The linked resource no longer exists")
        attr = "quantity" if consume_type == "ammo" else "uses_value"
        old = getattr(linked, attr) or 0
        if old < amount or not await _compare_and_set(db, linked, {attr: old - amount}):
            raise ResourceDenied("Not enough of the linked resource")
        changes.append(
            StateChange(
                entity_type="item",
                entity_id=linked.id,
                field=attr,
                old_value=str(old),
                new_value=str(old - amount),
            )
        )
    elif consume_type == "attribute":
        await _deduct_pool(db, item.actor_id, _pool_key(target), amount, changes)


async def _deduct_pool(
    db: AsyncSession,
    actor_id: str,
    pool_name: str,
    amount: int,
    changes: list[StateChange],
) -> None:
    actor = await _lock_actor(db, actor_id)
    if actor is None:
        raise ValueError(f"Actor {actor_id} not found")
    resources = json.loads(actor.resources_json or "{}")
    pool = resources.get(pool_name) or {}
    old = pool.get("remaining", 0)
    pool["remaining"] = max(old - amount, 0)
    resources[pool_name] = pool
    if not await _compare_and_set(db, actor, {"resources_json": json.dumps(resources)}):
        raise ResourceDenied(_RACE_LOST)
    changes.append(
        StateChange(
            entity_type="actor",
            entity_id=actor_id,
            field=f"resources.{pool_name}.remaining",
            old_value=str(old),
            new_value=str(pool["remaining"]),
        )
    )


async def _apply_mutation(
    db: AsyncSession, item: Item, mutation: ResourceMutation, changes: list[StateChange]
) -> None:
    updates = {
        attr: value
        for attr, value in (
            ("uses_value", mutation.uses_value),
            ("quantity", mutation.quantity),
            ("recharge_charged", mutation.recharge_charged),
        )
        if value is not None
    }
    old_values = {attr: getattr(item, attr) for attr in updates}
    if not await _compare_and_set(db, item, updates):
        raise ResourceDenied(_RACE_LOST)
    for attr, value in updates.items():
        old = old_values[attr]
        changes.append(
            StateChange(
                entity_type="item",
                entity_id=item.id,
                field=attr,
                old_value=None if old is None else str(old),
                new_value=str(value),
            )
        )


async def apply_consumption(
    db: AsyncSession,
    item_id: str,
    request: ConsumptionRequest,
    spent_cost: int | None = None,
) -> tuple[ResourceMutation, list[StateChange]]:
    """Commit an action's resource consumption against the freshest item state.

    The gate is re-run on the re-read row, and every write only lands if the
    row still holds what the gate saw, so two actions racing for the last
    use cannot both succeed. Everything happens in the caller's session; a
    raised ResourceDenied may leave earlier writes of this call behind, so
    the caller must roll back.

    Args:
        db: Session of the running action.
        item_id: Item that was used.
        request: Resource axes the action asked to consume.
        spent_cost: Cost to deduct from the actor's mana/stamina pool.

    Raises:
        ValueError: If the item no longer exists.
        ResourceDenied: If the fresh state no longer permits the request.
    """
    if request.is_empty and not spent_cost:
        return ResourceMutation(), []

    item = await _lock_item(db, item_id)
    if item is None:
        raise ValueError(f"Item {item_id} not found")

    state = row_state(item)
    denied = precheck(state, request)
    if denied is None and request.use_resource_pool:
        if not await linked_resource_available(db, item):
            raise ResourceDenied("Not enough of the linked resource")
    if denied is not None:
        raise ResourceDenied(denied.reason)

    changes: list[StateChange] = []
    mutation = plan_mutation(state, request)
    if not mutation.is_empty:
        await _apply_mutation(db, item, mutation, changes)

    if request.use_resource_pool:
        await _consume_linked(db, item, changes)

    if spent_cost:
        pool_name = "stamina" if item.is_maneuver else "mana"
        await _deduct_pool(db, item.actor_id, pool_name, spent_cost, changes)

    if mutation.destroy:
        logger.info("Item %s used up and destroyed", item_id)
        await db.delete(item)
        changes.append(
            StateChange(entity_type="item", entity_id=item_id, field="destroyed", new_value="true")
        )

    await db.flush()
    return mutation, changes
