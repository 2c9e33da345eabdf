"""Resource gate — may this action consume what it asks for, and what changes."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Literal

from pydantic import BaseModel

from quickroll.models.result import ResourceMutation
from quickroll.models.roll import ConsumptionRequest

logger = logging.getLogger("quickroll.resources")

PoolCheck = Callable[[], Awaitable[bool]]


class ResourceState(BaseModel):
    """Item resource counters as read from storage."""

    uses_current: int = 0
    uses_max: int = 0
    quantity: int = 0
    auto_destroy_on_zero: bool = False
    recharge_charged: bool = False


class Permit(BaseModel):
    outcome: Literal["permit"] = "permit"
    mutation: ResourceMutation


class Deny(BaseModel):
    outcome: Literal["deny"] = "deny"
    axis: str  # "uses" | "quantity" | "recharge" | "pool"
    reason: str


def precheck(state: ResourceState, request: ConsumptionRequest) -> Deny | None:
    """Side-effect-free checks in precedence order; the first failure wins."""
    if request.use_charge and not request.use_quantity:
        if state.uses_current <= 0:
            return Deny(axis="uses", reason="No uses remaining")
    if request.use_quantity and not request.use_charge:
        if state.quantity <= 0:
            return Deny(axis="quantity", reason="No quantity remaining")
    if request.use_charge and request.use_quantity:
        if state.uses_current <= 0 and state.quantity <= 1:
            return Deny(axis="uses", reason="No uses or spare quantity remaining")
    if request.use_recharge and not state.recharge_charged:
        return Deny(axis="recharge", reason="Not recharged")
    return None


def plan_mutation(state: ResourceState, request: ConsumptionRequest) -> ResourceMutation:
    """Compute the update to commit once the action succeeds."""
    mutation = ResourceMutation()

    if request.use_charge and not request.use_quantity:
        mutation.uses_value = max(state.uses_current - 1, 0)

    elif request.use_quantity and not request.use_charge:
        mutation.quantity = state.quantity - 1
        if mutation.quantity <= 0 and state.auto_destroy_on_zero:
            mutation.destroy = True

    elif request.use_charge and request.use_quantity:
        uses = state.uses_current - 1
        quantity = state.quantity
        if uses < 0:
            # Out of uses: open a new one from the stack.
            quantity -= 1
            uses = state.uses_max if quantity >= 1 else 0
            if quantity <= 0 and state.auto_destroy_on_zero:
                mutation.destroy = True
            mutation.quantity = max(quantity, 0)
        mutation.uses_value = max(uses, 0)

    if request.use_recharge:
        mutation.recharge_charged = False

    return mutation


async def evaluate(
    state: ResourceState,
    request: ConsumptionRequest,
    pool_check: PoolCheck | None = None,
) -> Permit | Deny:
    """Decide whether the action may proceed.

    The pool check runs last and only when every other axis passed, since
    it is delegated to the item's linked resource.
    """
    denied = precheck(state, request)
    if denied is None and request.use_resource_pool and pool_check is not None:
        if not await pool_check():
            denied = Deny(axis="pool", reason="Not enough of the linked resource")

    if denied is not None:
        logger.warning("Resource consumption denied (%s): %s", denied.axis, denied.reason)
        return denied
    return Permit(mutation=plan_mutation(state, request))
