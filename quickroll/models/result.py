"""Action result schemas — output from the action runner."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

from quickroll.models.fragments import ResultFragment
from quickroll.models.roll import DieResult


class StateChange(BaseModel):
    entity_type: str  # "item", "actor"
    entity_id: str
    field: str
    old_value: str | None = None
    new_value: str | None = None


class ResourceMutation(BaseModel):
    """Post-action item update proposed by the resource gate.

    Fields left as None are untouched.
    """

    uses_value: int | None = None
    quantity: int | None = None
    recharge_charged: bool | None = None
    destroy: bool = False

    @property
    def is_empty(self) -> bool:
        return (
            self.uses_value is None
            and self.quantity is None
            and self.recharge_charged is None
            and not self.destroy
        )


class ActionMessage(BaseModel):
    """Composite message handed to the renderer / chat sink."""

    item_id: str | None = None
    actor_id: str
    title: str
    img: str | None = None
    is_crit: bool = False
    crit_string: str = "Crit"
    special_paid_cost: str | None = None
    fragments: list[ResultFragment] = []
    properties: list[str] | None = None
    place_template: bool = False
    target_type: str | None = None
    dice_pool: list[DieResult] = []


class ActionResult(BaseModel):
    status: Literal["completed", "aborted"]
    error_kind: str | None = None  # "resource_denied" | "interaction_cancelled"
    reason: str | None = None
    message: ActionMessage | None = None
    mutation: ResourceMutation | None = None
    state_changes: list[StateChange] = []
