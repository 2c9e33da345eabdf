"""Prompt service — the blocking user choices an action may need."""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel

from quickroll.models.item import ItemSnapshot


class AdvantageChoice(BaseModel):
    advantage: bool = False
    disadvantage: bool = False


class AugmentChoice(BaseModel):
    spent_cost: int
    consume_resources: bool = True
    place_template: bool = False
    target_type: str | None = None


class PromptService(Protocol):
    """Returning None from either call means the user dismissed the prompt."""

    async def ask_advantage(self, item: ItemSnapshot) -> AdvantageChoice | None: ...

    async def ask_resource_augment(self, item: ItemSnapshot) -> AugmentChoice | None: ...


class PresetPrompts:
    """Answers every prompt with a fixed choice, for non-interactive callers.

    Without explicit answers: no advantage, base cost, consume resources,
    place a template when the item has one.
    """

    def __init__(
        self,
        advantage: AdvantageChoice | None = None,
        augment: AugmentChoice | None = None,
        cancel: bool = False,
    ) -> None:
        self._advantage = advantage
        self._augment = augment
        self._cancel = cancel

    async def ask_advantage(self, item: ItemSnapshot) -> AdvantageChoice | None:
        if self._cancel:
            return None
        return self._advantage or AdvantageChoice()

    async def ask_resource_augment(self, item: ItemSnapshot) -> AugmentChoice | None:
        if self._cancel:
            return None
        if self._augment is not None:
            return self._augment
        return AugmentChoice(
            spent_cost=item.cost or 0,
            place_template=item.has_placeable_template,
        )
