"""Preset compiler — quick-roll flags to a concrete field list."""

from __future__ import annotations

from dataclasses import dataclass, field

from quickroll.models.fields import (
    AttackField,
    CheckField,
    DamageField,
    DescriptionField,
    FieldRequest,
    FlavorField,
    OtherField,
    SaveButtonField,
)
from quickroll.models.item import ItemSnapshot
from quickroll.models.roll import ConsumptionRequest, PresetSelector


@dataclass
class CompiledPreset:
    fields: list[FieldRequest] = field(default_factory=list)
    properties: bool = False
    consumption: ConsumptionRequest = field(default_factory=ConsumptionRequest)
    place_template: bool = False
    prompt_advantage: bool = False


def compile_preset(item: ItemSnapshot, selector: PresetSelector) -> CompiledPreset:
    """Expand the item's flags at the selected column into an execution plan.

    Emission order: flavor, description, attack, check, save button, one
    damage field per enabled slot, other formula. Items without flags get a
    description with properties shown.
    """
    flags = item.flags
    if flags is None:
        return CompiledPreset(fields=[DescriptionField()], properties=True)

    def on(name: str) -> bool:
        return flags.is_on(name, selector)

    fields: list[FieldRequest] = []
    if on("quick_flavor") and item.chat_flavor:
        fields.append(FlavorField())
    if on("quick_desc"):
        fields.append(DescriptionField())
    if on("quick_attack") and item.is_attack:
        fields.append(AttackField())
    if on("quick_check") and item.is_check:
        fields.append(CheckField())
    if on("quick_save") and item.has_save:
        fields.append(SaveButtonField())

    if flags.quick_damage is not None:
        versatile = on("quick_versatile")
        for index, enabled in enumerate(flags.quick_damage.pick(selector)):
            if enabled:
                fields.append(
                    DamageField(index=index, force_versatile=versatile and index == 0)
                )

    if on("quick_other") and item.other_formula:
        fields.append(OtherField())

    consumption = ConsumptionRequest()
    if flags.quick_charges is not None:
        consumption = flags.quick_charges.pick(selector)

    return CompiledPreset(
        fields=fields,
        properties=on("quick_properties"),
        consumption=consumption,
        place_template=on("quick_template"),
        prompt_advantage=on("quick_prompt"),
    )
