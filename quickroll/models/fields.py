"""Field requests — the declarative input to the field pipeline."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from quickroll.models.roll import RollState

logger = logging.getLogger("quickroll.fields")


class FieldKind(str, Enum):
    ATTACK = "attack"
    CHECK = "check"
    DAMAGE = "damage"
    SAVE = "save"
    OTHER = "other"
    CUSTOM = "custom"
    DESCRIPTION = "description"
    TEXT = "text"
    FLAVOR = "flavor"
    CRIT = "crit"


class AttackField(BaseModel):
    kind: Literal["attack"] = "attack"
    advantage: bool = False
    disadvantage: bool = False
    triple: bool = False
    bonus: str | None = None
    triggers_crit: bool = True
    crit_threshold: int | None = None


class CheckField(BaseModel):
    kind: Literal["check"] = "check"
    title: str | None = None
    bonus: str | None = None
    crit_threshold: int | None = None


class DamageField(BaseModel):
    kind: Literal["damage"] = "damage"
    index: int | Literal["all"] = 0
    force_versatile: bool = False
    # True forces crit dice, "never" suppresses them, None follows the action
    force_crit: bool | Literal["never"] | None = None
    context: str | None = None


class SaveButtonField(BaseModel):
    kind: Literal["save"] = "save"
    save_id: str | None = None
    dc: int | None = None


class OtherField(BaseModel):
    kind: Literal["other"] = "other"


class CustomField(BaseModel):
    kind: Literal["custom"] = "custom"
    title: str | None = None
    formula: str = "1d20"
    roll_count: int = Field(1, ge=1)
    roll_state: RollState | None = None


class DescriptionField(BaseModel):
    kind: Literal["description"] = "description"


class TextField(BaseModel):
    kind: Literal["text"] = "text"
    content: str = ""


class FlavorField(BaseModel):
    kind: Literal["flavor"] = "flavor"
    content: str | None = None


class CritExtraField(BaseModel):
    kind: Literal["crit"] = "crit"
    index: int | None = None


FieldRequest = Annotated[
    Union[
        AttackField,
        CheckField,
        DamageField,
        SaveButtonField,
        OtherField,
        CustomField,
        DescriptionField,
        TextField,
        FlavorField,
        CritExtraField,
    ],
    Field(discriminator="kind"),
]

_field_adapter: TypeAdapter[FieldRequest] = TypeAdapter(FieldRequest)

# Aliases accepted from clients for the same field kinds.
_KIND_ALIASES = {
    "tool": "check",
    "toolcheck": "check",
    "savedc": "save",
    "desc": "description",
}


def parse_fields(raw: list[dict]) -> list[FieldRequest]:
    """Parse client-supplied fields, dropping unknown or malformed entries."""
    fields: list[FieldRequest] = []
    for entry in raw:
        if not isinstance(entry, dict):
            logger.debug("Skipping non-object field %r", entry)
            continue
        kind = str(entry.get("kind", "")).lower()
        entry = {**entry, "kind": _KIND_ALIASES.get(kind, kind)}
        try:
            fields.append(_field_adapter.validate_python(entry))
        except ValidationError:
            logger.debug("Skipping malformed field %r", entry)
    return fields
