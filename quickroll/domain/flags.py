"""Quick-roll flag defaults per item type and the flag repair step."""

from __future__ import annotations

from quickroll.models.flags import ActionFlags, ChargeToggles, DamageToggles, Toggle

ITEM_TYPES_WITH_FLAGS = (
    "weapon",
    "superpower",
    "equipment",
    "feature",
    "tool",
    "consumable",
)


def _on() -> Toggle:
    return Toggle(primary=True, alternate=True)


def _off() -> Toggle:
    return Toggle(primary=False, alternate=False)


def default_flags(item_type: str, description_default: bool = False) -> ActionFlags | None:
    """Default quick-roll flags for an item type; None for types without flags."""
    if item_type not in ITEM_TYPES_WITH_FLAGS:
        return None

    if item_type == "tool":
        return ActionFlags(
            quick_desc=Toggle(primary=description_default, alternate=description_default),
            quick_check=_on(),
            quick_properties=_on(),
            quick_flavor=_on(),
            quick_prompt=_off(),
        )

    flags = ActionFlags(
        quick_desc=_on(),
        quick_attack=_on(),
        quick_save=_on(),
        quick_damage=DamageToggles(),
        quick_properties=_on(),
        quick_charges=ChargeToggles(),
        quick_template=_off(),
        quick_other=_on(),
        quick_flavor=_on(),
        quick_prompt=_off(),
    )
    if item_type == "weapon":
        flags.quick_desc = Toggle(primary=description_default, alternate=description_default)
        flags.quick_save = _off()
        flags.quick_versatile = _off()
        flags.quick_template = _on()
    elif item_type == "superpower":
        flags.quick_versatile = _off()
        flags.quick_template = _on()
        flags.quick_flavor = _off()
    elif item_type == "equipment":
        flags.quick_template = None
    return flags


def _deep_merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _resize(values: list, count: int, fill):
    return [values[i] if i < len(values) and values[i] is not None else fill for i in range(count)]


def normalize_flags(
    item_type: str,
    stored: ActionFlags | dict | None,
    damage_count: int,
    description_default: bool = False,
) -> ActionFlags | None:
    """Merge stored flags over the type defaults and sync the damage toggles.

    The damage toggle columns always end up with one entry per damage formula;
    slots that had no stored value are enabled.
    """
    defaults = default_flags(item_type, description_default)
    if defaults is None:
        return None

    if isinstance(stored, ActionFlags):
        stored = stored.model_dump(exclude_unset=True)
    merged = ActionFlags.model_validate(
        _deep_merge(defaults.model_dump(exclude_none=True), stored or {})
    )

    if defaults.quick_damage is not None:
        damage = merged.quick_damage or DamageToggles()
        merged.quick_damage = DamageToggles(
            primary=_resize(damage.primary, damage_count, True),
            alternate=_resize(damage.alternate, damage_count, True),
            context=_resize(damage.context, damage_count, None),
        )
    return merged
