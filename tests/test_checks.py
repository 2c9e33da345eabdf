"""Tests for actor-level ability checks, saves and skill rolls."""

import pytest

from quickroll.domain.rules.checks import StandaloneRoll, roll_standalone
from quickroll.models.roll import CritTag, RollConfig, RollState


def _roll(actor, evaluator, **kwargs):
    return roll_standalone(actor, StandaloneRoll(**kwargs), RollConfig(), evaluator)


def test_ability_check(dice, evaluator, make_actor):
    dice.script(12)
    message = _roll(make_actor(), evaluator, kind="check", target="str")
    check = message.fragments[0]
    assert check.formula == "1d20 + 3"
    assert check.total == 15
    assert message.title == "STR Check"
    assert message.item_id is None


def test_check_bonus_and_jack_of_all_trades(dice, evaluator, make_actor):
    dice.script(10)
    actor = make_actor(proficiency=3, check_bonus="1", flags={"jack_of_all_trades": True})
    check = _roll(actor, evaluator, kind="check", target="str").fragments[0]
    assert check.formula == "1d20 + 3 + 1 + 1"
    assert check.total == 15


def test_saving_throw(dice, evaluator, make_actor):
    dice.script(10)
    actor = make_actor(saves={"dex": {"value": 2, "prof": 1}})
    save = _roll(actor, evaluator, kind="save", target="dex").fragments[0]
    assert save.formula == "1d20 + 2 + 2"
    assert save.total == 14


def test_saving_throw_without_modifiers(dice, evaluator, make_actor):
    dice.script(10)
    actor = make_actor(saves={"wis": {"value": 0, "prof": 0}})
    save = _roll(actor, evaluator, kind="save", target="wis").fragments[0]
    assert save.formula == "1d20"


def test_skill(dice, evaluator, make_actor):
    dice.script(8)
    actor = make_actor(skills={"ath": 5}, skill_bonus="1")
    skill = _roll(actor, evaluator, kind="skill", target="ath").fragments[0]
    assert skill.formula == "1d20 + 5 + 1"
    assert skill.total == 14


def test_advantage_and_triple(dice, evaluator, make_actor):
    dice.script(3, 18)
    check = _roll(make_actor(), evaluator, kind="check", target="dex", advantage=1).fragments[0]
    assert check.roll_state == RollState.HIGHEST
    assert check.total == 19

    dice.script(3, 18, 7)
    check = _roll(make_actor(), evaluator, kind="check", target="dex", triple=True).fragments[0]
    assert len(check.outcomes) == 3


def test_nat20_never_crits_the_action(dice, evaluator, make_actor):
    dice.script(20)
    message = _roll(make_actor(), evaluator, kind="check", target="str")
    assert message.fragments[0].outcomes[0].crit == CritTag.SUCCESS
    assert message.is_crit is False
    assert len(message.dice_pool) == 1


def test_unknown_target(evaluator, make_actor):
    with pytest.raises(ValueError):
        _roll(make_actor(), evaluator, kind="skill", target="nope")
