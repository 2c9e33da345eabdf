"""Multi-roll resolver — advantage/disadvantage selection and crit tagging."""

from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence

from quickroll.models.roll import CritTag, ResolvedRoll, RollOutcome, RollState
from quickroll.modules.dice.parser import FormulaEvaluator

# Faces whose results can crit or fumble a d20-style roll.
D20_FACES = (20,)


def roll_count_for(base_count: int, roll_state: RollState | None, triple: bool = False) -> int:
    """Number of independent rolls to make.

    Advantage and disadvantage need at least two rolls to compare; a triple
    request always means exactly three.
    """
    if triple:
        return 3
    count = max(base_count, 1)
    if roll_state is not None and count == 1:
        count = 2
    return count


def tag_crit(
    outcome: RollOutcome,
    threshold: int | None = None,
    faces: Collection[int] | None = None,
) -> CritTag:
    """Classify one outcome by scanning its dice.

    Args:
        outcome: The evaluated roll.
        threshold: Minimum result counted as a crit; defaults to each die's
            face count (a natural maximum).
        faces: Face counts eligible for crit checks; None means every die
            with more than one face.
    """
    high = low = 0
    for die in outcome.dice:
        if die.discarded or die.face_count <= 1:
            continue
        if faces is not None and die.face_count not in faces:
            continue
        if die.rolled_value >= (threshold or die.face_count):
            high += 1
        elif die.rolled_value == 1:
            low += 1

    if high and not low:
        return CritTag.SUCCESS
    if low and not high:
        return CritTag.FAILURE
    if high and low:
        return CritTag.MIXED
    return CritTag.NONE


def resolve(
    evaluator: FormulaEvaluator,
    roll_count: int,
    formula: str,
    extra_terms: Sequence[str] = (),
    bindings: Mapping | None = None,
    roll_state: RollState | None = None,
    crit_threshold: int | None = None,
    crit_faces: Collection[int] | None = D20_FACES,
    triggers_crit: bool = False,
    triple: bool = False,
) -> ResolvedRoll:
    """Roll ``formula + extra_terms`` several times and pick the result.

    With no roll state the first outcome is chosen; ``highest`` / ``lowest``
    pick the first maximal / minimal total. Every other outcome is marked
    ignored. The roll counts as a crit only when the chosen outcome tagged
    success or mixed and the caller declared it crit-triggering.
    """
    count = roll_count_for(roll_count, roll_state, triple)
    full_formula = " + ".join([formula, *extra_terms])

    outcomes: list[RollOutcome] = []
    for _ in range(count):
        outcome = evaluator.evaluate(full_formula, bindings)
        outcome.crit = tag_crit(outcome, crit_threshold, crit_faces)
        outcomes.append(outcome)

    chosen = 0
    if roll_state == RollState.HIGHEST:
        chosen = max(range(count), key=lambda i: outcomes[i].total)
    elif roll_state == RollState.LOWEST:
        chosen = min(range(count), key=lambda i: outcomes[i].total)
    for i, outcome in enumerate(outcomes):
        outcome.ignored = i != chosen

    chosen_outcome = outcomes[chosen]
    is_crit = triggers_crit and chosen_outcome.crit in (CritTag.SUCCESS, CritTag.MIXED)

    return ResolvedRoll(
        formula=outcomes[0].formula,
        outcomes=outcomes,
        chosen_total=chosen_outcome.total,
        is_crit=is_crit,
        roll_state=roll_state,
    )
