"""Dice formula evaluator — NdM terms, rerolls, keep, constants and @bindings."""

from __future__ import annotations

import math
import random
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace

from quickroll.models.roll import DieResult, RollOutcome


class FormulaError(ValueError):
    """A formula could not be parsed or a binding could not be resolved."""


@dataclass
class DiceTerm:
    count: int
    faces: int
    reroll_below: int | None = None
    keep: str | None = None  # "kh" or "kl"
    keep_count: int | None = None

    def render(self) -> str:
        text = f"{self.count}d{self.faces}"
        if self.reroll_below is not None:
            text += f"r<{self.reroll_below}"
        if self.keep:
            text += f"{self.keep}{self.keep_count}"
        return text


@dataclass
class NumericTerm:
    value: int

    def render(self) -> str:
        return str(self.value)


@dataclass
class VariableTerm:
    path: str

    def render(self) -> str:
        return f"@{self.path}"


Term = DiceTerm | NumericTerm | VariableTerm


@dataclass
class ParsedFormula:
    """A formula split into signed additive terms."""

    original: str
    terms: list[tuple[int, Term]] = field(default_factory=list)

    @property
    def has_dice(self) -> bool:
        return any(isinstance(t, DiceTerm) for _, t in self.terms)

    def render(self) -> str:
        return _join(
            (sign, term.render()) for sign, term in self.terms
        )


_TERM_PATTERN = re.compile(
    r"\s*(?P<sign>(?:[+-]\s*)*)"
    r"(?:(?P<count>\d*)d(?P<faces>\d+)"  # NdM
    r"(?:r<(?P<reroll>\d+))?"  # optional r<N (reroll once below N)
    r"(?:(?P<keep>k[hl]?)(?P<keep_count>\d*))?"  # optional k/kh/kl
    r"|(?P<number>\d+)"
    r"|@(?P<var>[A-Za-z_][\w.]*))\s*",
    re.IGNORECASE,
)

_MAX_BINDING_DEPTH = 8


def parse_formula(formula: str) -> ParsedFormula:
    """Parse a roll formula into signed terms.

    Supported terms, joined by ``+`` / ``-``:
        NdM        - e.g. 2d6, d20
        NdMr<X     - reroll each die once when it lands below X (1d20r<2)
        NdMkK      - keep highest K (also khK); NdMklK keeps lowest K
        N          - integer constant
        @path      - dotted reference into the binding map

    Raises:
        FormulaError: If the formula cannot be parsed.
    """
    text = formula.strip()
    if not text:
        raise FormulaError("Empty dice formula")

    terms: list[tuple[int, Term]] = []
    pos = 0
    while pos < len(text):
        match = _TERM_PATTERN.match(text, pos)
        if match is None:
            raise FormulaError(f"Invalid dice formula: {formula}")
        signs = match.group("sign")
        if terms and not signs:
            raise FormulaError(f"Missing operator in dice formula: {formula}")
        sign = -1 if signs.count("-") % 2 else 1

        if match.group("faces") is not None:
            term = _dice_term(match, formula)
        elif match.group("number") is not None:
            term = NumericTerm(int(match.group("number")))
        else:
            term = VariableTerm(match.group("var"))
        terms.append((sign, term))
        pos = match.end()

    return ParsedFormula(original=formula, terms=terms)


def _dice_term(match: re.Match, formula: str) -> DiceTerm:
    count_str = match.group("count")
    count = int(count_str) if count_str else 1
    faces = int(match.group("faces"))
    if faces < 1:
        raise FormulaError(f"Dice need at least one face: {formula}")

    reroll = match.group("reroll")
    keep = match.group("keep")
    keep_count = None
    if keep:
        keep = keep.lower()
        if keep == "k":
            keep = "kh"
        keep_count = int(match.group("keep_count") or 1)
        if keep_count > count:
            raise FormulaError(f"Cannot keep {keep_count} dice from {count} rolls")

    return DiceTerm(
        count=count,
        faces=faces,
        reroll_below=int(reroll) if reroll else None,
        keep=keep,
        keep_count=keep_count,
    )


def _join(parts) -> str:
    out = ""
    for sign, text in parts:
        if not out:
            out = text if sign > 0 else f"-{text}"
        else:
            out += f" {'+' if sign > 0 else '-'} {text}"
    return out or "0"


def lookup_binding(bindings: Mapping | None, path: str):
    """Resolve a dotted path inside nested mappings; None when absent."""
    value = bindings
    for part in path.split("."):
        if isinstance(value, Mapping) and part in value:
            value = value[part]
        else:
            return None
    return value


def has_dice(formula: str) -> bool:
    return parse_formula(formula).has_dice


def add_dice(formula: str, extra: int) -> str:
    """Return the formula with ``extra`` more dice on every dice term."""
    parsed = parse_formula(formula)
    if extra:
        parsed.terms = [
            (sign, replace(t, count=t.count + extra) if isinstance(t, DiceTerm) else t)
            for sign, t in parsed.terms
        ]
    return parsed.render()


class FormulaEvaluator:
    """Evaluates formulas against a binding map using an injectable RNG."""

    def __init__(self, rng: random.Random | None = None, seed: int | None = None) -> None:
        self._rng = rng if rng is not None else random.Random(seed)

    def evaluate(self, formula: str, bindings: Mapping | None = None) -> RollOutcome:
        return self._run(formula, bindings, maximize=False)

    def maximize_outcome(self, formula: str, bindings: Mapping | None = None) -> RollOutcome:
        """Evaluate with every die forced to its highest face; consumes no RNG."""
        return self._run(formula, bindings, maximize=True)

    def maximize(self, formula: str, bindings: Mapping | None = None) -> int:
        return self.maximize_outcome(formula, bindings).total

    def _run(self, formula: str, bindings: Mapping | None, maximize: bool) -> RollOutcome:
        parsed = parse_formula(formula)
        flat = self._flatten(parsed, bindings or {}, 1, 0)

        total = 0
        dice: list[DieResult] = []
        rendered: list[tuple[int, str]] = []
        for sign, term in flat:
            if isinstance(term, DiceTerm):
                results = self._roll(term, maximize)
                dice.extend(results)
                subtotal = sum(d.rolled_value for d in results if not d.discarded)
                rendered.append((sign, term.render()))
            else:
                subtotal = term.value
                rendered.append((sign, str(term.value)))
            total += sign * subtotal

        return RollOutcome(formula=_join(rendered), total=total, dice=dice)

    def _flatten(
        self, parsed: ParsedFormula, bindings: Mapping, outer: int, depth: int
    ) -> list[tuple[int, DiceTerm | NumericTerm]]:
        """Substitute bindings; string bindings are inlined as sub-formulas."""
        if depth > _MAX_BINDING_DEPTH:
            raise FormulaError(f"Binding recursion too deep in: {parsed.original}")

        flat: list[tuple[int, DiceTerm | NumericTerm]] = []
        for sign, term in parsed.terms:
            sign *= outer
            if not isinstance(term, VariableTerm):
                flat.append((sign, term))
                continue

            value = lookup_binding(bindings, term.path)
            if value is None or value == "":
                flat.append((sign, NumericTerm(0)))
            elif isinstance(value, (bool, int, float)):
                number = math.floor(value)
                flat.append((sign if number >= 0 else -sign, NumericTerm(abs(number))))
            elif isinstance(value, str):
                sub = parse_formula(value)
                flat.extend(self._flatten(sub, bindings, sign, depth + 1))
            else:
                raise FormulaError(f"@{term.path} does not resolve to a number or formula")
        return flat

    def _roll(self, term: DiceTerm, maximize: bool) -> list[DieResult]:
        values = []
        for _ in range(term.count):
            if maximize:
                value = term.faces
            else:
                value = self._rng.randint(1, term.faces)
                if term.reroll_below is not None and value < term.reroll_below:
                    value = self._rng.randint(1, term.faces)
            values.append(value)

        kept = set(range(len(values)))
        if term.keep:
            order = sorted(
                range(len(values)),
                key=lambda i: values[i],
                reverse=term.keep == "kh",
            )
            kept = set(order[: term.keep_count])

        return [
            DieResult(face_count=term.faces, rolled_value=v, discarded=i not in kept)
            for i, v in enumerate(values)
        ]
