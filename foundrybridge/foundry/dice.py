"""
Dice formula validation and local rolling.

Used as the fallback when the server cannot roll for us (no REST API module,
or the request failed). Supports ``NdS`` groups with an optional flat
modifier per group, e.g. ``2d6+3``, ``1d20 + 1d4``, ``1d20 - 1d4``, ``d8``.
"""

from __future__ import annotations

import random
import re

from foundrybridge.foundry.errors import InvalidDiceFormula
from foundrybridge.foundry.models import DiceRoll

MAX_FORMULA_LENGTH = 100
MAX_DICE_PER_GROUP = 1000

_ALLOWED = re.compile(r"^[0-9d\s+\-()]+$")
_GROUP = re.compile(r"([+-]?)\s*(\d*)d(\d+)\s*([+-]\s*\d+\b(?!\s*d))?")


def validate_formula(formula: str) -> str:
    """
    Check a formula against the allowed character set and length.

    Returns:
        The formula, unchanged

    Raises:
        InvalidDiceFormula: If empty, longer than 100 characters, or using
            characters other than digits, ``d``, ``+``, ``-``, parentheses
            and whitespace
    """
    if not formula or len(formula) > MAX_FORMULA_LENGTH or not _ALLOWED.fullmatch(formula):
        raise InvalidDiceFormula(f"Invalid dice formula: {formula!r}")
    return formula


def roll_locally(
    formula: str,
    reason: str | None = None,
    rng: random.Random | None = None,
) -> DiceRoll:
    """
    Roll every ``NdS[+M]`` group of a formula and add the results.

    Args:
        formula: Dice formula, validated with validate_formula()
        reason: Optional label carried into the result
        rng: Random source (tests pass a seeded ``random.Random``)

    Returns:
        DiceRoll whose breakdown lists each group as ``rolls [mod] = sum``,
        groups separated by `` | ``

    Raises:
        InvalidDiceFormula: If the formula is invalid or has no dice groups
    """
    validate_formula(formula)
    rng = rng or random.Random()

    total = 0
    breakdown: list[str] = []
    for match in _GROUP.finditer(formula):
        negative = match.group(1) == "-"
        count = int(match.group(2) or 1)
        sides = int(match.group(3))
        modifier_text = (match.group(4) or "").replace(" ", "")
        modifier = int(modifier_text) if modifier_text else 0

        if sides < 1 or count > MAX_DICE_PER_GROUP:
            raise InvalidDiceFormula(f"Invalid dice group {match.group(0)!r} in {formula!r}")

        rolls = [rng.randint(1, sides) for _ in range(count)]
        # The sign in front of a group applies to its dice, not its modifier
        group_sum = (-sum(rolls) if negative else sum(rolls)) + modifier
        total += group_sum

        mod_part = f" {modifier_text}" if modifier else ""
        dice_part = ", ".join(map(str, rolls))
        if negative:
            dice_part = f"-({dice_part})"
        breakdown.append(f"{dice_part}{mod_part} = {group_sum}")

    if not breakdown:
        raise InvalidDiceFormula(f"No dice in formula: {formula!r}")

    return DiceRoll(
        formula=formula,
        total=total,
        breakdown=" | ".join(breakdown),
        reason=reason,
    )
