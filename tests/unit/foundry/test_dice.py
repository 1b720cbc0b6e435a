"""Unit tests for dice formula validation and local rolls."""

import random

import pytest

from foundrybridge.foundry.dice import roll_locally, validate_formula
from foundrybridge.foundry.errors import InvalidDiceFormula


class TestValidateFormula:
    """Character set and length checks."""

    @pytest.mark.parametrize("formula", ["1d20", "2d6+3", "d8", "1d20 + 1d4 - 1", "(2d6)"])
    def test_valid(self, formula):
        assert validate_formula(formula) == formula

    @pytest.mark.parametrize(
        "formula",
        ["", "1d20; rm -rf /", "2d6*3", "1D20", "roll 1d20", "1d20x"],
    )
    def test_invalid(self, formula):
        with pytest.raises(InvalidDiceFormula):
            validate_formula(formula)

    def test_too_long(self):
        with pytest.raises(InvalidDiceFormula):
            validate_formula("1d6+" * 30)

    def test_is_value_error(self):
        with pytest.raises(ValueError):
            validate_formula("abc")


class TestRollLocally:
    """Local rolling of NdS[+/-M] groups."""

    def test_single_group_in_range(self):
        rng = random.Random(42)
        for _ in range(50):
            result = roll_locally("1d20", rng=rng)
            assert 1 <= result.total <= 20

    def test_modifier_applied(self):
        result = roll_locally("2d6+3", rng=random.Random(1))
        assert 5 <= result.total <= 15
        assert result.breakdown.endswith(f" +3 = {result.total}")

    def test_negative_modifier(self):
        result = roll_locally("1d4-10", rng=random.Random(1))
        assert -9 <= result.total <= -6

    def test_multiple_groups(self):
        result = roll_locally("1d20 + 1d4", rng=random.Random(7))
        assert 2 <= result.total <= 24
        assert result.breakdown.count(" | ") == 1

    def test_subtracted_group(self):
        result = roll_locally("2d1 - 1d1")
        assert result.total == 1
        assert result.breakdown == "1, 1 = 2 | -(1) = -1"

    def test_subtracted_group_keeps_modifier_sign(self):
        result = roll_locally("1d1 - 1d1 + 3")
        assert result.total == 3
        assert result.breakdown == "1 = 1 | -(1) +3 = 2"

    def test_subtracted_group_range(self):
        rng = random.Random(5)
        for _ in range(50):
            assert -3 <= roll_locally("1d20 - 1d4", rng=rng).total <= 19

    def test_implicit_single_die(self):
        result = roll_locally("d1")
        assert result.total == 1
        assert result.breakdown == "1 = 1"

    def test_deterministic_with_seed(self):
        first = roll_locally("4d6", rng=random.Random(123))
        second = roll_locally("4d6", rng=random.Random(123))
        assert first.total == second.total
        assert first.breakdown == second.breakdown

    def test_reason_and_formula_carried(self):
        result = roll_locally("1d8", reason="Sting damage")
        assert result.formula == "1d8"
        assert result.reason == "Sting damage"
        assert result.timestamp.tzinfo is not None

    def test_zero_sided_die_rejected(self):
        with pytest.raises(InvalidDiceFormula):
            roll_locally("1d0")

    def test_too_many_dice_rejected(self):
        with pytest.raises(InvalidDiceFormula):
            roll_locally("1001d6")

    def test_no_dice_rejected(self):
        with pytest.raises(InvalidDiceFormula, match="No dice"):
            roll_locally("5+3")
