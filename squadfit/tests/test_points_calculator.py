"""
Tests for the points calculator.
"""
from decimal import Decimal

import pytest
from squadfit.database.models import Exercise
from squadfit.services import points_calculator
from squadfit.utils.constants import BASE_POINTS


def test_base_formula():
    assert BASE_POINTS == 10
    assert points_calculator.calculate_points(1) == 10
    assert points_calculator.calculate_points(2) == 20
    assert points_calculator.calculate_points(4) == 40


def test_challenge_multiplier():
    assert points_calculator.calculate_points(2, 3) == 60
    assert points_calculator.calculate_points(2, 1.0) == 20
    assert points_calculator.calculate_points(3, Decimal("2")) == 60


def test_fractional_multiplier_truncates():
    # 10 * 1 * 1.25 = 12.5 -> 12
    assert points_calculator.calculate_points(1, 1.25) == 12
    # 10 * 3 * 1.33 = 39.9 -> 39, never rounded up
    assert points_calculator.calculate_points(3, 1.33) == 39


def test_float_representation_does_not_leak():
    # 10 * 1 * 1.1 is 11.000000000000002 in binary floating point
    assert points_calculator.calculate_points(1, 1.1) == 11


def test_none_challenge_multiplier_means_one():
    assert points_calculator.calculate_points(2, None) == 20


def test_custom_base_points():
    assert points_calculator.calculate_points(2, 2, base_points=5) == 20
    assert points_calculator.calculate_points(2, 2, base_points=0) == 0


@pytest.mark.parametrize("difficulty", [0, -1, 1.5, True, "2", None])
def test_invalid_difficulty_rejected(difficulty):
    with pytest.raises(ValueError):
        points_calculator.calculate_points(difficulty)


def test_challenge_multiplier_below_one_rejected():
    with pytest.raises(ValueError):
        points_calculator.calculate_points(2, 0.5)


def test_negative_base_points_rejected():
    with pytest.raises(ValueError):
        points_calculator.calculate_points(2, 1, base_points=-10)


def test_difficulty_multiplier_for_exercise():
    assert points_calculator.difficulty_multiplier_for(Exercise(name="Plank", difficulty_id=3)) == 3
    # Exercises without a difficulty count as rank 1
    assert points_calculator.difficulty_multiplier_for(Exercise(name="Walk", difficulty_id=None)) == 1
