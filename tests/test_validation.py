"""Tests for input validation and sanitization."""

import math

import pytest

from macro_tracker.domain.nutrition import CalculatorData, Goals
from macro_tracker.services.validation import (
    format_validation_errors,
    parse_number,
    sanitize_string,
    validate_calculator_data,
    validate_credentials,
    validate_food,
    validate_goals,
    validate_portion_size,
)


def test_parse_number_reads_numeric_prefix() -> None:
    assert parse_number("12.5g") == 12.5
    assert parse_number("  7 ") == 7.0
    assert parse_number("") is None
    assert parse_number(None) is None
    assert math.isnan(parse_number("abc"))
    assert parse_number("-Infinity") == -math.inf


def test_sanitize_escapes_and_trims() -> None:
    assert sanitize_string("  <b>Tom's & \"Jerry\"</b> ") == (
        "&lt;b&gt;Tom&#x27;s &amp; &quot;Jerry&quot;&lt;/b&gt;"
    )


def test_sanitize_is_not_idempotent_for_escaped_text() -> None:
    once = sanitize_string("<")
    assert once == "&lt;"
    assert sanitize_string(once) == "&amp;lt;"


def test_sanitize_is_stable_for_plain_text() -> None:
    assert sanitize_string(sanitize_string("Greek Yogurt")) == "Greek Yogurt"


def test_validate_food_accumulates_errors() -> None:
    result = validate_food(
        {"name": "", "calories": "-5", "protein": "200", "carbs": "0", "fat": "0"}
    )

    assert not result.is_valid
    assert "Food name is required" in result.errors
    assert "Calories cannot be negative" in result.errors
    assert "Protein per 100g cannot exceed 100g" in result.errors
    assert len(set(result.errors)) >= 3


def test_validate_food_cross_check_passes_when_consistent() -> None:
    result = validate_food(
        {"name": "Whey", "calories": "100", "protein": "25", "carbs": "0", "fat": "0"}
    )
    assert result.is_valid


def test_validate_food_cross_check_fails_outside_tolerance() -> None:
    result = validate_food(
        {"name": "Oil", "calories": "100", "protein": "0", "carbs": "0", "fat": "20"}
    )
    assert not result.is_valid
    assert result.errors == [
        "Nutritional values don't match expected calorie calculation "
        "(check your values)"
    ]


def test_validate_food_skips_cross_check_for_low_calorie_foods() -> None:
    result = validate_food(
        {"name": "Tea", "calories": "40", "protein": "0", "carbs": "0", "fat": "0"}
    )
    assert result.is_valid


def test_validate_food_name_length_bounds() -> None:
    short = validate_food(
        {"name": " a ", "calories": "0", "protein": "0", "carbs": "0", "fat": "0"}
    )
    long = validate_food(
        {"name": "x" * 101, "calories": "0", "protein": "0", "carbs": "0", "fat": "0"}
    )
    assert short.errors == ["Food name must be at least 2 characters"]
    assert long.errors == ["Food name must be less than 100 characters"]


def test_validate_food_does_not_mutate_input() -> None:
    form = {"name": "  Rice ", "calories": "130", "protein": "2.7", "carbs": "28"}
    snapshot = dict(form)
    validate_food(form)
    assert form == snapshot


@pytest.mark.parametrize(
    ("raw", "valid"),
    [("10000", True), ("10001", False), ("0", False), ("-1", False), ("1", True)],
)
def test_portion_size_boundaries(raw: str, valid: bool) -> None:
    assert validate_portion_size(raw).is_valid is valid


def test_portion_size_messages() -> None:
    assert validate_portion_size("").errors == ["Portion size is required"]
    assert validate_portion_size("abc").errors == [
        "Portion size must be a valid number"
    ]
    assert validate_portion_size("10001").errors == [
        "Portion size seems too large (max 10,000g)"
    ]


def test_calculator_data_imperial_bounds() -> None:
    data = CalculatorData(
        age=30,
        gender="female",
        height=5,
        weight=140,
        unit_system="imperial",
        height_inches=6,
    )
    assert validate_calculator_data(data).is_valid

    bad = validate_calculator_data(
        {
            "age": 12,
            "gender": "other",
            "height": 9,
            "height_inches": 12,
            "weight": 40,
            "unit_system": "imperial",
        }
    )
    assert bad.errors == [
        "Age must be at least 15 years",
        "Height must be 8 feet or less",
        "Height (inches) must be between 0 and 11",
        "Weight must be at least 50 pounds",
        "Gender selection is required",
    ]


def test_calculator_data_metric_bounds() -> None:
    result = validate_calculator_data(
        {
            "age": 81,
            "gender": "male",
            "height": 99,
            "weight": 451,
            "unit_system": "metric",
        }
    )
    assert result.errors == [
        "Age must be 80 years or less",
        "Height must be at least 100 cm",
        "Weight must be 450 kg or less",
    ]


def test_calculator_data_requires_unit_system() -> None:
    result = validate_calculator_data(
        {"age": 30, "gender": "male", "height": 180, "weight": 80}
    )
    assert "Unit system selection is required" in result.errors


def test_validate_goals_accepts_defaults() -> None:
    assert validate_goals(Goals()).is_valid


def test_validate_goals_allows_zero_carbs() -> None:
    result = validate_goals({"calories": 1800, "protein": 200, "carbs": 0, "fat": 111})
    assert result.is_valid


def test_validate_goals_reports_ranges_and_cross_check() -> None:
    result = validate_goals({"calories": 500, "protein": 5, "carbs": 10, "fat": 5})
    assert result.errors == [
        "Calorie goal should be at least 800 for safety",
        "Protein goal should be at least 10g",
        "Fat goal should be at least 10g for essential fatty acids",
        "Macro goals don't match calorie goal. Consider adjusting your values.",
    ]


def test_validate_goals_missing_values() -> None:
    result = validate_goals({})
    assert result.errors == [
        "Calorie goal is required",
        "Protein goal is required",
        "Carbs goal is required",
        "Fat goal is required",
    ]


def test_validate_credentials() -> None:
    assert validate_credentials("alice_1", "secret1").is_valid
    result = validate_credentials(" a!", "123")
    assert result.errors == [
        "Username must be at least 3 characters long",
        "Password must be at least 6 characters long",
        "Username can only contain letters, numbers, and underscores",
    ]


def test_format_validation_errors() -> None:
    assert format_validation_errors(["One", "Two"]) == "One. Two"
