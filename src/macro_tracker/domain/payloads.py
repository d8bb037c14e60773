"""Mapping between domain models and the camelCase JSON wire format."""

import math

from macro_tracker.domain.nutrition import (
    DEFAULT_GOALS,
    CalculatorData,
    DailyEntry,
    FoodItem,
    Goals,
    ServingUnit,
    UserData,
)


def food_to_payload(food: FoodItem) -> dict[str, object]:
    """Serialize a food item."""
    return {
        "id": food.id,
        "name": food.name,
        "calories": food.calories,
        "protein": food.protein,
        "carbs": food.carbs,
        "fat": food.fat,
        "serving": food.serving,
        "unit": food.serving_unit.value,
        "isCustom": food.is_custom,
    }


def food_from_payload(row: dict[str, object]) -> FoodItem:
    """Deserialize a food item, keeping unreadable numbers as NaN."""
    unit = (
        ServingUnit.MILLILITERS
        if row.get("unit") == ServingUnit.MILLILITERS.value
        else ServingUnit.GRAMS
    )
    return FoodItem(
        id=_to_int(row.get("id"), 0),
        name=str(row.get("name") or ""),
        calories=_to_float(row.get("calories")),
        protein=_to_float(row.get("protein")),
        carbs=_to_float(row.get("carbs")),
        fat=_to_float(row.get("fat")),
        serving_unit=unit,
        is_custom=bool(row.get("isCustom", row.get("is_custom", True))),
        serving=str(row.get("serving") or f"100{unit.value}"),
    )


def entry_to_payload(entry: DailyEntry) -> dict[str, object]:
    """Serialize a daily entry."""
    return {
        "id": entry.id,
        "foodId": entry.food_id,
        "name": entry.name,
        "servings": entry.servings,
        "portionSize": entry.portion_size,
        "unit": entry.unit,
        "calories": entry.calories,
        "protein": entry.protein,
        "carbs": entry.carbs,
        "fat": entry.fat,
        "date": entry.date,
        "mealTime": entry.meal_time,
    }


def entry_from_payload(row: dict[str, object]) -> DailyEntry:
    """Deserialize a daily entry, accepting snake_case database columns."""
    food_id = row.get("foodId", row.get("food_id"))
    portion = row.get("portionSize", row.get("portion_size"))
    return DailyEntry(
        id=_to_int(row.get("id"), 0),
        food_id=_to_int(food_id, 0) if food_id is not None else None,
        name=str(row.get("name") or ""),
        portion_size=_to_float(portion) if portion is not None else 0.0,
        unit=str(row.get("unit") or "g"),
        calories=_to_float(row.get("calories")),
        protein=_to_float(row.get("protein")),
        carbs=_to_float(row.get("carbs")),
        fat=_to_float(row.get("fat")),
        date=str(row.get("date") or ""),
        meal_time=str(row.get("mealTime") or row.get("meal_time") or ""),
        servings=_to_float(row.get("servings", 1.0)),
    )


def goals_to_payload(goals: Goals) -> dict[str, object]:
    """Serialize goals."""
    return {
        "calories": goals.calories,
        "protein": goals.protein,
        "carbs": goals.carbs,
        "fat": goals.fat,
    }


def goals_from_payload(raw: object) -> Goals:
    """Deserialize goals, falling back to defaults per field."""
    if not isinstance(raw, dict):
        return DEFAULT_GOALS
    return Goals(
        calories=_to_int(raw.get("calories"), DEFAULT_GOALS.calories),
        protein=_to_int(raw.get("protein"), DEFAULT_GOALS.protein),
        carbs=_to_int(raw.get("carbs"), DEFAULT_GOALS.carbs),
        fat=_to_int(raw.get("fat"), DEFAULT_GOALS.fat),
    )


def calculator_to_payload(data: CalculatorData) -> dict[str, object]:
    """Serialize calculator inputs."""
    return {
        "age": data.age,
        "gender": data.gender,
        "height": data.height,
        "heightInches": data.height_inches,
        "weight": data.weight,
        "activityLevel": data.activity_level,
        "unitSystem": data.unit_system,
    }


def calculator_from_payload(raw: object) -> CalculatorData | None:
    """Deserialize calculator inputs, if present."""
    if not isinstance(raw, dict):
        return None
    inches = raw.get("heightInches", raw.get("height_inches"))
    return CalculatorData(
        age=_to_float(raw.get("age")),
        gender=str(raw.get("gender") or ""),
        height=_to_float(raw.get("height")),
        weight=_to_float(raw.get("weight")),
        unit_system=str(raw.get("unitSystem") or raw.get("unit_system") or ""),
        height_inches=_to_float(inches) if inches is not None else None,
        activity_level=str(
            raw.get("activityLevel") or raw.get("activity_level") or "moderate"
        ),
    )


def user_data_to_payload(data: UserData) -> dict[str, object]:
    """Serialize a full user dataset."""
    payload: dict[str, object] = {
        "customFoods": [food_to_payload(food) for food in data.custom_foods],
        "dailyEntries": [entry_to_payload(entry) for entry in data.daily_entries],
        "goals": goals_to_payload(data.goals),
    }
    if data.calculator_data is not None:
        payload["calculatorData"] = calculator_to_payload(data.calculator_data)
    return payload


def user_data_from_payload(payload: dict[str, object]) -> UserData:
    """Deserialize a user dataset; absent collections default to empty."""
    foods = payload.get("customFoods") or []
    entries = payload.get("dailyEntries") or []
    return UserData(
        custom_foods=[
            food_from_payload(row) for row in foods if isinstance(row, dict)
        ],
        daily_entries=[
            entry_from_payload(row) for row in entries if isinstance(row, dict)
        ],
        goals=goals_from_payload(payload.get("goals")),
        calculator_data=calculator_from_payload(payload.get("calculatorData")),
    )


def _to_float(value: object) -> float:
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return math.nan
    return math.nan


def _to_int(value: object, default: int) -> int:
    number = _to_float(value)
    if not math.isfinite(number):
        return default
    return int(number)
