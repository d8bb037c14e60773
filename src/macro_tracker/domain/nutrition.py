"""Nutrition domain models."""

from dataclasses import dataclass
from enum import StrEnum


class ServingUnit(StrEnum):
    """Unit that food values are expressed per 100 of."""

    GRAMS = "g"
    MILLILITERS = "ml"


@dataclass(frozen=True)
class FoodItem:
    """A food with nutrition values per 100 units."""

    id: int
    name: str
    calories: float
    protein: float
    carbs: float
    fat: float
    serving_unit: ServingUnit = ServingUnit.GRAMS
    is_custom: bool = False
    serving: str = "100g"


@dataclass(frozen=True)
class DailyEntry:
    """A logged portion of food with absolute macro values.

    ``food_id`` is a weak back-reference: the food may have been edited or
    deleted since, which is why name and macros are snapshotted here.
    """

    id: int
    food_id: int | None
    name: str
    portion_size: float
    unit: str
    calories: float
    protein: float
    carbs: float
    fat: float
    date: str
    meal_time: str
    servings: float = 1.0


@dataclass(frozen=True)
class Goals:
    """Daily calorie and macro targets."""

    calories: int = 2200
    protein: int = 165
    carbs: int = 275
    fat: int = 73


DEFAULT_GOALS = Goals()


@dataclass(frozen=True)
class CalculatorData:
    """Inputs the goals calculator was last run with."""

    age: float
    gender: str
    height: float
    weight: float
    unit_system: str
    height_inches: float | None = None
    activity_level: str = "moderate"


@dataclass(frozen=True)
class MacroTotals:
    """Summed calories and macros."""

    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0


@dataclass(frozen=True)
class UserData:
    """The full dataset a user owns."""

    custom_foods: list[FoodItem]
    daily_entries: list[DailyEntry]
    goals: Goals = DEFAULT_GOALS
    calculator_data: CalculatorData | None = None


BUILT_IN_FOODS: tuple[FoodItem, ...] = (
    FoodItem(id=1, name="Chicken Breast", calories=165, protein=31, carbs=0, fat=3.6),
    FoodItem(id=2, name="Brown Rice", calories=111, protein=2.6, carbs=23, fat=0.9),
    FoodItem(id=3, name="Avocado", calories=160, protein=2, carbs=9, fat=15),
    FoodItem(id=4, name="Eggs", calories=155, protein=13, carbs=1.1, fat=11),
    FoodItem(id=5, name="Oatmeal", calories=389, protein=16.9, carbs=66.3, fat=6.9),
    FoodItem(id=6, name="Salmon", calories=208, protein=20, carbs=0, fat=12),
    FoodItem(id=7, name="Greek Yogurt", calories=59, protein=10, carbs=3.6, fat=0.4),
    FoodItem(id=8, name="Sweet Potato", calories=86, protein=1.6, carbs=20, fat=0.1),
)
