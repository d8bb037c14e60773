"""Per-user nutrition data held by the remote store."""

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

from macro_tracker.domain.errors import RequestRejected
from macro_tracker.domain.nutrition import (
    CalculatorData,
    DailyEntry,
    FoodItem,
    Goals,
    UserData,
)
from macro_tracker.domain.payloads import (
    calculator_from_payload,
    entry_from_payload,
    food_from_payload,
    goals_from_payload,
)
from macro_tracker.domain.results import Err, Ok

_logger = logging.getLogger(__name__)

_GOAL_LIMITS = {
    "calories": (10000, "Invalid calorie goal"),
    "protein": (500, "Invalid protein goal"),
    "carbs": (1000, "Invalid carbs goal"),
    "fat": (300, "Invalid fat goal"),
}
_FOOD_LIMITS = {
    "calories": (9000, "Invalid calories value"),
    "protein": (100, "Invalid protein value"),
    "carbs": (100, "Invalid carbs value"),
    "fat": (100, "Invalid fat value"),
}
_ACTIVITY_LEVELS = {"sedentary", "light", "moderate", "active", "veryActive"}
_ENTRY_FIELDS = ("calories", "protein", "carbs", "fat")


class UserDataRepository(Protocol):
    """Persistence interface for a user's dataset."""

    def get_user_data(self, user_id: str) -> UserData:
        """Return the stored dataset, with defaults for missing parts."""

    def replace_custom_foods(self, user_id: str, foods: list[FoodItem]) -> None:
        """Replace all custom foods; ids are assigned by the store."""

    def replace_daily_entries(self, user_id: str, entries: list[DailyEntry]) -> None:
        """Replace all daily entries; ids are assigned by the store."""

    def upsert_goals(self, user_id: str, goals: Goals) -> None:
        """Store goals."""

    def upsert_calculator_data(self, user_id: str, data: CalculatorData) -> None:
        """Store calculator inputs."""

    def delete_daily_entry(self, user_id: str, entry_id: int) -> bool:
        """Delete one entry; return False if it did not exist."""


@dataclass
class UserDataService:
    """Reads and replaces user datasets."""

    repository: UserDataRepository

    def get(self, user_id: str) -> UserData:
        """Return the user's dataset."""
        return self.repository.get_user_data(user_id)

    def save(
        self, user_id: str, payload: Mapping[str, object]
    ) -> Ok[None] | Err[RequestRejected]:
        """Validate a wire payload and replace the collections it contains."""
        error = validate_user_data_payload(payload)
        if error is not None:
            _logger.info("Rejected user data for %s: %s", user_id, error)
            return Err(RequestRejected(error, 400))

        foods = payload.get("customFoods")
        if isinstance(foods, list):
            self.repository.replace_custom_foods(
                user_id, [food_from_payload(row) for row in foods]
            )
        entries = payload.get("dailyEntries")
        if isinstance(entries, list):
            self.repository.replace_daily_entries(
                user_id, [entry_from_payload(row) for row in entries]
            )
        goals = payload.get("goals")
        if isinstance(goals, dict):
            self.repository.upsert_goals(user_id, goals_from_payload(goals))
        calculator = calculator_from_payload(payload.get("calculatorData"))
        if calculator is not None:
            self.repository.upsert_calculator_data(user_id, calculator)
        return Ok(None)

    def delete_entry(self, user_id: str, entry_id: int) -> bool:
        """Delete one daily entry."""
        return self.repository.delete_daily_entry(user_id, entry_id)


def validate_user_data_payload(  # noqa: PLR0911, PLR0912
    payload: Mapping[str, object],
) -> str | None:
    """Return the first problem with a save payload, or None.

    Only shapes and ranges are checked here. Entry macros must be
    non-negative numbers; JSON has no NaN, so a missing or non-numeric value
    is what a corrupted entry looks like on the wire.
    """
    foods = payload.get("customFoods")
    if foods is not None and not isinstance(foods, list):
        return "Custom foods must be an array"
    entries = payload.get("dailyEntries")
    if entries is not None and not isinstance(entries, list):
        return "Daily entries must be an array"
    goals = payload.get("goals")
    if goals is not None and not isinstance(goals, dict):
        return "Goals must be an object"
    calculator = payload.get("calculatorData")
    if calculator is not None and not isinstance(calculator, dict):
        return "Calculator data must be an object"

    if goals:
        for key, (maximum, message) in _GOAL_LIMITS.items():
            value = goals.get(key)
            if value is not None and not _in_range(value, 0, maximum):
                return message

    for food in foods or []:
        if not isinstance(food, dict):
            return "Invalid food name"
        name = food.get("name")
        if not isinstance(name, str) or len(name.strip()) < 2:
            return "Invalid food name"
        for key, (maximum, message) in _FOOD_LIMITS.items():
            if not _in_range(food.get(key), 0, maximum):
                return message

    for entry in entries or []:
        if not isinstance(entry, dict):
            return "Daily entries must be objects"
        if not all(_in_range(entry.get(key), 0, None) for key in _ENTRY_FIELDS):
            return "Invalid daily entry values"

    if calculator:
        return _calculator_problem(calculator)
    return None


def _calculator_problem(data: Mapping[str, object]) -> str | None:  # noqa: PLR0911
    age = data.get("age")
    if age is not None and not _in_range(age, 15, 80):
        return "Invalid age value"
    gender = data.get("gender")
    if gender is not None and gender not in {"male", "female"}:
        return "Invalid gender value"
    height = data.get("height")
    if height is not None and not _in_range(height, 0, None):
        return "Invalid height value"
    inches = data.get("heightInches")
    if inches is not None and not _in_range(inches, 0, 11):
        return "Invalid height inches value"
    weight = data.get("weight")
    if weight is not None and not _in_range(weight, 0, None):
        return "Invalid weight value"
    activity = data.get("activityLevel")
    if activity is not None and activity not in _ACTIVITY_LEVELS:
        return "Invalid activity level value"
    unit_system = data.get("unitSystem")
    if unit_system is not None and unit_system not in {"imperial", "metric"}:
        return "Invalid unit system value"
    return None


def _in_range(value: object, low: float, high: float | None) -> bool:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    if not math.isfinite(value) or value < low:
        return False
    return high is None or value <= high
