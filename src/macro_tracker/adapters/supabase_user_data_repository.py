"""Supabase repository for per-user nutrition data."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from macro_tracker.domain.nutrition import (
    DEFAULT_GOALS,
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
from macro_tracker.services.user_data import UserDataRepository


@dataclass
class SupabaseUserDataRepository(UserDataRepository):
    """Supabase implementation for custom foods, entries, goals and calculator data.

    Collections are replaced by deleting a user's rows and inserting the new
    ones; the database assigns fresh ids on insert.
    """

    client: Client

    def get_user_data(self, user_id: str) -> UserData:
        """Return the stored dataset, with defaults for missing parts."""
        foods = (
            self.client.table("custom_foods")
            .select("id, name, calories, protein, carbs, fat, serving, unit")
            .eq("user_id", user_id)
            .order("id")
            .execute()
        )
        entries = (
            self.client.table("daily_entries")
            .select(
                "id, food_id, name, servings, portion_size, unit, calories, "
                "protein, carbs, fat, date, meal_time"
            )
            .eq("user_id", user_id)
            .order("id")
            .execute()
        )
        return UserData(
            custom_foods=[food_from_payload(row) for row in foods.data or []],
            daily_entries=[entry_from_payload(row) for row in entries.data or []],
            goals=self._get_goals(user_id),
            calculator_data=self._get_calculator_data(user_id),
        )

    def replace_custom_foods(self, user_id: str, foods: list[FoodItem]) -> None:
        """Replace all custom foods for a user."""
        self.client.table("custom_foods").delete().eq("user_id", user_id).execute()
        if not foods:
            return
        self.client.table("custom_foods").insert(
            [
                {
                    "user_id": user_id,
                    "name": food.name,
                    "calories": food.calories,
                    "protein": food.protein,
                    "carbs": food.carbs,
                    "fat": food.fat,
                    "serving": food.serving,
                    "unit": food.serving_unit.value,
                }
                for food in foods
            ]
        ).execute()

    def replace_daily_entries(self, user_id: str, entries: list[DailyEntry]) -> None:
        """Replace all daily entries for a user."""
        self.client.table("daily_entries").delete().eq("user_id", user_id).execute()
        if not entries:
            return
        self.client.table("daily_entries").insert(
            [
                {
                    "user_id": user_id,
                    "food_id": entry.food_id,
                    "name": entry.name,
                    "servings": entry.servings,
                    "portion_size": entry.portion_size,
                    "unit": entry.unit,
                    "calories": entry.calories,
                    "protein": entry.protein,
                    "carbs": entry.carbs,
                    "fat": entry.fat,
                    "date": entry.date,
                    "meal_time": entry.meal_time,
                }
                for entry in entries
            ]
        ).execute()

    def upsert_goals(self, user_id: str, goals: Goals) -> None:
        """Store goals for a user."""
        self.client.table("user_goals").upsert(
            {
                "user_id": user_id,
                "calories": goals.calories,
                "protein": goals.protein,
                "carbs": goals.carbs,
                "fat": goals.fat,
                "updated_at": datetime.now(tz=UTC).isoformat(),
            }
        ).execute()

    def upsert_calculator_data(self, user_id: str, data: CalculatorData) -> None:
        """Store calculator inputs for a user."""
        self.client.table("user_calculator_data").upsert(
            {
                "user_id": user_id,
                "age": data.age,
                "gender": data.gender,
                "height": data.height,
                "height_inches": data.height_inches,
                "weight": data.weight,
                "activity_level": data.activity_level,
                "unit_system": data.unit_system,
                "updated_at": datetime.now(tz=UTC).isoformat(),
            }
        ).execute()

    def delete_daily_entry(self, user_id: str, entry_id: int) -> bool:
        """Delete one entry owned by the user."""
        response = (
            self.client.table("daily_entries")
            .delete()
            .eq("id", entry_id)
            .eq("user_id", user_id)
            .execute()
        )
        return bool(response.data)

    def _get_goals(self, user_id: str) -> Goals:
        response = (
            self.client.table("user_goals")
            .select("calories, protein, carbs, fat")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return DEFAULT_GOALS
        return goals_from_payload(response.data[0])

    def _get_calculator_data(self, user_id: str) -> CalculatorData | None:
        response = (
            self.client.table("user_calculator_data")
            .select(
                "age, gender, height, height_inches, weight, activity_level, "
                "unit_system"
            )
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return calculator_from_payload(response.data[0])
