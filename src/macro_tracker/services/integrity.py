"""Guards against non-finite nutrition values.

NaN and Infinity reach stored entries and custom foods through malformed
imports, division by zero while scaling portions, or older bugs. They are
detected when records are loaded, summed, displayed and created; at display
time a bad field counts as zero, while removal only happens on load or by
explicit cleanup.
"""

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TypeVar

from macro_tracker.domain.nutrition import DailyEntry, FoodItem, MacroTotals

_logger = logging.getLogger(__name__)

_MACRO_FIELDS = ("calories", "protein", "carbs", "fat")

_Record = TypeVar("_Record", DailyEntry, FoodItem)


@dataclass(frozen=True)
class CorruptionReport:
    """Corrupted entries and custom foods awaiting an explicit cleanup action."""

    count: int
    entry_ids: tuple[int, ...]
    food_ids: tuple[int, ...] = ()

    @property
    def needs_cleanup(self) -> bool:
        return self.count > 0



@dataclass(frozen=True)
class GoalProgress:
    """Progress of a daily total towards its goal."""

    current: float
    goal: float
    percentage: float
    remaining: float


def is_valid_number(value: object) -> bool:
    """Return True for a finite int or float (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    return math.isfinite(value)


def safe_number(value: object, fallback: float = 0.0) -> float:
    """Convert a value to a finite float, or return the fallback."""
    if isinstance(value, bool):
        return fallback
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return fallback
    return number if math.isfinite(number) else fallback


def is_corrupted(record: DailyEntry | FoodItem) -> bool:
    """Return True if any macro field of an entry or food is not finite."""
    return any(not is_valid_number(getattr(record, name)) for name in _MACRO_FIELDS)


def filter_corrupted(records: Iterable[_Record]) -> list[_Record]:
    """Return a new list without corrupted entries or foods."""
    clean: list[_Record] = []
    for record in records:
        if is_corrupted(record):
            _logger.warning(
                "Removing %s with non-finite values: id=%s name=%s "
                "calories=%s protein=%s carbs=%s fat=%s",
                "food" if isinstance(record, FoodItem) else "entry",
                record.id,
                record.name,
                record.calories,
                record.protein,
                record.carbs,
                record.fat,
            )
            continue
        clean.append(record)
    return clean


def count_corrupted(
    entries: Iterable[DailyEntry], foods: Iterable[FoodItem] = ()
) -> int:
    """Count corrupted entries and custom foods."""
    return sum(1 for record in (*entries, *foods) if is_corrupted(record))


def corruption_report(
    entries: Iterable[DailyEntry], foods: Iterable[FoodItem] = ()
) -> CorruptionReport:
    """Summarize corrupted entries and custom foods for a repair prompt."""
    entry_ids = tuple(entry.id for entry in entries if is_corrupted(entry))
    food_ids = tuple(food.id for food in foods if is_corrupted(food))
    return CorruptionReport(
        count=len(entry_ids) + len(food_ids), entry_ids=entry_ids, food_ids=food_ids
    )


def safe_aggregate(entries: Iterable[DailyEntry]) -> MacroTotals:
    """Sum macros, treating each non-finite field as zero for that field only."""
    totals = dict.fromkeys(_MACRO_FIELDS, 0.0)
    for entry in entries:
        for name in _MACRO_FIELDS:
            totals[name] += safe_number(getattr(entry, name))
    return MacroTotals(**totals)


def safe_display(value: object, decimals: int = 0) -> str:
    """Format a number with fixed decimals, showing "0" instead of NaN."""
    if isinstance(value, bool):
        return "0"
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return "0"
    if not math.isfinite(number):
        return "0"
    return f"{number:.{decimals}f}"


def goal_progress(current: float, goal: float) -> GoalProgress:
    """Compute capped percentage and remaining amount towards a goal."""
    safe_current = safe_number(current)
    safe_goal = safe_number(goal, fallback=1.0)
    if safe_goal <= 0:
        safe_goal = 1.0
    percentage = min(safe_current / safe_goal * 100, 100.0)
    remaining = max(safe_goal - safe_current, 0.0)
    return GoalProgress(
        current=safe_current,
        goal=safe_goal,
        percentage=percentage,
        remaining=remaining,
    )
