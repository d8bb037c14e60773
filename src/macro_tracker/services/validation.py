"""Validation and sanitization of user-entered data.

Validators never raise and never mutate their input. Each returns a
``ValidationResult`` listing every problem found, in a stable order, so the
caller can render all of them at once.

The same credential validator runs on the client (to avoid a round trip) and
on the server (as the authority); keep the bounds in one place.
"""

import math
import re
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, is_dataclass

_NUMBER_PREFIX = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")
_INFINITY_PREFIX = re.compile(r"^[+-]?Infinity")
_USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
_ESCAPES = {
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
    "&": "&amp;",
}
_ESCAPE_PATTERN = re.compile(r"[<>'\"&]")

FOOD_CALORIE_TOLERANCE = 0.20
GOALS_CALORIE_TOLERANCE = 0.15
MAX_PORTION_SIZE = 10000
MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validator."""

    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class _MacroRule:
    key: str
    label: str
    maximum: float
    too_high: str


_FOOD_RULES = (
    _MacroRule(
        "calories", "Calories", 9000, "Calories per 100g seems too high (max 9000)"
    ),
    _MacroRule("protein", "Protein", 100, "Protein per 100g cannot exceed 100g"),
    _MacroRule("carbs", "Carbs", 100, "Carbs per 100g cannot exceed 100g"),
    _MacroRule("fat", "Fat", 100, "Fat per 100g cannot exceed 100g"),
)


def parse_number(value: object) -> float | None:
    """Parse a number the way a lenient form field would.

    Returns ``None`` for a missing/blank value and NaN for text that does not
    start with a number. Trailing garbage after a numeric prefix is ignored.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, int | float):
        return float(value)
    text = str(value).strip()
    if not text:
        return None
    match = _NUMBER_PREFIX.match(text)
    if match:
        return float(match.group(0))
    infinity = _INFINITY_PREFIX.match(text)
    if infinity:
        return -math.inf if text.startswith("-") else math.inf
    return math.nan


def validate_food(food: Mapping[str, object]) -> ValidationResult:
    """Validate a custom food form (values per 100 units)."""
    errors: list[str] = []

    name = str(food.get("name") or "").strip()
    if not name:
        errors.append("Food name is required")
    elif len(name) < 2:
        errors.append("Food name must be at least 2 characters")
    elif len(name) > 100:
        errors.append("Food name must be less than 100 characters")

    values: dict[str, float | None] = {}
    for rule in _FOOD_RULES:
        value = parse_number(food.get(rule.key))
        values[rule.key] = value
        if value is None:
            errors.append(f"{rule.label} value is required")
        elif not math.isfinite(value):
            errors.append(f"{rule.label} must be a valid number")
        elif value < 0:
            errors.append(f"{rule.label} cannot be negative")
        elif value > rule.maximum:
            errors.append(rule.too_high)

    if all(value is not None and math.isfinite(value) for value in values.values()):
        calories = values["calories"] or 0.0
        expected = _calories_from_macros(
            values["protein"] or 0.0, values["carbs"] or 0.0, values["fat"] or 0.0
        )
        tolerance = calories * FOOD_CALORIE_TOLERANCE
        if calories > 50 and abs(calories - expected) > tolerance:
            errors.append(
                "Nutritional values don't match expected calorie calculation "
                "(check your values)"
            )

    return ValidationResult(errors)


def validate_portion_size(portion_size: object) -> ValidationResult:
    """Validate a portion size as typed by the user."""
    errors: list[str] = []
    portion = parse_number(portion_size)
    if portion is None:
        errors.append("Portion size is required")
    elif not math.isfinite(portion):
        errors.append("Portion size must be a valid number")
    elif portion <= 0:
        errors.append("Portion size must be greater than 0")
    elif portion > MAX_PORTION_SIZE:
        errors.append("Portion size seems too large (max 10,000g)")
    return ValidationResult(errors)


def validate_calculator_data(data: object) -> ValidationResult:  # noqa: PLR0912
    """Validate goals-calculator inputs for either unit system."""
    values = _as_mapping(data)
    errors: list[str] = []
    imperial = values.get("unit_system") == "imperial"

    age = _number(values.get("age"))
    if age is None:
        errors.append("Age is required")
    elif age < 15:
        errors.append("Age must be at least 15 years")
    elif age > 80:
        errors.append("Age must be 80 years or less")

    height = _number(values.get("height"))
    if imperial:
        if height is None:
            errors.append("Height (feet) is required")
        elif height < 3:
            errors.append("Height must be at least 3 feet")
        elif height > 8:
            errors.append("Height must be 8 feet or less")
        raw_inches = values.get("height_inches")
        if raw_inches is not None:
            inches = parse_number(raw_inches)
            if inches is None or not math.isfinite(inches) or not 0 <= inches < 12:
                errors.append("Height (inches) must be between 0 and 11")
    elif height is None:
        errors.append("Height is required")
    elif height < 100:
        errors.append("Height must be at least 100 cm")
    elif height > 250:
        errors.append("Height must be 250 cm or less")

    weight = _number(values.get("weight"))
    low, high, unit = (50, 1000, "pounds") if imperial else (20, 450, "kg")
    if weight is None:
        errors.append("Weight is required")
    elif weight < low:
        errors.append(f"Weight must be at least {low} {unit}")
    elif weight > high:
        errors.append(f"Weight must be {high} {unit} or less")

    if values.get("gender") not in {"male", "female"}:
        errors.append("Gender selection is required")
    if values.get("unit_system") not in {"imperial", "metric"}:
        errors.append("Unit system selection is required")

    return ValidationResult(errors)


def validate_goals(goals: object) -> ValidationResult:
    """Validate daily goals, including a macro/calorie consistency check."""
    values = _as_mapping(goals)
    errors: list[str] = []

    calories = _number(values.get("calories"))
    if calories is None:
        errors.append("Calorie goal is required")
    elif calories < 800:
        errors.append("Calorie goal should be at least 800 for safety")
    elif calories > 10000:
        errors.append("Calorie goal seems too high (max 10,000)")

    protein = _number(values.get("protein"))
    if protein is None:
        errors.append("Protein goal is required")
    elif protein < 10:
        errors.append("Protein goal should be at least 10g")
    elif protein > 500:
        errors.append("Protein goal seems too high (max 500g)")

    carbs = _number(values.get("carbs"))
    if carbs is None:
        errors.append("Carbs goal is required")
    elif carbs < 0:
        errors.append("Carbs goal cannot be negative")
    elif carbs > 1000:
        errors.append("Carbs goal seems too high (max 1000g)")

    fat = _number(values.get("fat"))
    if fat is None:
        errors.append("Fat goal is required")
    elif fat < 10:
        errors.append("Fat goal should be at least 10g for essential fatty acids")
    elif fat > 300:
        errors.append("Fat goal seems too high (max 300g)")

    if calories and protein is not None and carbs is not None and fat is not None:
        expected = _calories_from_macros(protein, carbs, fat)
        if abs(calories - expected) > calories * GOALS_CALORIE_TOLERANCE:
            errors.append(
                "Macro goals don't match calorie goal. Consider adjusting your values."
            )

    return ValidationResult(errors)


def validate_credentials(
    username: str | None, password: str | None
) -> ValidationResult:
    """Validate a username/password pair for login or registration."""
    errors: list[str] = []
    trimmed = (username or "").strip()
    if len(trimmed) < MIN_USERNAME_LENGTH:
        errors.append("Username must be at least 3 characters long")
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        errors.append("Password must be at least 6 characters long")
    if trimmed and not _USERNAME_PATTERN.match(trimmed):
        errors.append("Username can only contain letters, numbers, and underscores")
    return ValidationResult(errors)


def sanitize_string(value: str) -> str:
    """Trim and HTML-escape ``< > " ' &`` in a single pass.

    Not idempotent: a second pass escapes the ``&`` of earlier escapes.
    """
    return _ESCAPE_PATTERN.sub(lambda match: _ESCAPES[match.group(0)], value.strip())


def format_validation_errors(errors: list[str]) -> str:
    """Join validation messages into a single line."""
    return ". ".join(errors)


def _calories_from_macros(protein: float, carbs: float, fat: float) -> float:
    return protein * 4 + carbs * 4 + fat * 9


def _number(value: object) -> float | None:
    """Parse a value, collapsing non-finite results into 'missing'."""
    parsed = parse_number(value)
    if parsed is None or not math.isfinite(parsed):
        return None
    return parsed


def _as_mapping(data: object) -> Mapping[str, object]:
    if isinstance(data, Mapping):
        return data
    if is_dataclass(data) and not isinstance(data, type):
        return asdict(data)
    return {}
