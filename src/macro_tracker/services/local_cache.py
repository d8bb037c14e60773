"""Device-scoped key-value storage used while no session is active."""

from dataclasses import dataclass
from typing import Protocol

CUSTOM_FOODS_KEY = "customFoods"
DAILY_ENTRIES_KEY = "dailyEntries"


class LocalCache(Protocol):
    """Synchronous string storage; every write replaces the whole value."""

    def get(self, key: str) -> str | None:
        """Return the stored value, if any."""

    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""

    def remove(self, key: str) -> None:
        """Delete a value if present."""


@dataclass
class InMemoryLocalCache(LocalCache):
    """Process-local implementation without expiry or size bounds."""

    _values: dict[str, str]

    def __init__(self, values: dict[str, str] | None = None) -> None:
        self._values = dict(values or {})

    def get(self, key: str) -> str | None:
        """Return the stored value, if any."""
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        """Store a value."""
        self._values[key] = value

    def remove(self, key: str) -> None:
        """Delete a value if present."""
        self._values.pop(key, None)
