"""Local cache persisted as a single JSON file on the device."""

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from macro_tracker.services.local_cache import LocalCache

_logger = logging.getLogger(__name__)


@dataclass
class JsonFileLocalCache(LocalCache):
    """Keeps all keys in one JSON object, rewritten atomically on each write."""

    path: Path

    @classmethod
    def create(cls, path: str | Path) -> "JsonFileLocalCache":
        """Create a cache, making sure the parent directory exists."""
        resolved = Path(path).expanduser()
        resolved.parent.mkdir(parents=True, exist_ok=True)
        return cls(path=resolved)

    def get(self, key: str) -> str | None:
        """Return the stored value, if any."""
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        """Store a value, replacing the file contents."""
        values = self._read()
        values[key] = value
        self._write(values)

    def remove(self, key: str) -> None:
        """Delete a value if present."""
        values = self._read()
        if values.pop(key, None) is not None:
            self._write(values)

    def _read(self) -> dict[str, object]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            _logger.warning("Local cache file %s is unreadable, ignoring it", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, values: dict[str, object]) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(values, handle)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
