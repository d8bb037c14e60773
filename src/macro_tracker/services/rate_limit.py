"""Rate limiting for authentication attempts."""

from dataclasses import dataclass

from macro_tracker.services.cache import Cache


@dataclass
class AuthRateLimiter:
    """Counts failed auth attempts per client within a time window.

    Successful attempts reset the counter, so only repeated failures lock a
    client out.
    """

    cache: Cache
    max_attempts: int = 5
    window_seconds: int = 300

    def is_limited(self, client_key: str) -> bool:
        """Return True if the client used up its failed attempts."""
        return self._failures(client_key) >= self.max_attempts

    def record_failure(self, client_key: str) -> None:
        """Count one failed attempt; the window starts at the first failure."""
        self.cache.increment(_cache_key(client_key), ttl_seconds=self.window_seconds)

    def reset(self, client_key: str) -> None:
        """Forget failures after a successful attempt."""
        self.cache.delete(_cache_key(client_key))

    def _failures(self, client_key: str) -> int:
        cached = self.cache.get(_cache_key(client_key))
        return cached if isinstance(cached, int) else 0


def _cache_key(client_key: str) -> str:
    return f"auth:failures:{client_key}"
