from datetime import UTC, datetime, timedelta
from threading import Lock
from typing import Protocol

from src.rules.models import RateLimitRules

# In-memory only: state is per process and lost on restart, which is fine for
# windows measured in seconds on a single instance.


class TimePort(Protocol):
    """Protocol for time operations (enables testing with deterministic time)."""

    def now(self) -> datetime:
        """Return current UTC time."""
        ...


class SystemTimeAdapter:
    """Production time adapter using system clock."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class RateLimiter:
    def __init__(
        self,
        rules: RateLimitRules,
        time_port: TimePort | None = None,
        max_keys: int = 65536,
    ):
        self.rules = rules
        self.max_keys = max_keys
        self._time = time_port if time_port is not None else SystemTimeAdapter()
        self._history: dict[str, list[datetime]] = {}
        self._lock = Lock()

    def _cleanup(self, key: str, window: int) -> None:
        now = self._time.now()
        cutoff = now - timedelta(seconds=window)
        if key in self._history:
            self._history[key] = [t for t in self._history[key] if t > cutoff]
            if not self._history[key]:
                del self._history[key]

    def allow_request(self, key: str, window: int, limit: int) -> bool:
        """
        Check if request is allowed.
        If allowed, records the attempt and returns True.
        If denied, returns False.
        """
        if limit <= 0:
            return False

        with self._lock:
            self._cleanup(key, window)
            current_count = len(self._history.get(key, []))

            if current_count >= limit:
                return False

            if key not in self._history:
                if len(self._history) >= self.max_keys:
                    # Drop the oldest tracked key to bound memory.
                    self._history.pop(next(iter(self._history)))
                self._history[key] = []
            self._history[key].append(self._time.now())
            return True

    def check_submit(self, ip: str) -> bool:
        cfg = self.rules.submit
        return self.allow_request(f"submit:{ip}", cfg.window_seconds, cfg.max_requests)

    def check_confirm(self, ip: str) -> bool:
        cfg = self.rules.confirm
        return self.allow_request(f"confirm:{ip}", cfg.window_seconds, cfg.max_requests)
