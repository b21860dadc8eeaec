from datetime import UTC, datetime, timedelta


class SystemClock:
    def now_utc(self) -> datetime:
        return datetime.now(UTC)


class FrozenClock:
    """Clock pinned to a fixed instant; advance() moves it forward."""

    def __init__(self, now: datetime) -> None:
        self._now = now if now.tzinfo is not None else now.replace(tzinfo=UTC)

    def now_utc(self) -> datetime:
        return self._now

    def advance(self, delta: timedelta) -> None:
        self._now = self._now + delta
