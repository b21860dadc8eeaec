from datetime import UTC, datetime, timedelta

from src.adapters.clock import FrozenClock, SystemClock


def test_system_clock():
    clock = SystemClock()
    now = clock.now_utc()
    assert isinstance(now, datetime)
    assert now.tzinfo is not None
    # Sanity check: is it close to real now?
    real_now = datetime.now(UTC)
    diff = abs((real_now - now).total_seconds())
    assert diff < 1.0  # Should be very fast


def test_frozen_clock():
    start = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)
    clock = FrozenClock(start)

    assert clock.now_utc() == start
    clock.advance(timedelta(hours=25))
    assert clock.now_utc() == start + timedelta(hours=25)


def test_frozen_clock_naive_is_utc():
    clock = FrozenClock(datetime(2024, 6, 1, 12, 0))
    assert clock.now_utc().tzinfo == UTC
