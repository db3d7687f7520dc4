from datetime import datetime, timedelta, timezone

import pytest

from infrastructure.clock import FixedClock, SystemClock
from tests.factories import START


def test_system_clock_is_utc():
    now = SystemClock().now()

    assert now.utcoffset() == timedelta(0)


def test_fixed_clock_advance_and_set():
    clock = FixedClock(START)

    assert clock.advance(90) == START + timedelta(seconds=90)
    clock.set_time(START)
    assert clock.now() == START


def test_fixed_clock_rejects_non_utc():
    with pytest.raises(ValueError):
        FixedClock(datetime(2026, 1, 1))
    with pytest.raises(ValueError):
        FixedClock(START).set_time(START.astimezone(timezone(timedelta(hours=8))))
