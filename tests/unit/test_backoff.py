"""
Unit tests for BackoffProfile / BackoffTimer.
"""

import pytest

from dis_client.backoff import BackoffProfile


def test_backoff_curve_monotonic_with_cap():
    """Test exponential backoff with max cap."""
    profile = BackoffProfile(initial_interval_ms=50, multiplier=2.0, max_interval_ms=200)
    timer = profile.timer()
    vals = [timer.next_sleep_ms() for _ in range(6)]
    # 50, 100, 200, 200, 200...
    assert vals == [50, 100, 200, 200, 200, 200]


def test_next_backoff_is_pure():
    profile = BackoffProfile(initial_interval_ms=100, multiplier=1.5, max_interval_ms=1000)
    assert profile.next_backoff(100) == (100, 150)
    assert profile.next_backoff(100) == (100, 150)
    assert profile.next_backoff(900) == (900, 1000)
    assert profile.next_backoff(5000) == (1000, 1000)


def test_reset_returns_to_initial_interval():
    timer = BackoffProfile(initial_interval_ms=10, max_interval_ms=1000).timer()
    timer.next_sleep_ms()
    timer.next_sleep_ms()
    timer.reset()
    assert timer.next_sleep_ms() == 10


def test_elapsed_budget():
    now = [0.0]
    profile = BackoffProfile(initial_interval_ms=10, max_interval_ms=100, max_elapsed_ms=500)
    timer = profile.timer(clock=lambda: now[0])

    assert timer.next_sleep_ms() == 10
    now[0] = 0.499
    assert timer.next_sleep_ms() == 20
    now[0] = 0.5
    assert timer.next_sleep_ms() is None


def test_timers_do_not_share_state():
    profile = BackoffProfile(initial_interval_ms=10, max_interval_ms=100)
    a, b = profile.timer(), profile.timer()
    a.next_sleep_ms()
    a.next_sleep_ms()
    assert b.next_sleep_ms() == 10


@pytest.mark.parametrize(
    "kwargs",
    [
        {"initial_interval_ms": 0},
        {"multiplier": 0.5},
        {"initial_interval_ms": 100, "max_interval_ms": 50},
        {"max_elapsed_ms": -1},
    ],
)
def test_invalid_profiles_rejected(kwargs):
    with pytest.raises(ValueError):
        BackoffProfile(**kwargs)
