"""Tests for the rate limiter and its backoff controller."""

import threading

import pytest

from ton_jetton_gateway.rpc.limiter import RateLimiter


def make_limiter(clock, **kwargs) -> RateLimiter:
    return RateLimiter(clock=clock, sleep=clock.sleep, **kwargs)


def test_calls_up_to_threshold_are_not_delayed(clock):
    """Test exactly `threshold` acquires in one window go straight through."""
    limiter = make_limiter(clock, threshold=5)

    delays = [limiter.acquire() for _ in range(5)]

    assert delays == [0.0] * 5
    assert clock.sleeps == []
    assert limiter.stats().request_count == 5
    assert not limiter.is_limited


def test_call_over_threshold_is_delayed(clock):
    """Test the threshold + 1-th acquire waits and marks the limiter limited."""
    limiter = make_limiter(clock, threshold=5, base_backoff=1.0)
    for _ in range(5):
        limiter.acquire()

    delay = limiter.acquire()

    assert delay == 1.0
    assert clock.sleeps == [1.0]
    assert limiter.is_limited
    assert limiter.backoff_multiplier == 2
    assert limiter.stats().request_count == 6


def test_sustained_overload_doubles_delay_up_to_cap(clock):
    """Test delays grow geometrically and never exceed max_backoff."""
    limiter = make_limiter(clock, threshold=1, window=1000, base_backoff=5.0, max_backoff=30.0, max_multiplier=16)
    limiter.acquire()

    delays = [limiter.acquire() for _ in range(6)]

    assert delays == [5.0, 10.0, 20.0, 30.0, 30.0, 30.0]
    assert limiter.backoff_multiplier == 16


def test_report_overload_doubles_multiplier(clock):
    """Test two overload reports double the multiplier twice."""
    limiter = make_limiter(clock)

    limiter.report_overload()
    limiter.report_overload()

    assert limiter.backoff_multiplier == 4
    assert limiter.is_limited


def test_report_overload_is_capped(clock):
    """Test the multiplier and the computed delay stay bounded."""
    limiter = make_limiter(clock, base_backoff=4.0, max_backoff=30.0, max_multiplier=16)

    for _ in range(10):
        limiter.report_overload()

    assert limiter.backoff_multiplier == 16
    assert limiter.current_delay() == 30.0


def test_report_overload_pushes_window_forward(clock):
    """Test an overload report restarts the window length from now."""
    limiter = make_limiter(clock, window=60)
    limiter.acquire()
    clock.advance(45)

    limiter.report_overload()

    assert limiter.stats().seconds_until_reset == 60


def test_clean_window_resets_multiplier(clock):
    """Test the multiplier only resets after a window with no limiting event."""
    limiter = make_limiter(clock, threshold=2, window=60)
    limiter.acquire()
    limiter.acquire()
    assert limiter.acquire() == 1.0
    assert limiter.backoff_multiplier == 2

    # The window that just ended was limited: the episode carries on
    clock.advance(61)
    assert limiter.acquire() == 0.0
    assert limiter.backoff_multiplier == 2
    assert limiter.is_limited

    # This window ends cleanly
    clock.advance(61)
    assert limiter.acquire() == 0.0
    assert limiter.backoff_multiplier == 1
    assert not limiter.is_limited


def test_idle_period_longer_than_window_resets_multiplier(clock):
    """Test a gap spanning a full clean window resets the backoff."""
    limiter = make_limiter(clock, threshold=1, window=60)
    limiter.acquire()
    limiter.acquire()
    assert limiter.backoff_multiplier == 2

    clock.advance(500)

    assert limiter.acquire() == 0.0
    assert limiter.backoff_multiplier == 1
    assert not limiter.is_limited


def test_window_rollover_resets_counter(clock):
    """Test the counter restarts in a new window."""
    limiter = make_limiter(clock, threshold=3, window=60)
    for _ in range(3):
        limiter.acquire()

    clock.advance(60.5)

    assert [limiter.acquire() for _ in range(3)] == [0.0, 0.0, 0.0]
    assert clock.sleeps == []


def test_reset(clock):
    """Test reset returns the limiter to its initial state."""
    limiter = make_limiter(clock)
    limiter.report_overload()
    limiter.acquire()

    limiter.reset()

    stats = limiter.stats()
    assert stats.request_count == 0
    assert stats.backoff_multiplier == 1
    assert stats.is_limited is False
    assert stats.seconds_until_reset == 0.0


def test_concurrent_acquires_are_all_counted():
    """Test interleaved acquires from several threads are not lost."""
    limiter = RateLimiter(threshold=10_000)

    def worker():
        for _ in range(200):
            limiter.acquire()

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert limiter.stats().request_count == 1600


def test_concurrent_callers_share_the_threshold():
    """Test only `threshold` simultaneous callers go through undelayed."""
    sleeps = []
    limiter = RateLimiter(threshold=5, window=1000.0, clock=lambda: 0.0, sleep=sleeps.append)
    barrier = threading.Barrier(16)
    delays = []
    delays_lock = threading.Lock()

    def worker():
        barrier.wait()
        delay = limiter.acquire()
        with delays_lock:
            delays.append(delay)

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert delays.count(0.0) == 5
    assert len(sleeps) == 11
    assert limiter.stats().request_count == 16


@pytest.mark.parametrize(
    "kwargs",
    [{"threshold": 0}, {"window": 0}, {"max_multiplier": 0}],
)
def test_invalid_configuration(kwargs):
    """Test nonsensical limiter settings are rejected."""
    with pytest.raises(ValueError):
        RateLimiter(**kwargs)
