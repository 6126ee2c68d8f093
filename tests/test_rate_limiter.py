import asyncio
import threading
from datetime import datetime, timedelta, timezone

import pytest

from infrastructure.rate_limit import SlidingWindowRateLimiter


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def _limiter(clock, per_email=3, per_ip=20):
    return SlidingWindowRateLimiter(
        max_per_email=per_email,
        max_per_ip=per_ip,
        window=timedelta(minutes=10),
        clock=clock,
    )


def test_fourth_attempt_within_window_is_blocked_then_recovers():
    clock = FakeClock()
    limiter = _limiter(clock)

    for _ in range(3):
        assert limiter.is_allowed("a@example.com", "10.0.0.1")
        limiter.record_attempt("a@example.com", "10.0.0.1")
        clock.advance(minutes=1)

    assert not limiter.is_allowed("a@example.com", "10.0.0.1")

    # the first attempt leaves the window exactly 10 minutes after it was made
    clock.advance(minutes=7)
    assert limiter.is_allowed("a@example.com", "10.0.0.1")


def test_email_key_is_case_insensitive():
    clock = FakeClock()
    limiter = _limiter(clock, per_email=1)
    limiter.record_attempt("A@Example.com", "10.0.0.1")
    assert not limiter.is_allowed("a@example.com", "10.0.0.2")


def test_ip_ceiling_applies_across_emails():
    clock = FakeClock()
    limiter = _limiter(clock, per_email=5, per_ip=2)
    limiter.record_attempt("a@example.com", "10.0.0.1")
    limiter.record_attempt("b@example.com", "10.0.0.1")
    assert not limiter.is_allowed("c@example.com", "10.0.0.1")
    assert limiter.is_allowed("c@example.com", "10.0.0.2")


def test_blank_email_or_ip_is_not_allowed():
    limiter = _limiter(FakeClock())
    assert not limiter.is_allowed("", "10.0.0.1")
    assert not limiter.is_allowed("a@example.com", "  ")


def test_sweep_drops_expired_keys_only():
    clock = FakeClock()
    limiter = _limiter(clock)
    limiter.record_attempt("old@example.com", "10.0.0.1")
    clock.advance(minutes=9)
    limiter.record_attempt("new@example.com", "10.0.0.2")
    clock.advance(minutes=2)

    assert limiter.sweep() == 2
    assert limiter.attempts("new@example.com", "10.0.0.2") == (1, 1)
    assert limiter.attempts("old@example.com", "10.0.0.1") == (0, 0)
    assert len(limiter) == 2


def test_concurrent_recording_counts_every_attempt():
    limiter = _limiter(FakeClock(), per_email=10_000, per_ip=10_000)

    def worker():
        for _ in range(200):
            limiter.record_attempt("a@example.com", "10.0.0.1")
            limiter.sweep()

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()

    assert limiter.attempts("a@example.com", "10.0.0.1") == (800, 800)


def test_rejects_non_positive_ceiling():
    with pytest.raises(ValueError):
        SlidingWindowRateLimiter(max_per_email=0, max_per_ip=1, window=timedelta(minutes=1))


@pytest.mark.asyncio
async def test_background_sweeper_starts_and_stops():
    limiter = SlidingWindowRateLimiter(
        max_per_email=1,
        max_per_ip=1,
        window=timedelta(seconds=0),
        sweep_interval=timedelta(milliseconds=10),
    )
    limiter.record_attempt("a@example.com", "10.0.0.1")
    limiter.start()
    await asyncio.sleep(0.05)
    await limiter.stop()
    assert len(limiter) == 0
