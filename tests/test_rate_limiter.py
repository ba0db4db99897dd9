import asyncio
import threading

import pytest

from publicip.errors import ConfigurationError, RateLimitTimeoutError
from publicip.rate_limiter import TokenBucket


class FakeClock:
    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class FakeSleep:
    """Records requested sleeps and advances the fake clock instead of waiting."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        self.clock.advance(seconds)


@pytest.fixture
def fake_sleep(clock: FakeClock) -> FakeSleep:
    return FakeSleep(clock)


@pytest.mark.parametrize("burst", [0, -1])
def test_burst_must_be_positive(burst: int) -> None:
    with pytest.raises(ConfigurationError):
        TokenBucket(refill_interval=0.5, burst=burst)


def test_negative_refill_interval_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        TokenBucket(refill_interval=-0.5, burst=1)


def test_try_acquire_takes_burst_tokens_then_refills(clock: FakeClock) -> None:
    bucket = TokenBucket(refill_interval=0.5, burst=2, clock=clock)

    assert bucket.try_acquire() is True
    assert bucket.try_acquire() is True
    assert bucket.try_acquire() is False

    clock.advance(0.5)
    assert bucket.try_acquire() is True
    assert bucket.try_acquire() is False


def test_refill_is_capped_at_burst(clock: FakeClock) -> None:
    bucket = TokenBucket(refill_interval=0.5, burst=2, clock=clock)
    assert bucket.try_acquire() is True

    clock.advance(60)
    assert bucket.try_acquire() is True
    assert bucket.try_acquire() is True
    assert bucket.try_acquire() is False


def test_can_acquire_does_not_take_a_token(clock: FakeClock) -> None:
    bucket = TokenBucket(refill_interval=0.5, burst=1, clock=clock)

    assert bucket.can_acquire() is True
    assert bucket.can_acquire() is True
    assert bucket.try_acquire() is True
    assert bucket.can_acquire() is False


def test_zero_refill_interval_is_unlimited(clock: FakeClock) -> None:
    bucket = TokenBucket(refill_interval=0, burst=1, clock=clock)

    assert all(bucket.try_acquire() for _ in range(100))


@pytest.mark.asyncio
async def test_acquire_with_available_token_does_not_wait(clock: FakeClock, fake_sleep: FakeSleep) -> None:
    bucket = TokenBucket(refill_interval=0.5, burst=1, clock=clock, sleep=fake_sleep)

    await bucket.acquire(timeout=0.005)

    assert fake_sleep.calls == []


@pytest.mark.asyncio
async def test_second_acquire_exceeding_deadline_fails(clock: FakeClock, fake_sleep: FakeSleep) -> None:
    """burst=1 and refill=500ms: a second immediate acquire can't finish within 5ms."""
    bucket = TokenBucket(refill_interval=0.5, burst=1, clock=clock, sleep=fake_sleep)

    await bucket.acquire(timeout=0.005)
    with pytest.raises(RateLimitTimeoutError):
        await bucket.acquire(timeout=0.005)

    # The failed reservation was handed back and nothing was slept.
    assert fake_sleep.calls == []
    clock.advance(0.5)
    assert bucket.try_acquire() is True


@pytest.mark.asyncio
async def test_acquire_waits_for_the_next_token(clock: FakeClock, fake_sleep: FakeSleep) -> None:
    bucket = TokenBucket(refill_interval=0.5, burst=1, clock=clock, sleep=fake_sleep)

    await bucket.acquire(timeout=5)
    clock.advance(0.2)
    await bucket.acquire(timeout=5)

    assert fake_sleep.calls == [pytest.approx(0.3)]


@pytest.mark.asyncio
async def test_queued_acquires_are_spaced_by_refill_interval(clock: FakeClock) -> None:
    """Reservations stack up: the n-th waiter is due n refill intervals later."""
    waits: list[float] = []

    async def _record_sleep(seconds: float) -> None:
        waits.append(seconds)

    bucket = TokenBucket(refill_interval=0.5, burst=1, clock=clock, sleep=_record_sleep)
    await asyncio.gather(*(bucket.acquire(timeout=5) for _ in range(3)))

    assert sorted(waits) == [pytest.approx(0.5), pytest.approx(1.0)]


@pytest.mark.asyncio
async def test_cancelled_wait_hands_the_token_back(clock: FakeClock) -> None:
    started = asyncio.Event()

    async def _blocking_sleep(seconds: float) -> None:
        started.set()
        await asyncio.Event().wait()

    bucket = TokenBucket(refill_interval=0.5, burst=1, clock=clock, sleep=_blocking_sleep)
    await bucket.acquire(timeout=5)

    waiter = asyncio.ensure_future(bucket.acquire(timeout=5))
    await started.wait()
    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter

    clock.advance(0.5)
    assert bucket.try_acquire() is True


def test_try_acquire_is_thread_safe(clock: FakeClock) -> None:
    bucket = TokenBucket(refill_interval=0.5, burst=50, clock=clock)
    granted: list[bool] = []
    lock = threading.Lock()

    def _worker() -> None:
        for _ in range(20):
            result = bucket.try_acquire()
            with lock:
                granted.append(result)

    threads = [threading.Thread(target=_worker) for _ in range(10)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert granted.count(True) == 50
    assert granted.count(False) == 150
