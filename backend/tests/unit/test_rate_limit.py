import pytest

from backend.src.api.middleware.rate_limit import ClientRateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def test_allows_burst_up_to_limit(clock: FakeClock) -> None:
    limiter = ClientRateLimiter(3, 60, time_fn=clock)

    results = [limiter.check("client")[0] for _ in range(4)]

    assert results == [True, True, True, False]


def test_reports_wait_until_next_token(clock: FakeClock) -> None:
    limiter = ClientRateLimiter(2, 10, time_fn=clock)
    limiter.check("client")
    limiter.check("client")

    allowed, retry_after = limiter.check("client")

    assert allowed is False
    assert retry_after == pytest.approx(5.0)


def test_tokens_refill_over_time(clock: FakeClock) -> None:
    limiter = ClientRateLimiter(1, 10, time_fn=clock)
    assert limiter.check("client")[0] is True
    assert limiter.check("client")[0] is False

    clock.now = 10.0

    assert limiter.check("client")[0] is True


def test_clients_have_separate_buckets(clock: FakeClock) -> None:
    limiter = ClientRateLimiter(1, 60, time_fn=clock)

    assert limiter.check("a")[0] is True
    assert limiter.check("b")[0] is True
    assert limiter.check("a")[0] is False


def test_reset_clears_buckets(clock: FakeClock) -> None:
    limiter = ClientRateLimiter(1, 60, time_fn=clock)
    limiter.check("a")

    limiter.reset()

    assert limiter.check("a")[0] is True


@pytest.mark.parametrize("max_calls, period", [(0, 60), (5, 0)])
def test_rejects_invalid_limits(max_calls: int, period: float) -> None:
    with pytest.raises(ValueError):
        ClientRateLimiter(max_calls, period)


def test_idle_clients_are_evicted(clock: FakeClock) -> None:
    limiter = ClientRateLimiter(5, 60, time_fn=clock)
    for index in range(10_000):
        limiter.check(f"client-{index}")

    clock.now = 3600.0
    limiter.check("late-client")

    assert len(limiter) == 1


def test_active_clients_survive_eviction(clock: FakeClock) -> None:
    limiter = ClientRateLimiter(2, 60, time_fn=clock, sweep_threshold=3)
    limiter.check("busy")
    limiter.check("busy")
    limiter.check("idle-1")
    limiter.check("idle-2")

    clock.now = 45.0
    limiter.check("newcomer")

    assert len(limiter) == 2
    # "busy" kept its partly refilled bucket; a fresh one would allow two calls.
    assert [limiter.check("busy")[0] for _ in range(2)] == [True, False]
