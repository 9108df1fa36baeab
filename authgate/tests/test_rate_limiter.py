from __future__ import annotations

import threading

import pytest
from conftest import FakeClock

from authgate.application.policy import LOGIN, PASSWORD_RESET, RateLimitPolicy
from authgate.domain.users.exceptions import TooManyAttemptsError
from authgate.domain.users.policies import rate_limit_key
from authgate.infrastructure.auth.rate_limiter import InMemoryRateLimiter


@pytest.fixture()
def limiter(clock: FakeClock) -> InMemoryRateLimiter:
    return InMemoryRateLimiter(
        {LOGIN: RateLimitPolicy(max_attempts=3, window_seconds=60)}, clock=clock.monotonic
    )


def test_check_is_non_mutating(limiter: InMemoryRateLimiter) -> None:
    for _ in range(10):
        limiter.check(LOGIN, "k")

    assert limiter.attempts(LOGIN, "k") == 0


def test_hit_blocks_once_threshold_reached(limiter: InMemoryRateLimiter) -> None:
    assert [limiter.hit(LOGIN, "k") for _ in range(3)] == [2, 1, 0]

    with pytest.raises(TooManyAttemptsError):
        limiter.hit(LOGIN, "k")
    with pytest.raises(TooManyAttemptsError):
        limiter.check(LOGIN, "k")
    assert limiter.attempts(LOGIN, "k") == 3


def test_retry_after_counts_down_with_window(
    limiter: InMemoryRateLimiter, clock: FakeClock
) -> None:
    for _ in range(3):
        limiter.record_failure(LOGIN, "k")
    clock.advance(45)

    with pytest.raises(TooManyAttemptsError) as exc_info:
        limiter.check(LOGIN, "k")

    assert exc_info.value.retry_after == 15
    assert exc_info.value.to_dict() == {
        "error": "too_many_attempts",
        "context": {"retry_after": 15},
    }


def test_window_expiry_resets_count(limiter: InMemoryRateLimiter, clock: FakeClock) -> None:
    for _ in range(3):
        limiter.hit(LOGIN, "k")

    clock.advance(60)

    limiter.check(LOGIN, "k")
    assert limiter.hit(LOGIN, "k") == 2


def test_reset_clears_bucket(limiter: InMemoryRateLimiter) -> None:
    for _ in range(3):
        limiter.hit(LOGIN, "k")

    limiter.reset(LOGIN, "k")

    limiter.check(LOGIN, "k")


def test_actions_and_keys_are_isolated(limiter: InMemoryRateLimiter) -> None:
    for _ in range(3):
        limiter.hit(LOGIN, "k")

    limiter.check(LOGIN, "other")
    limiter.check(PASSWORD_RESET, "k")


def test_unconfigured_action_uses_default_policy(limiter: InMemoryRateLimiter) -> None:
    for _ in range(5):
        limiter.hit("two_factor", "k")

    with pytest.raises(TooManyAttemptsError):
        limiter.hit("two_factor", "k")


def test_sweep_drops_only_expired_buckets(
    limiter: InMemoryRateLimiter, clock: FakeClock
) -> None:
    limiter.hit(LOGIN, "old")
    clock.advance(30)
    limiter.hit(LOGIN, "fresh")
    clock.advance(31)

    assert limiter.sweep() == 1
    assert limiter.attempts(LOGIN, "fresh") == 1


def test_hit_is_atomic_under_contention() -> None:
    limiter = InMemoryRateLimiter({LOGIN: RateLimitPolicy(max_attempts=10, window_seconds=60)})
    passed: list[int] = []
    barrier = threading.Barrier(50)

    def worker() -> None:
        barrier.wait()
        try:
            limiter.hit(LOGIN, "k")
        except TooManyAttemptsError:
            return
        passed.append(1)

    threads = [threading.Thread(target=worker) for _ in range(50)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(passed) == 10


def test_rate_limit_key_normalises_email() -> None:
    assert rate_limit_key(" Bob@Example.COM ", "1.2.3.4") == "bob@example.com|1.2.3.4"
    assert rate_limit_key("bob@example.com", None) == "bob@example.com|unknown"
