"""Tests for the rate limiter."""

import pytest

from phenotype_live.domain.errors import RateLimitedError
from phenotype_live.services.rate_limit import RateLimiter


def test_rate_limiter_blocks_after_limit(clock) -> None:
    limiter = RateLimiter(max_requests=2, window_seconds=60, clock=clock)

    assert limiter.check("submit-vote:a") == 1
    assert limiter.check("submit-vote:a") == 0
    with pytest.raises(RateLimitedError):
        limiter.check("submit-vote:a")
    assert limiter.check("submit-vote:b") == 1


def test_rate_limiter_resets_after_window(clock) -> None:
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)
    limiter.check("key")

    clock.advance(60)

    assert limiter.check("key") == 0


def test_prune_forgets_closed_windows(clock) -> None:
    limiter = RateLimiter(max_requests=1, window_seconds=10, clock=clock)
    limiter.check("old")
    clock.advance(11)
    limiter.check("new")

    limiter.prune()

    assert set(limiter._windows) == {"new"}
