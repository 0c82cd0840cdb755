"""Fixed-window rate limiting for participant submissions."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from phenotype_live.domain.errors import RateLimitedError


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class _Window:
    started_at: datetime
    count: int


@dataclass
class RateLimiter:
    """In-memory limiter keyed by caller and endpoint."""

    max_requests: int = 30
    window_seconds: int = 60
    clock: Callable[[], datetime] = _utcnow
    _windows: dict[str, _Window] = field(default_factory=dict)

    def check(self, key: str) -> int:
        """Count a request and return the remaining allowance.

        Raises RateLimitedError once the window is exhausted.
        """
        now = self.clock()
        window = self._windows.get(key)
        if window is None or now >= window.started_at + self._span:
            window = _Window(started_at=now, count=0)
            self._windows[key] = window
        if window.count >= self.max_requests:
            reset_at = window.started_at + self._span
            raise RateLimitedError(
                f"Rate limit exceeded. Max {self.max_requests} requests per "
                f"{self.window_seconds}s. Try again after {reset_at.isoformat()}"
            )
        window.count += 1
        return self.max_requests - window.count

    def prune(self) -> None:
        """Forget windows that have already closed."""
        now = self.clock()
        expired = [
            key
            for key, window in self._windows.items()
            if now >= window.started_at + self._span
        ]
        for key in expired:
            self._windows.pop(key, None)

    @property
    def _span(self) -> timedelta:
        return timedelta(seconds=self.window_seconds)
