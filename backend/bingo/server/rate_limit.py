"""Per-connection token bucket for throttling inbound frames."""

import time
from collections.abc import Callable


class TokenBucket:
    """Token bucket rate limiter.

    The bucket refills continuously at ``rate`` tokens per second up to
    ``burst``. Each allowed frame spends one token.
    """

    def __init__(self, rate: float, burst: int, clock: Callable[[], float] = time.monotonic) -> None:
        if rate <= 0 or burst < 1:
            raise ValueError("rate must be positive and burst at least 1")
        self._rate = rate
        self._burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._last_refill = clock()

    @property
    def tokens(self) -> float:
        self._refill()
        return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        self._tokens = min(float(self._burst), self._tokens + (now - self._last_refill) * self._rate)
        self._last_refill = now

    def consume(self) -> bool:
        """Spend one token; False means the frame should be rejected."""
        self._refill()
        if self._tokens < 1.0:
            return False
        self._tokens -= 1.0
        return True
