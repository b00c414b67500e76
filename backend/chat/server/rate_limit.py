"""Per-connection flood control for inbound WebSocket frames."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from chat.server.settings import ChatServerSettings


class TokenBucket:
    """Admit `rate` frames per second on average, with bursts up to `burst`.

    The bucket starts full. Tokens refill continuously from the injected
    monotonic clock; try_acquire() spends one and reports whether the frame
    may be handled.
    """

    def __init__(self, rate: float, burst: int, clock: Callable[[], float] = time.monotonic) -> None:
        self._rate = rate
        self._burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._refilled_at = clock()

    @classmethod
    def from_settings(cls, settings: ChatServerSettings) -> TokenBucket:
        return cls(rate=settings.rate_limit_per_second, burst=settings.rate_limit_burst)

    def try_acquire(self) -> bool:
        self._refill()
        if self._tokens < 1.0:
            return False
        self._tokens -= 1.0
        return True

    def retry_after(self) -> float:
        """Seconds until the next frame would be admitted (0 when one is available)."""
        self._refill()
        return max(0.0, (1.0 - self._tokens) / self._rate)

    def _refill(self) -> None:
        now = self._clock()
        self._tokens = min(float(self._burst), self._tokens + (now - self._refilled_at) * self._rate)
        self._refilled_at = now
