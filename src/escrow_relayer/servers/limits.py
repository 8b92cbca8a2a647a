"""
In-process rate limiting.

Each client identity gets ``points`` requests per window. A window opens on the
identity's first request and lasts ``duration`` seconds; the count resets when
it closes. Counters live in memory only and reset on restart.
"""

import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

from ..engine.exceptions import RateLimited


@dataclass(frozen=True)
class RateLimitDecision:
    """
    Result of consuming one point.

    Attributes:
        allowed: Whether the request may proceed.
        remaining: Points left in the current window.
        retry_after: Whole seconds until the window resets (>= 1 when rejected, 0 when allowed).
    """
    allowed: bool
    remaining: int
    retry_after: int = 0


class RateLimiter:
    """
    Fixed-window point counter keyed by client identity.

    Args:
        points: Requests allowed per window (default 100).
        duration: Window length in seconds (default 3600).
        clock: Monotonic time source; injectable for tests.
    """

    def __init__(self, points: int = 100, duration: float = 3600, clock: Callable[[], float] = time.monotonic):
        if points <= 0 or duration <= 0:
            raise ValueError("points and duration must be positive")
        self.points = points
        self.duration = duration
        self.clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._last_prune = clock()

    def consume(self, identity: str, cost: int = 1) -> RateLimitDecision:
        """Consume *cost* points for *identity* and report whether the request is allowed."""
        now = self.clock()
        self._prune(now)

        started, used = self._windows.get(identity, (now, 0))
        if now - started >= self.duration:
            started, used = now, 0

        used += cost
        self._windows[identity] = (started, used)

        if used > self.points:
            retry_after = max(1, math.ceil(started + self.duration - now))
            return RateLimitDecision(allowed=False, remaining=0, retry_after=retry_after)
        return RateLimitDecision(allowed=True, remaining=self.points - used)

    def check(self, identity: str) -> RateLimitDecision:
        """
        Consume one point for *identity*.

        Raises:
            RateLimited: If the identity has no points left in its window.
        """
        decision = self.consume(identity)
        if not decision.allowed:
            raise RateLimited(retry_after=decision.retry_after)
        return decision

    def reset(self, identity: str) -> None:
        self._windows.pop(identity, None)

    def _prune(self, now: float) -> None:
        if now - self._last_prune < self.duration:
            return
        self._last_prune = now
        expired = [key for key, (started, _) in self._windows.items() if now - started >= self.duration]
        for key in expired:
            del self._windows[key]
