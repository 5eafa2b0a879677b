"""
Fixed-window rate limiter.

One global window shared by every caller plus one window per caller key.
The global window is checked first so a server-wide rejection never spends
the caller's own budget.
"""

import logging
import time
from typing import Callable

from .models import FixedWindowCounter, RateLimitDecision

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    In-process fixed-window limiter.

    ``admit`` has no await points, so the check and both increments happen
    as one step with respect to other requests on the event loop.
    """

    def __init__(
        self,
        per_caller_limit: int = 100,
        global_limit: int = 1000,
        window_seconds: float = 60,
        clock: Callable[[], float] = time.time,
    ):
        self.per_caller_limit = per_caller_limit
        self.global_limit = global_limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._global = FixedWindowCounter()
        self._callers: dict[str, FixedWindowCounter] = {}

    def __len__(self) -> int:
        return len(self._callers)

    def admit(self, caller_key: str) -> RateLimitDecision:
        """Admit or refuse one request for ``caller_key``."""
        now = self._clock()
        self._global.roll(now, self.window_seconds)
        caller = self._callers.get(caller_key)
        if caller is None:
            caller = self._callers[caller_key] = FixedWindowCounter()
        caller.roll(now, self.window_seconds)

        scope = None
        if self._global.count >= self.global_limit:
            scope = "global"
        elif caller.count >= self.per_caller_limit:
            scope = "caller"
        else:
            self._global.count += 1
            caller.count += 1

        if scope is not None:
            logger.warning(f"Rate limit ({scope}) exceeded for {caller_key}")

        return RateLimitDecision(
            allowed=scope is None,
            limit=self.per_caller_limit,
            remaining=caller.remaining(self.per_caller_limit),
            reset_at=caller.reset_at,
            global_limit=self.global_limit,
            global_remaining=self._global.remaining(self.global_limit),
            global_reset_at=self._global.reset_at,
            scope=scope,
            now=now,
        )

    def sweep(self) -> int:
        """Drop caller windows that have already expired. Returns the number removed."""
        now = self._clock()
        expired = [key for key, counter in self._callers.items() if now >= counter.reset_at]
        for key in expired:
            self._callers.pop(key, None)
        return len(expired)

    def reset(self) -> None:
        self._global = FixedWindowCounter()
        self._callers.clear()
