"""In-process fixed-window rate limiting."""

from __future__ import annotations

import math
import threading
import time
from collections import defaultdict
from typing import Optional

from tcn.config import RateLimit
from tcn.errors import RateLimitedError


def _describe(window: float) -> str:
    if window >= 60 and window % 60 == 0:
        minutes = int(window // 60)
        return "minute" if minutes == 1 else f"{minutes} minutes"
    seconds = int(window) if float(window).is_integer() else window
    return "second" if seconds == 1 else f"{seconds} seconds"


class RateLimiter:
    """Counts successful requests per (bucket, user) in fixed time windows.

    ``check`` is called before an operation and raises if the caller is
    already over budget; ``apply`` is called only after the operation
    succeeded, so failed requests do not consume the budget.
    """

    def __init__(self) -> None:
        self._counts: dict[tuple[str, str, int, float], int] = defaultdict(int)
        self._lock = threading.Lock()

    @staticmethod
    def _key(bucket: str, user: str, rule: RateLimit, now: float) -> tuple[str, str, int, float]:
        slot = int(math.floor(now / rule.window))
        return bucket, user, slot, float(rule.window)

    def check(self, bucket: str, user: str, rule: RateLimit, now: Optional[float] = None) -> None:
        now = now if now is not None else time.time()
        with self._lock:
            count = self._counts.get(self._key(bucket, user, rule, now), 0)
        if count >= rule.limit:
            raise RateLimitedError(
                f"You have been ratelimited (max: {rule.limit} request{'' if rule.limit == 1 else 's'} "
                f"per {_describe(rule.window)})."
            )

    def apply(self, bucket: str, user: str, rule: RateLimit, now: Optional[float] = None) -> None:
        now = now if now is not None else time.time()
        key = self._key(bucket, user, rule, now)
        with self._lock:
            self._counts[key] += 1
            self._prune(now)

    def _prune(self, now: float) -> None:
        # Drop counters from past windows
        stale = [key for key in self._counts if (key[2] + 1) * key[3] <= now]
        for key in stale:
            del self._counts[key]
