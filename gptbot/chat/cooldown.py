from __future__ import annotations

import time
from typing import Callable, Dict


def now_ms() -> float:
    return time.monotonic() * 1000


class CooldownStore:
    """
    Per-user cooldown map: user id -> expiry timestamp in milliseconds.

    Last write wins; expired entries are dropped lazily on lookup.
    """

    def __init__(self, clock: Callable[[], float] = now_ms):
        self._clock = clock
        self._expiry: Dict[int, float] = {}

    def has(self, user_id: int) -> bool:
        return self.remaining(user_id) > 0

    def remaining(self, user_id: int) -> float:
        """Milliseconds left on the user's cooldown, 0 when none is active."""
        expiry = self._expiry.get(user_id)
        if expiry is None:
            return 0
        left = expiry - self._clock()
        if left <= 0:
            self._expiry.pop(user_id, None)
            return 0
        return left

    def set(self, user_id: int, now: float | None = None, duration: float = 0) -> None:
        start = self._clock() if now is None else now
        self._expiry[user_id] = start + duration

    def __len__(self) -> int:
        return len(self._expiry)
