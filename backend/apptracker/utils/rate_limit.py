"""In-memory throttle for login attempts."""

from __future__ import annotations

import threading
import time
from collections import deque


class LoginThrottle:
    """Sliding-window attempt counter per client key.

    Successful logins clear the key so a user who finally types the right
    password is not penalised for earlier typos. Keys whose attempts have
    all aged out are dropped, at most one sweep per window.
    """

    def __init__(self, window_seconds: int = 60, clock=time.monotonic):
        self.window_seconds = window_seconds
        self._clock = clock
        self._attempts: dict[str, deque] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    def _prune(self, q: deque, cutoff: float) -> None:
        while q and q[0] <= cutoff:
            q.popleft()

    def _sweep(self, cutoff: float) -> None:
        for key in list(self._attempts):
            q = self._attempts[key]
            self._prune(q, cutoff)
            if not q:
                del self._attempts[key]

    def hit(self, key: str, max_attempts: int) -> tuple[bool, int]:
        """Record an attempt; return ``(allowed, retry_after_seconds)``."""
        now = self._clock()
        cutoff = now - self.window_seconds
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(cutoff)
                self._last_sweep = now
            q = self._attempts.setdefault(key, deque())
            self._prune(q, cutoff)
            if len(q) >= max_attempts:
                return False, max(1, int(self.window_seconds - (now - q[0])))
            q.append(now)
        return True, 0

    def reset(self, key: str) -> None:
        with self._lock:
            self._attempts.pop(key, None)
