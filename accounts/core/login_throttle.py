from __future__ import annotations

import threading
import time
from typing import Callable, Dict, Tuple


class LoginThrottle:
    """Counts consecutive failed logins per username and locks the name out.

    Names are tracked whether or not an account exists, so a lockout answer
    says nothing about which usernames are registered.
    """

    def __init__(self, max_attempts: int, lockout_seconds: int, clock: Callable[[], float] = time.time) -> None:
        self.max_attempts = max_attempts
        self.lockout_seconds = lockout_seconds
        self._clock = clock
        self._failures: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()

    def is_locked(self, username: str) -> bool:
        now = self._clock()
        with self._lock:
            count, locked_until = self._failures.get(username, (0, 0.0))
            if locked_until and now >= locked_until:
                del self._failures[username]
                return False
            return bool(locked_until)

    def record_failure(self, username: str) -> int:
        """Register a failure; returns the attempts left before a lockout (0 once locked)."""
        if self.max_attempts <= 0:
            return 1
        now = self._clock()
        with self._lock:
            count, locked_until = self._failures.get(username, (0, 0.0))
            count += 1
            if count >= self.max_attempts:
                locked_until = now + self.lockout_seconds
            self._failures[username] = (count, locked_until)
            return max(0, self.max_attempts - count)

    def reset(self, username: str) -> None:
        with self._lock:
            self._failures.pop(username, None)
