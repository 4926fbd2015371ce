from __future__ import annotations

from accounts.core.login_throttle import LoginThrottle


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_locks_after_max_attempts_and_unlocks_later():
    clock = Clock()
    throttle = LoginThrottle(max_attempts=3, lockout_seconds=60, clock=clock)
    assert throttle.record_failure("alice") == 2
    assert throttle.record_failure("alice") == 1
    assert not throttle.is_locked("alice")
    assert throttle.record_failure("alice") == 0
    assert throttle.is_locked("alice")

    clock.now = 59
    assert throttle.is_locked("alice")
    clock.now = 60
    assert not throttle.is_locked("alice")
    # counter starts over after the lock expires
    assert throttle.record_failure("alice") == 2


def test_names_are_tracked_independently():
    throttle = LoginThrottle(max_attempts=1, lockout_seconds=60, clock=Clock())
    throttle.record_failure("alice")
    assert throttle.is_locked("alice")
    assert not throttle.is_locked("bob")


def test_reset_clears_failures():
    throttle = LoginThrottle(max_attempts=2, lockout_seconds=60, clock=Clock())
    throttle.record_failure("alice")
    throttle.reset("alice")
    assert throttle.record_failure("alice") == 1


def test_disabled_when_max_attempts_is_zero():
    throttle = LoginThrottle(max_attempts=0, lockout_seconds=60, clock=Clock())
    for _ in range(10):
        throttle.record_failure("alice")
    assert not throttle.is_locked("alice")
