"""Unit tests for clubapi.services.rate_limiter: per-key windows, reset, atomicity under threads."""

import threading
import unittest

from clubapi.services.rate_limiter import (
    FORGOT_PASSWORD_POLICY_NAME,
    LOGIN_POLICY_NAME,
    RateLimitedError,
    RateLimiter,
    RateLimitPolicy,
    get_rate_limiter,
    policies_from_settings,
)


class _Clock:
    """Monotonic-style clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestAllowWithinWindow(unittest.TestCase):
    """maxAttempts=3 in a 1 minute window admits three calls, then refuses."""

    def test_fourth_attempt_refused(self) -> None:
        limiter = RateLimiter(clock=_Clock())
        results = [limiter.allow("203.0.113.7", 3, 1) for _ in range(4)]
        self.assertEqual(results, [True, True, True, False])

    def test_refusals_do_not_extend_the_count(self) -> None:
        clock = _Clock()
        limiter = RateLimiter(clock=clock)
        for _ in range(10):
            limiter.allow("k", 3, 1)
        decision = limiter.hit("k", 3, 1)
        self.assertFalse(decision.allowed)
        self.assertEqual(decision.remaining, 0)

    def test_remaining_counts_down(self) -> None:
        limiter = RateLimiter(clock=_Clock())
        remaining = [limiter.hit("k", 3, 1).remaining for _ in range(3)]
        self.assertEqual(remaining, [2, 1, 0])


class TestWindowReset(unittest.TestCase):
    """A new window starts only once the old one has elapsed."""

    def test_allows_again_after_window(self) -> None:
        clock = _Clock()
        limiter = RateLimiter(clock=clock)
        for _ in range(3):
            limiter.allow("k", 3, 1)
        self.assertFalse(limiter.allow("k", 3, 1))
        clock.advance(61)
        self.assertTrue(limiter.allow("k", 3, 1))

    def test_boundary_instant_still_in_window(self) -> None:
        clock = _Clock()
        limiter = RateLimiter(clock=clock)
        for _ in range(3):
            limiter.allow("k", 3, 1)
        clock.advance(60)
        self.assertFalse(limiter.allow("k", 3, 1))

    def test_window_anchored_to_first_attempt(self) -> None:
        clock = _Clock()
        limiter = RateLimiter(clock=clock)
        limiter.allow("k", 3, 1)
        clock.advance(30)
        limiter.allow("k", 3, 1)
        limiter.allow("k", 3, 1)
        clock.advance(31)
        self.assertTrue(limiter.allow("k", 3, 1))

    def test_retry_after_reports_time_to_reset(self) -> None:
        clock = _Clock()
        limiter = RateLimiter(clock=clock)
        limiter.allow("k", 1, 1)
        clock.advance(20)
        decision = limiter.hit("k", 1, 1)
        self.assertFalse(decision.allowed)
        self.assertAlmostEqual(decision.retry_after, 40.0)

    def test_retry_after_zero_when_allowed(self) -> None:
        limiter = RateLimiter(clock=_Clock())
        self.assertEqual(limiter.hit("k", 2, 1).retry_after, 0.0)


class TestIndependentKeys(unittest.TestCase):
    def test_keys_do_not_share_counts(self) -> None:
        limiter = RateLimiter(clock=_Clock())
        self.assertTrue(limiter.allow("a", 1, 1))
        self.assertFalse(limiter.allow("a", 1, 1))
        self.assertTrue(limiter.allow("b", 1, 1))

    def test_policies_are_namespaced(self) -> None:
        limiter = RateLimiter(clock=_Clock())
        login = RateLimitPolicy(name="login", max_attempts=1, window_minutes=15)
        forgot = RateLimitPolicy(name="forgot_password", max_attempts=1, window_minutes=15)
        limiter.check(login, "198.51.100.1")
        limiter.check(forgot, "198.51.100.1")
        with self.assertRaises(RateLimitedError) as ctx:
            limiter.check(login, "198.51.100.1")
        self.assertEqual(ctx.exception.policy.name, "login")
        self.assertGreater(ctx.exception.decision.retry_after, 0)

    def test_reset_single_key(self) -> None:
        limiter = RateLimiter(clock=_Clock())
        limiter.allow("a", 1, 1)
        limiter.allow("b", 1, 1)
        limiter.reset("a")
        self.assertTrue(limiter.allow("a", 1, 1))
        self.assertFalse(limiter.allow("b", 1, 1))


class TestCleanup(unittest.TestCase):
    def test_expired_windows_are_pruned(self) -> None:
        clock = _Clock()
        limiter = RateLimiter(clock=clock, cleanup_interval=10)
        limiter.allow("stale", 5, 1)
        clock.advance(120)
        limiter.allow("fresh", 5, 1)
        self.assertNotIn("stale", limiter._windows)
        self.assertIn("fresh", limiter._windows)


class TestConcurrency(unittest.TestCase):
    """The check-and-increment is atomic: 20 racing attempts against a limit of 10 admit exactly 10."""

    def test_twenty_concurrent_attempts(self) -> None:
        limiter = RateLimiter()
        barrier = threading.Barrier(20)
        results: list[bool] = []
        results_lock = threading.Lock()

        def attempt() -> None:
            barrier.wait()
            allowed = limiter.allow("login:192.0.2.10", 10, 15)
            with results_lock:
                results.append(allowed)

        threads = [threading.Thread(target=attempt) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        self.assertEqual(len(results), 20)
        self.assertEqual(results.count(True), 10)
        self.assertEqual(results.count(False), 10)


class TestValidation(unittest.TestCase):
    def test_rejects_non_positive_limits(self) -> None:
        limiter = RateLimiter()
        with self.assertRaises(ValueError):
            limiter.allow("k", 0, 1)
        with self.assertRaises(ValueError):
            limiter.allow("k", 1, 0)


class TestPolicies(unittest.TestCase):
    def test_defaults_from_settings(self) -> None:
        from clubapi.core.config import Settings

        policies = policies_from_settings(Settings())
        self.assertEqual(policies[LOGIN_POLICY_NAME].max_attempts, 10)
        self.assertEqual(policies[LOGIN_POLICY_NAME].window_minutes, 15)
        self.assertEqual(policies[FORGOT_PASSWORD_POLICY_NAME].max_attempts, 5)
        self.assertEqual(policies[FORGOT_PASSWORD_POLICY_NAME].window_minutes, 15)

    def test_global_limiter_is_shared(self) -> None:
        self.assertIs(get_rate_limiter(), get_rate_limiter())


if __name__ == "__main__":
    unittest.main()
