"""
In-process attempt limiter for the public auth endpoints.

Each key gets a fixed-length window anchored to its first attempt; the count
resets once the current time passes window start + window length. Counters
live in memory only and are lost on restart.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from clubapi.core.config import Settings

logger = logging.getLogger(__name__)

# Seconds between sweeps of expired windows.
DEFAULT_CLEANUP_INTERVAL = 300.0


@dataclass
class _Window:
    started_at: float
    length: float
    count: int = 0

    def expired(self, now: float) -> bool:
        return now > self.started_at + self.length


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one attempt, with the numbers needed for X-RateLimit-* headers."""

    allowed: bool
    limit: int
    remaining: int
    reset_after: float

    @property
    def retry_after(self) -> float:
        """Seconds until another attempt can succeed (0 when allowed)."""
        return 0.0 if self.allowed else self.reset_after


@dataclass(frozen=True)
class RateLimitPolicy:
    """Named limit applied to one endpoint; keys are namespaced by name."""

    name: str
    max_attempts: int
    window_minutes: float

    def key_for(self, client_key: str) -> str:
        return f"{self.name}:{client_key}"


class RateLimitedError(Exception):
    """Raised when a client exceeded a rate limit policy."""

    def __init__(self, policy: RateLimitPolicy, decision: RateLimitDecision) -> None:
        self.policy = policy
        self.decision = decision
        self.message = "Too many attempts. Please try again later."
        super().__init__(self.message)


class RateLimiter:
    """
    Thread-safe per-key attempt counter.

    The check and the increment happen under one lock, so N concurrent
    attempts against a limit of M admit exactly min(N, M).
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
    ) -> None:
        self._clock = clock
        self._cleanup_interval = cleanup_interval
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()
        self._last_cleanup = clock()

    def allow(self, key: str, max_attempts: int, window_minutes: float) -> bool:
        """Record an attempt for key; False once max_attempts is reached in the window."""
        return self.hit(key, max_attempts, window_minutes).allowed

    def hit(self, key: str, max_attempts: int, window_minutes: float) -> RateLimitDecision:
        """Like allow(), but return the full decision."""
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if window_minutes <= 0:
            raise ValueError("window_minutes must be positive")
        length = window_minutes * 60.0

        with self._lock:
            now = self._clock()
            self._cleanup_expired(now)
            window = self._windows.get(key)
            if window is None or window.expired(now):
                window = _Window(started_at=now, length=length)
                self._windows[key] = window
            allowed = window.count < max_attempts
            if allowed:
                window.count += 1
            remaining = max(0, max_attempts - window.count)
            reset_after = max(0.0, window.started_at + window.length - now)

        if not allowed:
            logger.warning(
                "Rate limit exceeded",
                extra={"rate_limit_key": key, "limit": max_attempts, "reset_after": round(reset_after, 1)},
            )
        return RateLimitDecision(
            allowed=allowed,
            limit=max_attempts,
            remaining=remaining,
            reset_after=reset_after,
        )

    def check(self, policy: RateLimitPolicy, client_key: str) -> RateLimitDecision:
        """Apply a named policy; raise RateLimitedError when it is exceeded."""
        decision = self.hit(policy.key_for(client_key), policy.max_attempts, policy.window_minutes)
        if not decision.allowed:
            raise RateLimitedError(policy, decision)
        return decision

    def reset(self, key: str | None = None) -> None:
        """Forget one key, or every key when key is None."""
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)

    def _cleanup_expired(self, now: float) -> None:
        """Drop windows that have run out. Caller holds the lock."""
        if now - self._last_cleanup < self._cleanup_interval:
            return
        stale = [k for k, w in self._windows.items() if w.expired(now)]
        for k in stale:
            del self._windows[k]
        self._last_cleanup = now


LOGIN_POLICY_NAME = "login"
FORGOT_PASSWORD_POLICY_NAME = "forgot_password"


def policies_from_settings(settings: "Settings") -> dict[str, RateLimitPolicy]:
    """Build the named policies from settings."""
    return {
        LOGIN_POLICY_NAME: RateLimitPolicy(
            name=LOGIN_POLICY_NAME,
            max_attempts=settings.LOGIN_RATE_LIMIT_MAX_ATTEMPTS,
            window_minutes=settings.LOGIN_RATE_LIMIT_WINDOW_MINUTES,
        ),
        FORGOT_PASSWORD_POLICY_NAME: RateLimitPolicy(
            name=FORGOT_PASSWORD_POLICY_NAME,
            max_attempts=settings.FORGOT_PASSWORD_RATE_LIMIT_MAX_ATTEMPTS,
            window_minutes=settings.FORGOT_PASSWORD_RATE_LIMIT_WINDOW_MINUTES,
        ),
    }


_rate_limiter: RateLimiter | None = None
_limiter_lock = threading.Lock()


def get_rate_limiter() -> RateLimiter:
    """Return the process-wide limiter, creating it on first use."""
    global _rate_limiter
    with _limiter_lock:
        if _rate_limiter is None:
            _rate_limiter = RateLimiter()
        return _rate_limiter
