"""
Process-local fixed-window rate limiter.

Counters live in a dict on the singleton below: they are lost on restart and
are not shared between worker processes or instances.
"""
from dataclasses import dataclass
from typing import Callable, Dict, Optional
import logging
import math
import time

from docvault.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitRule:
    max_requests: int
    window_seconds: int


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float

    @property
    def retry_after(self) -> int:
        return max(0, math.ceil(self.reset_at - time.time()))


class RateLimitExceeded(Exception):
    def __init__(self, message: str, result: RateLimitResult):
        super().__init__(message)
        self.message = message
        self.result = result


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    def __init__(self, clock: Callable[[], float] = time.time, prune_interval: float = 300.0):
        self._clock = clock
        self._prune_interval = prune_interval
        self._windows: Dict[str, _Window] = {}
        self._last_prune = clock()

    def check(self, identifier: str, rule: RateLimitRule) -> RateLimitResult:
        """Count one attempt for ``identifier`` and report whether it is allowed."""
        now = self._clock()
        self._prune(now)

        window = self._windows.get(identifier)
        if window is None or window.reset_at <= now:
            reset_at = now + rule.window_seconds
            self._windows[identifier] = _Window(count=1, reset_at=reset_at)
            return RateLimitResult(True, rule.max_requests, rule.max_requests - 1, reset_at)

        if window.count >= rule.max_requests:
            return RateLimitResult(False, rule.max_requests, 0, window.reset_at)

        window.count += 1
        return RateLimitResult(True, rule.max_requests, rule.max_requests - window.count, window.reset_at)

    def peek(self, identifier: str, rule: RateLimitRule) -> RateLimitResult:
        """Report the state for ``identifier`` without counting an attempt."""
        now = self._clock()
        window = self._windows.get(identifier)
        if window is None or window.reset_at <= now:
            return RateLimitResult(True, rule.max_requests, rule.max_requests, now + rule.window_seconds)

        return RateLimitResult(
            window.count < rule.max_requests,
            rule.max_requests,
            max(0, rule.max_requests - window.count),
            window.reset_at,
        )

    def enforce(self, identifier: str, rule: RateLimitRule, message: Optional[str] = None) -> RateLimitResult:
        """Like check(), but raise RateLimitExceeded when the window is exhausted."""
        result = self.check(identifier, rule)
        if not result.allowed:
            logger.warning(f"Rate limit exceeded for {identifier}")
            raise RateLimitExceeded(message or "Too many attempts. Please try again later.", result)
        return result

    def reset(self, identifier: str) -> None:
        self._windows.pop(identifier, None)

    def clear(self) -> None:
        self._windows.clear()

    def _prune(self, now: float) -> None:
        if now - self._last_prune < self._prune_interval:
            return
        expired = [key for key, window in self._windows.items() if window.reset_at <= now]
        for key in expired:
            del self._windows[key]
        self._last_prune = now


RATE_LIMITS = {
    "login": RateLimitRule(settings.RATE_LIMIT_LOGIN_MAX, settings.RATE_LIMIT_LOGIN_WINDOW_SECONDS),
    "register": RateLimitRule(settings.RATE_LIMIT_REGISTER_MAX, settings.RATE_LIMIT_REGISTER_WINDOW_SECONDS),
    "folder_password": RateLimitRule(
        settings.RATE_LIMIT_FOLDER_PASSWORD_MAX,
        settings.RATE_LIMIT_FOLDER_PASSWORD_WINDOW_SECONDS,
    ),
}

# Singleton instance
rate_limiter = RateLimiter()
