# ABOUTME: Per-provider sliding-window rate limiting for metadata queries.
# ABOUTME: Waiting is delegated to aiolimiter; a timestamp window answers introspection queries.

import asyncio
import logging
import time
from collections import deque
from dataclasses import asdict, replace
from typing import Any

from aiolimiter import AsyncLimiter

from bibrecon.metadata.provider import RateLimitSettings

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window rate limiter keyed by an arbitrary string (usually a provider name).

    `is_allowed` is a non-blocking check that records a request when it fits;
    `wait_for_slot` suspends until the key has budget, then applies the
    configured inter-request delay.
    """

    def __init__(self, settings: RateLimitSettings) -> None:
        self._settings = settings
        self._requests: dict[str, deque[float]] = {}
        self._limiters: dict[str, AsyncLimiter] = {}

    def _window(self, key: str) -> deque[float]:
        window = self._requests.setdefault(key, deque())
        cutoff = time.monotonic() - self._settings.window
        while window and window[0] <= cutoff:
            window.popleft()
        return window

    def _limiter(self, key: str) -> AsyncLimiter:
        limiter = self._limiters.get(key)
        if limiter is None:
            limiter = AsyncLimiter(self._settings.max_requests, self._settings.window)
            self._limiters[key] = limiter
        return limiter

    def is_allowed(self, key: str) -> bool:
        """Record a request for key and return True if it fits in the window."""
        window = self._window(key)
        if len(window) >= self._settings.max_requests:
            return False
        window.append(time.monotonic())
        return True

    async def wait_for_slot(self, key: str) -> None:
        """Suspend until key has budget, then record the request."""
        limiter = self._limiter(key)
        if not limiter.has_capacity():
            logger.debug("Rate limit reached for %s, waiting for a slot", key)
        await limiter.acquire()
        self._window(key).append(time.monotonic())
        if self._settings.request_delay > 0:
            await asyncio.sleep(self._settings.request_delay)

    def get_remaining_requests(self, key: str) -> int:
        return max(0, self._settings.max_requests - len(self._window(key)))

    def get_time_until_reset(self, key: str) -> float:
        """Seconds until the oldest request in the window expires (0 if none)."""
        window = self._window(key)
        if not window:
            return 0.0
        return max(0.0, window[0] + self._settings.window - time.monotonic())

    def clear(self) -> None:
        self._requests.clear()
        self._limiters.clear()

    def clear_key(self, key: str) -> None:
        self._requests.pop(key, None)
        self._limiters.pop(key, None)

    def update_settings(self, **changes: Any) -> None:
        """Replace settings fields; existing limiters are rebuilt on next use."""
        self._settings = replace(self._settings, **changes)
        self._limiters.clear()

    @property
    def settings(self) -> RateLimitSettings:
        return self._settings


class RateLimiterRegistry:
    """One RateLimiter per provider name, created on first use."""

    def __init__(self) -> None:
        self._limiters: dict[str, RateLimiter] = {}

    def get_limiter(self, provider_name: str, settings: RateLimitSettings) -> RateLimiter:
        """Limiter for provider_name, reconfigured when settings differ from its current ones."""
        limiter = self._limiters.get(provider_name)
        if limiter is None:
            limiter = RateLimiter(settings)
            self._limiters[provider_name] = limiter
        elif limiter.settings != settings:
            logger.debug("Rate limit settings for %s changed to %s", provider_name, settings)
            limiter.update_settings(**asdict(settings))
        return limiter

    async def wait_for_slot(self, provider_name: str, default: RateLimitSettings) -> None:
        """Wait on the provider's limiter; default only configures one not registered yet."""
        limiter = self._limiters.get(provider_name) or self.get_limiter(provider_name, default)
        await limiter.wait_for_slot(provider_name)

    def update_limiter(self, provider_name: str, **changes: Any) -> bool:
        limiter = self._limiters.get(provider_name)
        if limiter is None:
            return False
        limiter.update_settings(**changes)
        return True

    def clear_limiter(self, provider_name: str) -> bool:
        return self._limiters.pop(provider_name, None) is not None

    def clear_all(self) -> None:
        self._limiters.clear()

    def get_stats(self) -> dict[str, dict[str, Any]]:
        return {
            name: {
                "remaining_requests": limiter.get_remaining_requests(name),
                "time_until_reset": limiter.get_time_until_reset(name),
                "settings": limiter.settings,
            }
            for name, limiter in self._limiters.items()
        }
