# ABOUTME: Cancellable timeouts for provider operations.
# ABOUTME: Wraps asyncio.wait_for and converts expiry into OperationTimeout with a readable message.

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import replace
from typing import Any, TypeVar

from bibrecon.metadata.provider import TimeoutSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OperationTimeout(Exception):
    """Raised when an awaited operation exceeds its timeout."""

    def __init__(self, message: str, timeout: float) -> None:
        super().__init__(message)
        self.timeout = timeout


async def with_timeout(
    awaitable: Awaitable[T], timeout: float, message: str | None = None
) -> T:
    """Await with a deadline; the underlying task is cancelled on expiry.

    Raises:
        OperationTimeout: If the awaitable does not finish within timeout seconds.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        text = message or f"Operation timed out after {round(timeout * 1000)}ms"
        raise OperationTimeout(text, timeout) from exc


class TimeoutGuard:
    """Applies a provider's operation timeout to the awaitables run on its behalf."""

    def __init__(self, settings: TimeoutSettings) -> None:
        self._settings = settings

    @property
    def settings(self) -> TimeoutSettings:
        return self._settings

    async def with_operation_timeout(
        self, awaitable: Awaitable[T], timeout: float | None = None
    ) -> T:
        """Await under timeout, or the configured operation timeout when none is given."""
        limit = timeout or self._settings.operation_timeout
        logger.debug("Running operation with a %.1fs limit", limit)
        return await with_timeout(
            awaitable, limit, f"Operation timed out after {round(limit * 1000)}ms"
        )

    def update_settings(self, **changes: Any) -> None:
        self._settings = replace(self._settings, **changes)
