"""
Retry / timeout executor.

Runs an async operation up to ``max_retries`` times. Each attempt gets its
own deadline. Between attempts the executor sleeps ``backoff * (n + 1)``
seconds, so the default schedule is 1s, 2s. After the final failure the last
error is re-raised as-is.

Usage:
    executor = RetryExecutor(max_retries=3, timeout_seconds=60, provider="openai")
    payload = await executor.run(lambda: client_call())
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from airouter.errors import ProviderTimeoutError
from airouter.observability.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


class RetryExecutor:
    """
    Bounded retry loop with a per-attempt timeout and linear backoff.

    Args:
        max_retries: Total number of attempts (not additional retries)
        timeout_seconds: Deadline applied to each attempt separately
        backoff_seconds: Base delay; attempt n waits backoff * (n + 1)
        provider: Vendor id used in timeout errors and log events
        sleep: Coroutine used for waiting, injectable for tests
    """

    def __init__(
        self,
        max_retries: int = 3,
        timeout_seconds: float = 60.0,
        backoff_seconds: float = 1.0,
        provider: Optional[str] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.max_retries = max_retries
        self.timeout_seconds = timeout_seconds
        self.backoff_seconds = backoff_seconds
        self.provider = provider
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Delay applied after failed attempt number ``attempt`` (0-based)."""
        return self.backoff_seconds * (attempt + 1)

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Execute ``operation`` with retries.

        Args:
            operation: Zero-argument callable returning a fresh awaitable per attempt

        Returns:
            The first successful result

        Raises:
            ProviderTimeoutError: If the final attempt timed out
            Exception: The final attempt's error, unchanged
        """
        attempt = 0
        while True:
            error: Exception
            try:
                return await asyncio.wait_for(operation(), timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                error = ProviderTimeoutError(self.provider, self.timeout_seconds)
            except Exception as e:
                error = e

            logger.warning(
                "provider_attempt_failed",
                provider=self.provider,
                attempt=attempt + 1,
                max_retries=self.max_retries,
                error=str(error),
            )

            if attempt >= self.max_retries - 1:
                raise error
            await self._sleep(self.delay_for(attempt))
            attempt += 1


__all__ = ["RetryExecutor"]
