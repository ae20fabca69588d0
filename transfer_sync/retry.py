"""
Retry Policy - Bounded exponential backoff around provider calls.

Every provider call goes through one RetryPolicy so adapters only build
queries and parse responses.

Retryable:
- RateLimitError (honours Retry-After when longer than the backoff)
- ProviderTimeoutError
- FetchError with a 5xx status or no status (transport failure)

Everything else is raised immediately.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, TypeVar

from transfer_sync.config import RetrySettings
from transfer_sync.exceptions import (
    FetchError,
    ProviderTimeoutError,
    RateLimitError,
    RetryExhaustedError,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_retryable(error: Exception) -> bool:
    """Whether another attempt could plausibly succeed."""
    if isinstance(error, (RateLimitError, ProviderTimeoutError)):
        return True
    if isinstance(error, FetchError):
        return error.is_transient
    return False


class RetryPolicy:
    """
    Retry an async operation with capped exponential backoff and jitter.

    Usage:
        policy = RetryPolicy(max_attempts=4, base_delay=1.0)
        rows = await policy.run(lambda: adapter.execute(request), "bitquery solana")
    """

    def __init__(
        self,
        max_attempts: int = 4,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        jitter: float = 0.2,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if not 0 <= jitter < 1:
            raise ValueError("jitter must be in [0, 1)")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self._sleep = sleep
        self._rng = rng

    @classmethod
    def from_settings(cls, settings: RetrySettings, **kwargs) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_attempts,
            base_delay=settings.base_delay_seconds,
            max_delay=settings.max_delay_seconds,
            jitter=settings.jitter,
            **kwargs,
        )

    def delay_for(self, attempt: int, error: Optional[Exception] = None) -> float:
        """
        Backoff before retry number `attempt` (0-based).

        Args:
            attempt: Index of the failed attempt
            error: The failure, consulted for a Retry-After hint
        """
        delay = min(self.max_delay, self.base_delay * (2 ** attempt))
        if self.jitter:
            delay *= 1 + self.jitter * (2 * self._rng() - 1)
        if isinstance(error, RateLimitError) and error.retry_after_seconds:
            delay = max(delay, float(error.retry_after_seconds))
        return delay

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        description: str,
        provider: Optional[str] = None,
        chain: Optional[str] = None,
    ) -> T:
        """
        Run `operation` until it succeeds or attempts run out.

        Raises:
            RetryExhaustedError: All attempts failed with retryable errors
            Exception: The first non-retryable error, unchanged
        """
        last_error: Optional[Exception] = None

        for attempt in range(self.max_attempts):
            try:
                return await operation()
            except Exception as e:
                if not is_retryable(e):
                    raise
                last_error = e
                if attempt + 1 >= self.max_attempts:
                    break
                wait_time = self.delay_for(attempt, e)
                logger.warning(
                    f"[{description}] Retry {attempt + 1}/{self.max_attempts - 1} "
                    f"in {wait_time:.1f}s: {e}"
                )
                await self._sleep(wait_time)

        logger.error(f"[{description}] Giving up after {self.max_attempts} attempts: {last_error}")
        raise RetryExhaustedError(
            message=f"{description} failed after {self.max_attempts} attempts",
            attempts=self.max_attempts,
            provider=provider,
            chain=chain,
            original_error=last_error,
        ) from last_error
