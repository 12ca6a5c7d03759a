"""
Retry mechanism for resilient operations.
"""

import asyncio
import random
from typing import Any, Optional, Callable, Awaitable

from shared.logging import get_logger


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(self,
                 max_attempts: int = 3,
                 base_delay: float = 1.0,
                 max_delay: float = 60.0,
                 exponential_base: float = 2.0,
                 jitter: bool = True,
                 backoff_strategy: str = "exponential"):
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.backoff_strategy = backoff_strategy


async def call_with_retry(func: Callable[[], Awaitable[Any]],
                          *,
                          exceptions: tuple = (Exception,),
                          config: Optional[RetryConfig] = None,
                          name: Optional[str] = None) -> Any:
    """
    Await ``func`` until it succeeds or the attempts are exhausted.

    Only ``exceptions`` trigger another attempt; anything else propagates
    immediately. After the last attempt the final exception is re-raised
    unchanged so callers keep their error taxonomy.
    """
    if config is None:
        config = RetryConfig()
    label = name or getattr(func, "__name__", "operation")
    logger = get_logger(f"retry.{label}")

    for attempt in range(1, config.max_attempts + 1):
        try:
            result = await func()
            if attempt > 1:
                logger.info("Retry succeeded", attempt=attempt, function=label)
            return result

        except exceptions as e:
            if attempt == config.max_attempts:
                logger.error(
                    "All retry attempts exhausted",
                    attempt=attempt,
                    max_attempts=config.max_attempts,
                    function=label,
                    error=str(e)
                )
                raise

            delay = _calculate_delay(attempt, config)
            logger.warning(
                "Retry attempt failed, waiting before next attempt",
                attempt=attempt,
                delay=delay,
                function=label,
                error=str(e)
            )
            await asyncio.sleep(delay)


def _calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate delay between retry attempts."""
    if config.backoff_strategy == "exponential":
        delay = config.base_delay * (config.exponential_base ** (attempt - 1))
    elif config.backoff_strategy == "linear":
        delay = config.base_delay * attempt
    else:
        delay = config.base_delay

    # Apply max delay cap
    delay = min(delay, config.max_delay)

    # Add jitter if enabled
    if config.jitter:
        jitter_amount = delay * 0.1  # 10% jitter
        delay += random.uniform(-jitter_amount, jitter_amount)

    return max(0.0, delay)
