from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, Optional, TypeVar

from pydantic import BaseModel, Field

from ..errors import RetryExhaustedError, RetryTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryOptions(BaseModel):
    """Bounds for ``retry_with_backoff``.

    ``max_attempts`` counts retries after the first call, so an operation that
    always fails is invoked ``max_attempts + 1`` times.
    """

    max_attempts: int = Field(default=3, ge=0)
    initial_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=30.0, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1)
    jitter_fraction: float = Field(default=0.0, ge=0)
    total_timeout: Optional[float] = None
    operation_name: str = "Operation"


def compute_backoff(
    attempt: int,
    initial_delay: float = 1.0,
    multiplier: float = 2.0,
    max_delay: float = 30.0,
    jitter: float = 0.0,
) -> float:
    """Compute exponential backoff capped at ``max_delay`` with optional jitter."""
    delay = min(initial_delay * multiplier**attempt, max_delay)
    if jitter > 0:
        delay += random.uniform(0, jitter * delay)
    return delay


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    options: RetryOptions,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """Await ``operation`` until it succeeds or the retry budget runs out.

    Raises:
        RetryTimeoutError: ``total_timeout`` elapsed before a retry could start.
        RetryExhaustedError: every attempt failed.
    """
    name = options.operation_name
    total_attempts = options.max_attempts + 1
    started = clock()
    last_error: Optional[BaseException] = None

    for attempt in range(total_attempts):
        if attempt > 0 and options.total_timeout is not None:
            elapsed = clock() - started
            if elapsed > options.total_timeout:
                raise RetryTimeoutError(
                    f"{name} timed out after {options.total_timeout}s "
                    f"on attempt #{attempt + 1}/{total_attempts}. Last error: {last_error}"
                ) from last_error

        try:
            return await operation()
        except Exception as e:
            last_error = e
            if attempt == options.max_attempts:
                raise RetryExhaustedError(
                    f"{name} failed after {total_attempts} attempts. Last error: {e}"
                ) from e

            delay = compute_backoff(
                attempt,
                initial_delay=options.initial_delay,
                multiplier=options.backoff_multiplier,
                max_delay=options.max_delay,
                jitter=options.jitter_fraction,
            )
            logger.warning(
                f"{name} attempt {attempt + 1} failed: {e}. Retrying in {delay:.2f}s..."
            )
            await sleep(delay)

    raise RetryExhaustedError(f"{name} made no attempts")
