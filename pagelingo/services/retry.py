# pagelingo/services/retry.py
"""
Bounded retry with exponential backoff for backend calls.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from pagelingo.services.exceptions import BackendError

# Module logger
logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry budget for one backend call.

    Attempt n (0-based) that fails waits base_delay * 2**n before the next
    one, so the defaults wait 2, 4 and 8 seconds across three retries.
    """
    max_retries: int = 3
    base_delay: float = 2.0

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * (2 ** attempt)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    sleep: SleepFunc = asyncio.sleep,
    description: Optional[str] = None,
) -> T:
    """
    Await func() until it succeeds or the retry budget is spent.

    Only BackendError is retried; anything else propagates immediately.
    After the last attempt the last BackendError propagates unchanged.
    """
    attempt = 0
    while True:
        try:
            return await func()
        except BackendError as e:
            if attempt >= policy.max_retries:
                logger.error(
                    "%s failed after %d attempts: %s",
                    description or "Backend call", attempt + 1, e,
                )
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                description or "Backend call", attempt + 1, policy.max_attempts, delay, e,
            )
            await sleep(delay)
            attempt += 1
