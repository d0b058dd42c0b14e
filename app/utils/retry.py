"""Bounded retry with exponential backoff for idempotent async operations."""
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar
import asyncio
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    retries: int = 2          # additional attempts after the first
    base_delay: float = 1.0   # seconds
    factor: float = 1.5

    def delays(self):
        delay = self.base_delay
        for _ in range(self.retries):
            yield delay
            delay *= self.factor


def _always(_: BaseException) -> bool:
    return True


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy = RetryPolicy(),
    should_retry: Callable[[BaseException], bool] = _always,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run ``operation`` until it succeeds or the attempt budget is spent.

    Only the final failure propagates; earlier failures are logged.
    """
    delays = list(policy.delays())
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as exc:
            if attempt >= len(delays) or not should_retry(exc):
                raise
            delay = delays[attempt]
            attempt += 1
            logger.warning(
                f"Retrying after error ({exc}). Attempts remaining: {len(delays) - attempt + 1}, "
                f"next delay {delay:.2f}s"
            )
            await sleep(delay)
