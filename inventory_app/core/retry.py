import asyncio
import logging
import random
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from inventory_app.core.config import STOCK_CAS_BASE_DELAY, STORE_MAX_RETRIES, STORE_RETRY_BASE_DELAY
from inventory_app.core.errors import StoreUnavailable

log = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float, max_delay: float = 5.0) -> float:
    """Exponential backoff: base, 2*base, 4*base ... capped at max_delay."""
    return min(max_delay, base_delay * (2 ** attempt))


async def contention_pause(attempt: int, base_delay: float = STOCK_CAS_BASE_DELAY, max_delay: float = 0.5) -> None:
    """Sleeps a random share of the backoff window after losing a conditional write."""
    await asyncio.sleep(random.uniform(0, backoff_delay(attempt, base_delay, max_delay)))


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int = STORE_MAX_RETRIES,
    base_delay: float = STORE_RETRY_BASE_DELAY,
    retry_on: Tuple[Type[BaseException], ...] = (StoreUnavailable,),
    label: str = "operation",
) -> T:
    """
    Runs ``operation`` and retries it on the given (transient) error types.

    The last error is re-raised once ``attempts`` tries have been used up.
    """
    for attempt in range(attempts):
        try:
            return await operation()
        except retry_on as exc:
            if attempt + 1 >= attempts:
                log.error(f"{label} failed after {attempts} attempts: {exc}")
                raise
            delay = backoff_delay(attempt, base_delay)
            log.warning(f"{label} failed (attempt {attempt + 1}/{attempts}), retrying in {delay:.2f}s: {exc}")
            await asyncio.sleep(delay)
    raise RuntimeError("retry_async called with attempts < 1")
