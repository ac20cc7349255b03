"""Bounded polling for results the gateway produces asynchronously."""
import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

import structlog

from credit_ledger.exceptions import PollingCancelledError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class PollingPolicy:
    """
    Fixed-interval retry policy.

    Attributes:
        interval_seconds: Sleep before each attempt
        max_attempts: Hard ceiling on attempts
    """

    interval_seconds: float = 1.0
    max_attempts: int = 30


async def poll_until(
    fetch: Callable[[], Awaitable[Optional[T]]],
    policy: PollingPolicy,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    is_cancelled: Callable[[], Awaitable[bool]] | None = None,
) -> Optional[T]:
    """
    Call `fetch` until it returns a value or the attempt budget runs out.

    Each attempt waits `policy.interval_seconds` first, matching the gateway
    needing a moment to generate the charge.

    Args:
        fetch: Coroutine returning the value, or None if not ready yet
        policy: Interval and attempt ceiling
        sleep: Sleep function (injectable for tests)
        is_cancelled: Optional check, e.g. Request.is_disconnected

    Returns:
        The first non-None value, or None when the budget is exhausted

    Raises:
        PollingCancelledError: If is_cancelled reports the caller went away
    """
    for attempt in range(1, policy.max_attempts + 1):
        await sleep(policy.interval_seconds)

        if is_cancelled is not None and await is_cancelled():
            logger.info("polling_cancelled", attempt=attempt)
            raise PollingCancelledError("Polling abandoned: caller disconnected")

        value = await fetch()
        if value is not None:
            logger.debug("polling_succeeded", attempt=attempt)
            return value

    logger.warning("polling_exhausted", attempts=policy.max_attempts)
    return None
