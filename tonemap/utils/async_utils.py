"""
Async helpers shared by components that call external collaborators.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def fetch_with_timeout(
    awaitable: Awaitable[T],
    *,
    timeout: float,
    default: T,
    operation: str,
    log: Optional[structlog.BoundLogger] = None
) -> T:
    """
    Await a fetch, treating a timeout as "no data available".

    Args:
        awaitable: The fetch to run
        timeout: Seconds to wait
        default: Value returned when the fetch times out
        operation: Name used in the log record
        log: Logger to use (module logger when omitted)

    Returns:
        The fetch result, or `default` on timeout
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        (log or logger).warning(
            "Fetch timed out, continuing without data",
            operation=operation,
            timeout_seconds=timeout
        )
        return default
