"""Database utility functions."""
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import OperationalError, InterfaceError

logger = logging.getLogger(__name__)

T = TypeVar('T')

TRANSIENT_MESSAGES = (
    "connection refused",
    "connection reset",
    "connection closed",
    "server closed",
    "database is locked",
    "timeout",
    "too many clients",
)


def is_transient_db_error(error: Exception) -> bool:
    """True for lock contention and dropped connections worth retrying."""
    if not isinstance(error, (OperationalError, InterfaceError)):
        return False
    if error.connection_invalidated:
        return True
    error_str = str(error).lower()
    return any(msg in error_str for msg in TRANSIENT_MESSAGES)


async def retry_on_lock(coro_func: Callable[[], Awaitable[T]], max_retries: int = 3, base_delay: float = 0.1) -> T:
    """Retry a database operation on transient errors with exponential backoff.

    Concurrent checks all write to the same table; SQLite serializes writers and
    PostgreSQL may drop connections under load.

    Args:
        coro_func: Async function to call (should be a callable that returns a coroutine)
        max_retries: Maximum number of attempts
        base_delay: Base delay in seconds (doubles with each retry)

    Returns:
        The result of the coroutine function

    Raises:
        OperationalError: If all retries fail or error is not transient
    """
    for attempt in range(max_retries):
        try:
            return await coro_func()
        except (OperationalError, InterfaceError) as e:
            if not is_transient_db_error(e) or attempt == max_retries - 1:
                raise
            delay = base_delay * (2 ** attempt)
            logger.warning(f"Database transient error, retrying in {delay}s (attempt {attempt + 1}/{max_retries})")
            await asyncio.sleep(delay)
    raise RuntimeError("retry_on_lock called with max_retries < 1")
