import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from redis.backoff import AbstractBackoff, ExponentialBackoff
from sqlalchemy.exc import InterfaceError, OperationalError

from app.core.config import settings
from app.core.errors import TransientStoreError
from app.utils.infrastructure.redis_pool import TRANSIENT_REDIS_ERRORS

log = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_STORE_ERRORS = TRANSIENT_REDIS_ERRORS + (
    OperationalError,
    InterfaceError,
    ConnectionError,
    TimeoutError,
)


async def with_store_retry(
    op: Callable[[], Awaitable[T]],
    *,
    what: str,
    attempts: Optional[int] = None,
    backoff: Optional[AbstractBackoff] = None,
    on_retry: Optional[Callable[[], Awaitable[None]]] = None,
) -> T:
    """
    Run a store operation, retrying transient failures with exponential backoff.

    `on_retry` runs before each new attempt (e.g. ``db.rollback``) so the next
    attempt starts from a clean session. Raises TransientStoreError once all
    attempts are used up; any other exception propagates untouched.
    """
    attempts = attempts or settings.STORE_RETRY_ATTEMPTS
    backoff = backoff or ExponentialBackoff(cap=0.5, base=0.05)
    backoff.reset()

    for attempt in range(1, attempts + 1):
        try:
            return await op()
        except TRANSIENT_STORE_ERRORS as e:
            if attempt >= attempts:
                log.error("%s failed after %d attempts: %s", what, attempts, e)
                raise TransientStoreError(
                    f"{what} is temporarily unavailable",
                    details={"attempts": attempts},
                ) from e

            delay = backoff.compute(attempt)
            log.warning(
                "%s attempt %d/%d failed (%s), retrying in %.2fs",
                what, attempt, attempts, e, delay,
            )
            if on_retry is not None:
                await on_retry()
            await asyncio.sleep(delay)

    raise TransientStoreError(f"{what} is temporarily unavailable")
