"""Fixed-wait retry policy for DevHub calls."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from scratchorg_pool.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryAborted(Exception):
    """Raised by an operation to stop retrying; the wrapped cause is re-raised."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(str(cause))
        self.cause = cause


@dataclass(frozen=True)
class RetryPolicy:
    """Number of attempts and the fixed wait between them."""

    attempts: int
    wait_seconds: float

    @classmethod
    def query(cls) -> "RetryPolicy":
        return cls(settings.retry_attempts, settings.query_retry_wait_seconds)

    @classmethod
    def fetch(cls) -> "RetryPolicy":
        return cls(settings.retry_attempts, settings.fetch_retry_wait_seconds)

    @classmethod
    def critical(cls) -> "RetryPolicy":
        return cls(settings.retry_attempts, settings.critical_retry_wait_seconds)


async def retrying(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    description: str = "devhub call",
) -> T:
    """Await ``operation()`` until it succeeds or the policy is exhausted.

    Every exception triggers another attempt. ``RetryAborted`` stops the loop
    and its cause is raised as is; after the final attempt the last error
    propagates unchanged.
    """
    attempt = 1
    while True:
        try:
            return await operation()
        except RetryAborted as aborted:
            raise aborted.cause from None
        except Exception as exc:
            if attempt >= policy.attempts:
                raise
            logger.debug(
                "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                description,
                attempt,
                policy.attempts,
                policy.wait_seconds,
                exc,
            )
            attempt += 1
            await asyncio.sleep(policy.wait_seconds)
