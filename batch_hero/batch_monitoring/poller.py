"""
Condition Polling

A single wait-until-condition loop shared by every Azure Batch resource we wait on.
Fetches a fresh snapshot at a fixed interval until a predicate accepts it or the
time budget runs out. The remote resource is only ever read.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

T = TypeVar("T")


@dataclass
class PollingConfig:
    """Polling parameters for one wait"""
    polling_interval: float = 10  # seconds
    timeout_minutes: float = 10
    transient_errors: Tuple[Type[BaseException], ...] = ()

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_minutes * 60


class PollTimeoutError(TimeoutError):
    """Raised when a polled condition is not met within the wait window"""

    def __init__(self, description: str, elapsed: float, attempts: int, last_snapshot: Any = None):
        self.description = description
        self.elapsed = elapsed
        self.attempts = attempts
        self.last_snapshot = last_snapshot
        super().__init__(
            f"{description}: Timed out waiting for condition to be met "
            f"(elapsed {elapsed:.1f}s, {attempts} fetches)."
        )

    def __reduce__(self):
        return (type(self), (self.description, self.elapsed, self.attempts, self.last_snapshot))


async def poll_until(
    fetch: Callable[[], Awaitable[T]],
    condition: Callable[[T], bool],
    config: Optional[PollingConfig] = None,
    description: str = "condition",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
    logger: Optional[logging.Logger] = None,
) -> T:
    """
    Fetch a snapshot repeatedly until ``condition`` accepts it.

    The first fetch happens immediately and elapsed time is measured from it.
    The condition is checked before the timeout, so a satisfying snapshot wins
    even when it arrives exactly at the deadline. After an unsatisfied fetch at
    or past the deadline no further fetch is made.

    Args:
        fetch: Coroutine function returning the current snapshot
        condition: Predicate over a snapshot
        config: Interval, timeout and which fetch errors count as transient
        description: Label used in logs and in the timeout message
        sleep: Awaitable sleep, injectable for tests
        clock: Monotonic clock in seconds, injectable for tests
        logger: Logger to report progress on

    Returns:
        The first snapshot satisfying ``condition``

    Raises:
        PollTimeoutError: If the condition is not met within the timeout
    """
    config = config or PollingConfig()
    logger = logger or logging.getLogger(__name__)
    timeout = config.timeout_seconds

    start = clock()
    attempts = 0
    snapshot = None

    while True:
        attempts += 1
        try:
            snapshot = await fetch()
        except config.transient_errors as e:
            snapshot = None
            logger.warning(f"⚠️ Transient error while polling {description}: {e}")
        else:
            if condition(snapshot):
                logger.debug(f"{description} met after {attempts} fetches")
                return snapshot

        elapsed = clock() - start
        if elapsed >= timeout:
            logger.error(f"⏰ Gave up waiting for {description} after {elapsed:.1f}s")
            raise PollTimeoutError(description, elapsed, attempts, snapshot)

        delay = min(config.polling_interval, timeout - elapsed)
        logger.info(f"⏳ Waiting for {description}, next check in {delay:.0f}s...")
        await sleep(delay)
