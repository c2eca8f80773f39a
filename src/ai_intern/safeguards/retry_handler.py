"""Retry executor with exponential backoff and jitter.

Logic:
- Backoff: initial * multiplier^attempt, capped at max_delay, scaled by 1 ± jitter
- Only errors classified transient are retried; permanent and unclassified
  errors end the call immediately
- Waits are cancellable through an asyncio.Event shared by the whole run
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from ..errors import RunCancelled, classify, ErrorClass

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BackoffConfig:
    """Backoff parameters. Delays are in seconds."""
    initial: float = 1.0
    max_delay: float = 10.0
    multiplier: float = 2.0
    jitter: float = 0.2  # 0..1
    max_retries: int = 3

    def __post_init__(self):
        if not 0 <= self.jitter <= 1:
            raise ValueError(f"jitter must be within 0..1, got {self.jitter}")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.initial < 0 or self.max_delay < 0:
            raise ValueError("backoff delays must be non-negative")

    def base_delay(self, attempt: int) -> float:
        """Unjittered delay: initial * multiplier^attempt, capped at max_delay."""
        try:
            base = self.initial * (self.multiplier ** attempt)
        except OverflowError:
            return self.max_delay
        return min(base, self.max_delay)

    def next_delay(self, attempt: int, rng: Optional[random.Random] = None) -> float:
        """Delay before retrying after the given (0-based) failed attempt."""
        base = self.base_delay(attempt)
        if not self.jitter:
            return base
        uniform = (rng or random).uniform(-1.0, 1.0)
        return base * (1 + uniform * self.jitter)


@dataclass
class RetryOutcome(Generic[T]):
    """Result of a retried call: either a value or the error that ended it."""
    value: Optional[T] = None
    error: Optional[BaseException] = None
    attempts: int = 0  # retries performed, not counting the first call

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value or raise the error that ended the call."""
        if self.error is not None:
            raise self.error
        return self.value


async def _wait(delay: float, cancel_event: Optional[asyncio.Event]) -> bool:
    """Sleep for ``delay`` seconds. Returns False when the run was cancelled."""
    if cancel_event is None:
        await asyncio.sleep(delay)
        return True
    if cancel_event.is_set():
        return False
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return True
    return False


async def retry(
    operation: Callable[[], Awaitable[T]],
    config: BackoffConfig,
    *,
    cancel_event: Optional[asyncio.Event] = None,
    description: str = "operation",
    rng: Optional[random.Random] = None,
) -> RetryOutcome[T]:
    """Run ``operation`` and retry it while it raises transient errors.

    Args:
        operation: Zero-argument coroutine function to run
        config: Backoff parameters
        cancel_event: Set to abort a pending backoff wait
        description: Used in log messages
        rng: Random source for jitter (tests pass a seeded one)

    Returns:
        RetryOutcome with the value, or the last error and the number of
        retries performed. A cancelled wait yields a RunCancelled error.
    """
    attempts = 0
    for attempt in range(config.max_retries + 1):
        if attempt > 0:
            attempts += 1
        try:
            value = await operation()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error_class = classify(e)
            if error_class != ErrorClass.TRANSIENT:
                logger.debug(f"{description} failed with {error_class.value} error, not retrying: {e}")
                return RetryOutcome(error=e, attempts=attempts)
            if attempt >= config.max_retries:
                logger.warning(
                    f"{description} failed after {attempts} retries: {e}"
                )
                return RetryOutcome(error=e, attempts=attempts)

            delay = config.next_delay(attempt, rng)
            logger.warning(
                f"{description} failed (attempt {attempt + 1}/{config.max_retries + 1}), "
                f"retrying in {delay:.2f}s: {e}"
            )
            if not await _wait(delay, cancel_event):
                logger.info(f"{description} cancelled during backoff")
                return RetryOutcome(
                    error=RunCancelled(f"{description} cancelled during backoff"),
                    attempts=attempts,
                )
            continue
        return RetryOutcome(value=value, attempts=attempts)

    # Unreachable: the loop always returns.
    raise AssertionError("retry loop exited without an outcome")
