"""Retry combinator shared by the marketplace crawler and the embedding client.

A ``RetryPolicy`` bundles the maximum number of attempts, a wait strategy
(attempt number -> seconds) and a predicate deciding which exceptions are
worth another attempt. Anything the predicate rejects propagates at once.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

WaitStrategy = Callable[[int], float]
SleepFunc = Callable[[float], Awaitable[None]]


def fixed_wait(seconds: float) -> WaitStrategy:
    """Wait the same number of seconds before every retry."""

    def _wait(attempt: int) -> float:
        return seconds

    return _wait


def retry_on(*exc_types: Type[BaseException]) -> Callable[[BaseException], bool]:
    """Build a predicate that accepts instances of the given exception types."""

    def _predicate(exc: BaseException) -> bool:
        return isinstance(exc, exc_types)

    return _predicate


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try, how long to wait, and what to retry."""

    max_attempts: int = 3
    wait: WaitStrategy = field(default_factory=lambda: fixed_wait(1.0))
    is_retryable: Callable[[BaseException], bool] = field(
        default_factory=lambda: retry_on(Exception)
    )

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")


class RetryExhaustedError(RuntimeError):
    """Raised when every attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    sleep: SleepFunc = asyncio.sleep,
    on_retry: Optional[Callable[[int, float, BaseException], None]] = None,
    name: str = "call",
) -> T:
    """
    Await ``fn()`` until it succeeds or the policy gives up.

    Args:
        fn: Zero-argument coroutine factory, called once per attempt
        policy: Retry policy
        sleep: Sleep function (injectable for tests)
        on_retry: Optional callback ``(attempt, delay, error)`` before each wait
        name: Label used in log messages

    Returns:
        Result of the first successful attempt

    Raises:
        RetryExhaustedError: If every attempt failed with a retryable error
        Exception: Any non-retryable error, unchanged
    """
    last_error: BaseException | None = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await fn()
        except Exception as e:
            if not policy.is_retryable(e):
                raise
            last_error = e

            if attempt >= policy.max_attempts:
                break

            delay = policy.wait(attempt)
            logger.warning(
                f"{name}: {type(e).__name__}: {e}, retrying in {delay:.1f}s "
                f"(attempt {attempt}/{policy.max_attempts})"
            )
            if on_retry:
                on_retry(attempt, delay, e)
            await sleep(delay)

    raise RetryExhaustedError(policy.max_attempts, last_error)
