"""
Retry executor: exponential backoff with symmetric jitter.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable, Iterator
from typing import TypeVar

import structlog

from .policy import RetryPolicy

logger = structlog.get_logger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


def next_delay(previous: float, retry_number: int, policy: RetryPolicy) -> float:
    """Un-jittered delay before retry ``retry_number`` (0-based)."""
    if retry_number == 0:
        return policy.initial_delay
    return min(previous * policy.backoff_factor, policy.max_delay)


def apply_jitter(delay: float, jitter_factor: float, rng: random.Random) -> float:
    """Shift ``delay`` by a uniform offset in [-jitter*delay, +jitter*delay]."""
    if jitter_factor <= 0:
        return delay
    spread = delay * jitter_factor
    return max(0.0, delay + rng.uniform(-spread, spread))


def backoff_delays(policy: RetryPolicy) -> Iterator[float]:
    """The un-jittered delays a policy would wait, one per retry."""
    delay = 0.0
    for retry_number in range(policy.max_retries):
        delay = next_delay(delay, retry_number, policy)
        yield delay


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    sleep: SleepFunc = asyncio.sleep,
    rng: random.Random | None = None,
    label: str = "operation",
) -> T:
    """
    Run ``operation`` until it succeeds, fails fatally, or the budget runs out.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt
        policy: Schedule and retryability rule
        sleep: Suspension used between attempts (cancellable)
        rng: Source for jitter
        label: Name used in log events

    Returns:
        The operation's result

    Raises:
        The last error from ``operation``, unchanged. Cancellation is never
        classified and propagates immediately.
    """
    rng = rng or random.Random()
    delay = 0.0

    for attempt in range(policy.max_attempts):
        try:
            result = await operation()
        except Exception as e:
            if not policy.classify(e):
                logger.info("Non-retryable error", label=label, attempt=attempt + 1, error=str(e))
                raise

            if attempt == policy.max_retries:
                logger.warning(
                    "Max retries exceeded",
                    label=label,
                    attempts=attempt + 1,
                    error=str(e),
                )
                raise

            delay = next_delay(delay, attempt, policy)
            wait = apply_jitter(delay, policy.jitter_factor, rng)
            logger.info(
                "Retrying after error",
                label=label,
                attempt=attempt + 1,
                delay_ms=int(wait * 1000),
                error=str(e),
            )
            await sleep(wait)
            continue

        if attempt > 0:
            logger.info("Retry successful", label=label, attempt=attempt + 1)
        return result

    raise RuntimeError("retry loop exited without a result")
