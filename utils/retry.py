"""
Async retry logic with exponential backoff and per-attempt timeout.

Handles transient failures in model endpoint calls. Each attempt is bounded
by an optional timeout so a call that never resolves cannot stall a run.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior.

    ``max_attempts=1`` disables retrying entirely.
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True
    jitter_factor: float = 0.1

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("Retry delays must be non-negative")


TRANSIENT_EXCEPTIONS: Tuple[Type[BaseException], ...] = (
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
)


class RetryableError(Exception):
    """Mark an error as retryable."""

    pass


class NonRetryableError(Exception):
    """Mark an error as non-retryable (fail immediately)."""

    pass


def compute_delay(attempt: int, config: RetryConfig) -> float:
    """Backoff delay before retrying after the given (1-based) attempt."""
    delay = min(
        config.initial_delay * (config.exponential_base ** (attempt - 1)),
        config.max_delay,
    )
    if config.jitter:
        jitter_range = delay * config.jitter_factor
        delay += random.uniform(-jitter_range, jitter_range)
    return max(delay, 0.0)


async def retry_with_backoff(
    func: Callable[..., Awaitable[Any]],
    *args: Any,
    config: Optional[RetryConfig] = None,
    timeout: Optional[float] = None,
    retryable_exceptions: Tuple[Type[BaseException], ...] = TRANSIENT_EXCEPTIONS,
    on_retry: Optional[Callable[[BaseException, int], None]] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **kwargs: Any,
) -> Any:
    """
    Await a coroutine function with exponential backoff retry.

    Args:
        func: Coroutine function to execute
        *args: Positional arguments
        config: Retry policy (defaults to RetryConfig())
        timeout: Per-attempt timeout in seconds (None = unbounded)
        retryable_exceptions: Exception types that trigger retry
        on_retry: Callback on each retry (exception, attempt_number)
        sleep: Awaitable used between attempts
        **kwargs: Keyword arguments

    Returns:
        Result of func

    Raises:
        Last exception if all retries exhausted, or the first
        non-retryable exception.
    """
    config = config or RetryConfig()
    name = getattr(func, "__name__", repr(func))

    for attempt in range(1, config.max_attempts + 1):
        try:
            if timeout is not None:
                return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout)
            return await func(*args, **kwargs)

        except NonRetryableError:
            raise

        except (RetryableError, *retryable_exceptions) as e:
            if attempt == config.max_attempts:
                logger.error(
                    f"All {config.max_attempts} attempts failed for {name}: "
                    f"{type(e).__name__}: {e}"
                )
                raise

            delay = compute_delay(attempt, config)
            logger.warning(
                f"Attempt {attempt}/{config.max_attempts} failed for {name}: "
                f"{type(e).__name__}: {e}. Retrying in {delay:.1f}s..."
            )
            if on_retry:
                on_retry(e, attempt)
            await sleep(delay)

    # Unreachable: the loop either returns or raises
    raise RuntimeError(f"retry loop exited without result for {name}")
