"""
Retry and polling helpers.

retry_with_backoff retries transient failures with exponential backoff.
poll_until re-checks a condition on a fixed interval with a hard attempt cap.
"""

import asyncio
import functools
import time
from typing import Awaitable, Callable, Optional, Type, Tuple, Any, TypeVar

from shared.errors import RetryableError, RateLimitError, AnalysisTimeoutError, PipelineError
from shared.logging import get_logger

T = TypeVar("T")
logger = get_logger("retry")


def retry_with_backoff(
    max_attempts: int = 3,
    base_delay: float = 2,
    retryable_exceptions: Tuple[Type[Exception], ...] = (RetryableError, RateLimitError)
):
    """
    Decorator for retrying functions with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        base_delay: Base delay in seconds for exponential backoff (default: 2)
        retryable_exceptions: Tuple of exception types to retry on

    Returns:
        Decorated function

    Example:
        @retry_with_backoff(max_attempts=3, base_delay=2)
        async def call_api():
            return await api_client.call(...)
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> T:
                last_exception = None

                for attempt in range(max_attempts):
                    try:
                        return await func(*args, **kwargs)
                    except retryable_exceptions as e:
                        last_exception = e
                        if attempt < max_attempts - 1:
                            # Exponential backoff: 2s, 4s, 8s, etc.
                            delay = base_delay * (2 ** attempt)
                            logger.warning(
                                f"Retry attempt {attempt + 1}/{max_attempts} for {func.__name__} "
                                f"after {delay}s delay",
                                extra={"error": str(e), "attempt": attempt + 1}
                            )
                            await asyncio.sleep(delay)
                        else:
                            logger.error(
                                f"All {max_attempts} retry attempts failed for {func.__name__}",
                                extra={"error": str(e)}
                            )
                    except Exception as e:
                        logger.error(
                            f"Non-retryable error in {func.__name__}: {str(e)}",
                            extra={"error": str(e)}
                        )
                        raise

                if last_exception:
                    raise last_exception
                raise RuntimeError(f"Function {func.__name__} failed after {max_attempts} attempts")

            return async_wrapper
        else:
            @functools.wraps(func)
            def sync_wrapper(*args: Any, **kwargs: Any) -> T:
                last_exception = None

                for attempt in range(max_attempts):
                    try:
                        return func(*args, **kwargs)
                    except retryable_exceptions as e:
                        last_exception = e
                        if attempt < max_attempts - 1:
                            delay = base_delay * (2 ** attempt)
                            logger.warning(
                                f"Retry attempt {attempt + 1}/{max_attempts} for {func.__name__} "
                                f"after {delay}s delay",
                                extra={"error": str(e), "attempt": attempt + 1}
                            )
                            time.sleep(delay)
                        else:
                            logger.error(
                                f"All {max_attempts} retry attempts failed for {func.__name__}",
                                extra={"error": str(e)}
                            )
                    except Exception as e:
                        logger.error(
                            f"Non-retryable error in {func.__name__}: {str(e)}",
                            extra={"error": str(e)}
                        )
                        raise

                if last_exception:
                    raise last_exception
                raise RuntimeError(f"Function {func.__name__} failed after {max_attempts} attempts")

            return sync_wrapper

    return decorator


async def poll_until(
    fetch: Callable[[], Awaitable[T]],
    is_done: Callable[[T], bool],
    interval: float,
    max_attempts: int,
    timeout_error: Type[PipelineError] = AnalysisTimeoutError,
    description: str = "operation",
    on_attempt: Optional[Callable[[int, T], Awaitable[None]]] = None
) -> T:
    """
    Poll ``fetch`` on a fixed interval until ``is_done`` accepts the result.

    The first fetch happens immediately; the interval is slept only between
    attempts. Raises ``timeout_error`` once ``max_attempts`` fetches have all
    come back not done.

    Args:
        fetch: Coroutine function returning the current value
        is_done: Predicate deciding whether polling can stop
        interval: Seconds between attempts (fixed, no backoff)
        max_attempts: Hard cap on the number of fetches
        timeout_error: Error class raised when the cap is reached
        description: Used in log lines and the timeout message
        on_attempt: Optional coroutine called with (attempt, value) after each fetch

    Returns:
        The first value accepted by ``is_done``
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    value = None
    for attempt in range(1, max_attempts + 1):
        value = await fetch()
        if on_attempt is not None:
            await on_attempt(attempt, value)
        if is_done(value):
            return value
        if attempt < max_attempts:
            logger.debug(
                f"Polling {description}: attempt {attempt}/{max_attempts} not done",
                extra={"attempt": attempt, "interval": interval}
            )
            await asyncio.sleep(interval)

    logger.warning(
        f"Polling {description} timed out after {max_attempts} attempts",
        extra={"max_attempts": max_attempts, "interval": interval}
    )
    raise timeout_error(
        f"Timed out waiting for {description} after {max_attempts} attempts "
        f"({interval}s interval)"
    )
