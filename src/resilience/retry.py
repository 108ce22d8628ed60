"""Retry with exponential backoff for store and assistant calls.

External I/O (loading rules, reading and writing period credits, asking the
extraction assistant) completes or fails with RetryExhausted before the
deterministic computation phase starts. Nothing here blocks forever: the
number of attempts and the delay cap are always bounded.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from functools import wraps
from typing import (
    Any,
    Callable,
    Optional,
    Tuple,
    Type,
    TypeVar,
    Union,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
ExceptionTypes = Union[Type[Exception], Tuple[Type[Exception], ...]]


class RetryExhausted(Exception):
    """Raised when all retry attempts have been exhausted."""

    def __init__(
        self,
        message: str,
        attempts: int,
        last_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.attempts = attempts
        self.last_exception = last_exception


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Total attempts, including the first call.
        base_delay: Delay before the second attempt, in seconds.
        max_delay: Upper bound for any single delay.
        backoff_multiplier: Growth factor between consecutive delays.
        jitter: Random jitter as a fraction of the delay (0 disables it).
        retryable_exceptions: Exception types that trigger a retry.
        non_retryable_exceptions: Exception types re-raised immediately.
        sleep: Function used to wait; replaced in tests.
    """
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    jitter: float = 0.0
    retryable_exceptions: ExceptionTypes = (Exception,)
    non_retryable_exceptions: ExceptionTypes = ()
    sleep: Callable[[float], None] = time.sleep

    @classmethod
    def from_settings(cls, settings=None, **overrides: Any) -> "RetryConfig":
        """Build a config from ResilienceSettings (defaults to the cached settings)."""
        if settings is None:
            from config.settings import get_settings
            settings = get_settings().resilience
        values = dict(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_initial_delay,
            max_delay=settings.retry_max_delay,
            backoff_multiplier=settings.retry_backoff_multiplier,
        )
        values.update(overrides)
        return cls(**values)

    def calculate_delay(self, attempt: int) -> float:
        """Delay after a failed attempt (1-indexed), capped at max_delay."""
        delay = self.base_delay * (self.backoff_multiplier ** (attempt - 1))
        delay = min(delay, self.max_delay)

        if self.jitter > 0:
            jitter_range = delay * self.jitter
            delay = max(0.0, delay + random.uniform(-jitter_range, jitter_range))

        return delay

    def should_retry(self, exception: Exception) -> bool:
        if self.non_retryable_exceptions:
            if isinstance(exception, self.non_retryable_exceptions):
                return False
        return isinstance(exception, self.retryable_exceptions)


def call_with_retry(
    func: Callable[..., T],
    *args: Any,
    config: Optional[RetryConfig] = None,
    operation: Optional[str] = None,
    **kwargs: Any,
) -> T:
    """Call func with retries.

    Args:
        func: Callable to invoke.
        config: Retry behavior; defaults to RetryConfig().
        operation: Name used in log messages (defaults to func's name).

    Returns:
        Whatever func returns on the first successful attempt.

    Raises:
        RetryExhausted: After the last attempt fails with a retryable error.
        Exception: Non-retryable errors are re-raised unchanged.
    """
    retry_config = config or RetryConfig()
    name = operation or getattr(func, "__name__", "operation")
    last_exception: Optional[Exception] = None

    for attempt in range(1, retry_config.max_attempts + 1):
        try:
            return func(*args, **kwargs)

        except Exception as e:
            last_exception = e

            if not retry_config.should_retry(e):
                logger.debug(f"Non-retryable exception in {name}: {e}")
                raise

            if attempt >= retry_config.max_attempts:
                logger.warning(f"Retry exhausted for {name} after {attempt} attempts: {e}")
                raise RetryExhausted(
                    f"{name} failed after {attempt} attempts: {e}",
                    attempts=attempt,
                    last_exception=e,
                ) from e

            delay = retry_config.calculate_delay(attempt)
            logger.warning(
                f"Retry {attempt}/{retry_config.max_attempts} for {name} in {delay:.2f}s: {e}"
            )
            retry_config.sleep(delay)

    raise RetryExhausted(
        f"{name} failed after {retry_config.max_attempts} attempts",
        attempts=retry_config.max_attempts,
        last_exception=last_exception,
    )


def sync_retry(
    config: Optional[RetryConfig] = None,
    **config_kwargs: Any,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator form of call_with_retry.

    Usage:
        @sync_retry(max_attempts=3, base_delay=0.5)
        def load_from_store():
            ...
    """
    retry_config = config or RetryConfig(**config_kwargs)

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            return call_with_retry(func, *args, config=retry_config, **kwargs)
        return wrapper
    return decorator
