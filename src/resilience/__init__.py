"""Resilience patterns for calls to external stores.

Provides retry logic with exponential backoff so that store and assistant
calls complete or fail within a bounded time.
"""

from .retry import (
    call_with_retry,
    sync_retry,
    RetryConfig,
    RetryExhausted,
)

__all__ = [
    "call_with_retry",
    "sync_retry",
    "RetryConfig",
    "RetryExhausted",
]
