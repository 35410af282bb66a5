"""Retry decorator with exponential backoff for async read calls.

Example:
    from clustersync.infra.retry import on_status_code, retry

    @retry(on=on_status_code(429, 503), max_attempts=3)
    async def get_cluster(cluster_id):
        ...

Only idempotent calls should be decorated; mutating control-plane calls
are surfaced on first failure.
"""

from __future__ import annotations

import asyncio
import functools
import random
from collections.abc import Awaitable, Callable

from clustersync.observability.logger import logger

type RetryPredicate = Callable[[Exception], bool]


def retry[**P, T](
    on: type[Exception] | tuple[type[Exception], ...] | RetryPredicate = Exception,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    exponential_base: float = 2.0,
    max_delay: float = 30.0,
    jitter: bool = True,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Retry an async function while ``on`` matches the raised exception.

    Args:
        on: An exception class, a tuple of classes, or a predicate.
        max_attempts: Maximum number of attempts, including the first.
        base_delay: Delay before the first retry, in seconds.
        exponential_base: Multiplier applied per attempt.
        max_delay: Upper bound for a single delay.
        jitter: Add up to 10% random jitter to each delay.
    """
    if isinstance(on, type) and issubclass(on, Exception):
        should_retry: RetryPredicate = lambda e: isinstance(e, on)
    elif isinstance(on, tuple):
        should_retry = lambda e: isinstance(e, on)
    else:
        should_retry = on

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    attempt += 1
                    if attempt >= max_attempts or not should_retry(e):
                        raise

                    delay = min(base_delay * (exponential_base ** (attempt - 1)), max_delay)
                    if jitter:
                        delay += random.uniform(0, delay * 0.1)

                    logger.warning(
                        "Retry {attempt}/{max} of {fn} after {err}: {msg}. Waiting {delay:.1f}s...",
                        attempt=attempt, max=max_attempts - 1, fn=func.__name__,
                        err=type(e).__name__, msg=e, delay=delay,
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator


def on_status_code(*codes: int) -> RetryPredicate:
    """Retry when the exception exposes a ``status`` in ``codes``."""

    def predicate(e: Exception) -> bool:
        return getattr(e, "status", None) in codes

    return predicate
