"""Generic poll-until-predicate primitive.

Used for cluster phase waits and library convergence waits alike.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from clustersync.core.exceptions import ConvergenceTimeout, ReconciliationCancelled, TransportError
from clustersync.observability.logger import logger

log = logger.bind(component="poller")


def checkpoint(cancel: asyncio.Event | None) -> None:
    """Raise if the caller asked to stop."""
    if cancel is not None and cancel.is_set():
        raise ReconciliationCancelled()


def _log_transport_retry(state: RetryCallState) -> None:
    error = state.outcome.exception() if state.outcome else None
    log.warning(
        "Status check failed ({attempt}): {error}. Retrying",
        attempt=state.attempt_number, error=error,
    )


async def _fetch_once[T](
    fetch: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    wait: float,
    cancel: asyncio.Event | None,
) -> T:
    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(TransportError),
        stop=stop_after_attempt(attempts),
        wait=wait_fixed(wait),
        before_sleep=_log_transport_retry,
        reraise=True,
    ):
        with attempt:
            checkpoint(cancel)
            return await fetch()
    raise AssertionError("unreachable")


async def wait_until[T](
    fetch: Callable[[], Awaitable[T]],
    ready: Callable[[T], bool],
    *,
    failure: Callable[[T], Exception | None] | None = None,
    timeout: float = 300.0,
    interval: float = 5.0,
    backoff: float = 1.0,
    max_interval: float | None = None,
    description: str = "resource",
    transport_retries: int = 3,
    cancel: asyncio.Event | None = None,
    on_value: Callable[[T], None] | None = None,
) -> T:
    """Fetch until ``ready`` holds, ``failure`` reports an error, or time runs out.

    Args:
        fetch: Async producer of the current observed value.
        ready: Returns True once the value is the one we wait for.
        failure: Returns an exception for a terminal value, else None.
            Raised immediately, without further polling.
        timeout: Deadline in seconds, measured from the first fetch.
        interval: Pause before the second fetch, in seconds.
        backoff: Multiplier applied to the pause after every fetch.
        max_interval: Upper bound for the pause.
        description: What is being waited on, for logs and errors.
        transport_retries: Attempts per fetch when the transport fails.
            Any other exception from ``fetch`` propagates immediately.
        cancel: Checked before every fetch and after every pause.
        on_value: Called with every fetched value, e.g. to remember the last one.

    Returns:
        The first value that satisfies ``ready``.

    Raises:
        ConvergenceTimeout: The deadline passed; ``last`` holds the final value.
        ReconciliationCancelled: ``cancel`` was set.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    delay = interval
    polls = 0

    while True:
        checkpoint(cancel)
        value = await _fetch_once(fetch, attempts=transport_retries, wait=interval, cancel=cancel)
        polls += 1
        if on_value is not None:
            on_value(value)

        if ready(value):
            log.debug("{what} ready after {n} poll(s)", what=description, n=polls)
            return value

        if failure is not None and (error := failure(value)) is not None:
            raise error

        remaining = deadline - loop.time()
        if remaining <= 0:
            raise ConvergenceTimeout(description, timeout, last=value)

        log.trace("Waiting for {what}: {value}", what=description, value=value)
        await asyncio.sleep(min(delay, remaining))
        delay = delay * backoff
        if max_interval is not None:
            delay = min(delay, max_interval)
