"""Shared concurrency primitives for the ingestion pipeline.

Two helpers are exposed:

1. **throttled_gather** -- ``asyncio.gather`` over coroutine factories, each
   called only once a semaphore slot is free, so at most N run at once no
   matter how many are submitted.

2. **retry_with_linear_backoff** -- call an async function until it succeeds
   or the attempt ceiling is reached, sleeping ``attempt * step`` seconds
   between attempts.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

import structlog

from tusk.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


async def throttled_gather(
    factories: list[Callable[[], Awaitable[_T]]],
    semaphore: asyncio.Semaphore,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run coroutine factories concurrently under *semaphore*.

    A factory is only called after its slot is acquired, so a gather that
    is cancelled early leaves no created-but-never-awaited coroutines.

    Parameters
    ----------
    factories:
        Zero-argument callables returning the awaitables to execute.
    semaphore:
        Semaphore bounding how many awaitables are in flight.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input factories.
    """

    async def _wrapped(factory: Callable[[], Awaitable[_T]]) -> _T:
        async with semaphore:
            return await factory()

    tasks = [_wrapped(f) for f in factories]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


async def retry_with_linear_backoff(
    fn: Callable[[], Awaitable[_T]],
    max_attempts: int = 3,
    step_seconds: float = 0.1,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    logger: structlog.BoundLogger | None = None,
    **log_context: object,
) -> tuple[_T, int]:
    """Await ``fn()`` until it succeeds, at most *max_attempts* times.

    Before attempt ``n`` (zero-based) the call sleeps ``n * step_seconds``,
    so the first attempt is immediate and delays grow linearly.

    Returns
    -------
    tuple[_T, int]
        The successful result and the number of attempts it took.

    Raises
    ------
    BaseException
        The exception from the final attempt once the ceiling is reached.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
    if logger is None:
        logger = _logger

    attempt = 0
    while True:
        try:
            return await fn(), attempt + 1
        except retry_on as exc:
            attempt += 1
            logger.warning(
                "retry_attempt_failed",
                attempt=attempt,
                max_attempts=max_attempts,
                error=str(exc),
                **log_context,
            )
            if attempt >= max_attempts:
                raise
        await asyncio.sleep(attempt * step_seconds)
