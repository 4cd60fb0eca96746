"""Deadline- and cancellation-aware aggregation of a streamed model answer.

# ─── STATE MACHINE ─────────────────────────────────────────────────────
#
#   STREAMING --stream ends cleanly-------> DONE       full text, or the
#                                                      "no results" sentinel
#   STREAMING --stream raises-------------> ERROR      partial text dropped
#   STREAMING --cancel_event set----------> CANCELLED  partial text dropped
#   STREAMING --deadline passes-----------> TIMED_OUT  partial text kept
#
# The deadline starts when aggregate() is called.  The text buffer belongs
# to the aggregator alone; the stream only produces deltas.  Whatever the
# outcome, the pending read is cancelled and the stream is closed before
# returning, so the producer never outlives the aggregation.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator

import structlog

from tusk.models.retrieval import GenerationResult, GenerationState

logger = structlog.get_logger(logger_name=__name__)

NO_RESULTS_TEXT = "No results found."
TIMEOUT_TEXT = "The request timed out. Please try again."
CANCELLED_MESSAGE = "Request timed out"


async def _next_delta(iterator: AsyncIterator[str]) -> str:
    return await iterator.__anext__()


class StreamingAggregator:
    """Collects a streamed answer into one :class:`GenerationResult`.

    Parameters
    ----------
    timeout_seconds:
        Wall-clock budget for the whole stream (default 30).
    """

    def __init__(self, timeout_seconds: float = 30.0) -> None:
        if timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {timeout_seconds}")
        self._timeout = timeout_seconds

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    async def aggregate(
        self,
        stream: AsyncIterator[str],
        cancel_event: asyncio.Event | None = None,
    ) -> GenerationResult:
        """Consume *stream* until it ends, fails, is cancelled or times out."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout
        iterator = stream.__aiter__()
        buffer: list[str] = []

        cancel_waiter: asyncio.Task[bool] | None = None
        if cancel_event is not None:
            cancel_waiter = asyncio.create_task(cancel_event.wait())
        pending: asyncio.Task[str] | None = None

        try:
            while True:
                if cancel_event is not None and cancel_event.is_set():
                    return self._finish(GenerationState.CANCELLED, buffer)

                remaining = deadline - loop.time()
                if remaining <= 0:
                    return self._finish(GenerationState.TIMED_OUT, buffer)

                pending = asyncio.create_task(_next_delta(iterator))
                waiters: set[asyncio.Future] = {pending}
                if cancel_waiter is not None:
                    waiters.add(cancel_waiter)

                done, _ = await asyncio.wait(
                    waiters, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
                )

                if cancel_waiter is not None and cancel_waiter in done:
                    return self._finish(GenerationState.CANCELLED, buffer)
                if pending not in done:
                    return self._finish(GenerationState.TIMED_OUT, buffer)

                finished, pending = pending, None
                try:
                    delta = finished.result()
                except StopAsyncIteration:
                    return self._finish(GenerationState.DONE, buffer)
                except Exception as exc:
                    return self._finish(GenerationState.ERROR, buffer, error=exc)
                buffer.append(delta)
        finally:
            await self._cleanup(iterator, pending, cancel_waiter)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _finish(
        self,
        state: GenerationState,
        buffer: list[str],
        error: BaseException | None = None,
    ) -> GenerationResult:
        text = "".join(buffer)
        received = bool(text)

        if state is GenerationState.DONE:
            result = GenerationResult(
                state=state,
                text=text if received else NO_RESULTS_TEXT,
                received_output=received,
            )
        elif state is GenerationState.TIMED_OUT:
            result = GenerationResult(
                state=state,
                text=text if received else TIMEOUT_TEXT,
                error=f"request timed out after {self._timeout:g} seconds",
                received_output=received,
            )
        elif state is GenerationState.CANCELLED:
            result = GenerationResult(state=state, error=CANCELLED_MESSAGE)
        else:
            result = GenerationResult(state=state, error=str(error))

        log = logger.warning if state is GenerationState.ERROR else logger.info
        log(
            "generation_aggregated",
            state=state.value,
            chars_received=len(text),
            error=result.error,
        )
        return result

    @staticmethod
    async def _cleanup(
        iterator: AsyncIterator[str],
        pending: asyncio.Task[str] | None,
        cancel_waiter: asyncio.Task[bool] | None,
    ) -> None:
        for task in (pending, cancel_waiter):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except (asyncio.CancelledError, StopAsyncIteration):
                    pass
                except Exception as exc:
                    logger.debug("generation_stream_error_after_close", error=str(exc))

        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            try:
                await aclose()
            except Exception as exc:
                logger.warning("generation_stream_close_failed", error=str(exc))
