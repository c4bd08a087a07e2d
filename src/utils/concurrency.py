"""Shared concurrency primitives for rate-limited provider access.

Two patterns are exposed:

1. **RateLimitedQueue** -- a single-lane FIFO dispatcher enforcing a minimum
   spacing between outbound calls to one external provider.  Every provider
   client owns exactly one queue.

2. **throttled_gather** -- a drop-in replacement for ``asyncio.gather`` that
   wraps each awaitable in a semaphore acquire/release.  Used for fan-out
   work (e.g. resolving a batch of followed artists against Ticketmaster)
   where a handful of concurrent calls may queue up inside the provider.

# ─── WHY A QUEUE INSTEAD OF "sleep until last_call + interval"? ────────
#
# The naive throttle reads ``last_request_time``, sleeps, then writes it.
# Ten coroutines arriving together all read the SAME last_request_time,
# all sleep the same amount, and all fire at once.  RateLimitedQueue
# instead hands out slots from one pump task: each slot is computed from
# the PREVIOUS DISPATCH, never from the caller's own arrival time.
#
#   caller A ──schedule()──┐
#   caller B ──schedule()──┼──► [fut A, fut B, fut C] ──pump──► A, +Δ B, +Δ C
#   caller C ──schedule()──┘
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from src.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)

# Queue depth at which a warning is logged.  The queue is never capped.
_BACKLOG_WARNING_THRESHOLD = 50


class RateLimitedQueue:
    """FIFO dispatcher guaranteeing ``min_interval`` seconds between dispatches.

    Parameters
    ----------
    name:
        Provider name used in log records.
    min_interval:
        Minimum number of seconds between two consecutive dispatches.
    clock:
        Zero-argument callable returning the current time in seconds.
    sleep:
        Coroutine function used to wait; injectable for deterministic tests.

    Notes
    -----
    The queue is unbounded: under sustained overload callers simply wait
    longer.  Work is never dropped -- a caller that is cancelled while
    waiting is skipped without consuming a dispatch slot.
    """

    def __init__(
        self,
        name: str,
        min_interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if min_interval < 0:
            raise ValueError(f"min_interval must be >= 0, got {min_interval}")

        self.name = name
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep

        self._waiters: deque[asyncio.Future[None]] = deque()
        self._last_dispatch: float | None = None
        self._pumping = False
        self._pump_task: asyncio.Task | None = None
        self._dispatched = 0

    @property
    def pending(self) -> int:
        """Number of callers still waiting for a slot."""
        return len(self._waiters)

    @property
    def dispatched(self) -> int:
        """Total number of slots handed out since construction."""
        return self._dispatched

    async def schedule(self) -> None:
        """Wait for this caller's dispatch slot.

        Resumes no earlier than ``min_interval`` after the previous dispatch,
        in strict arrival order.
        """
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[None] = loop.create_future()
        self._waiters.append(waiter)

        if len(self._waiters) == _BACKLOG_WARNING_THRESHOLD:
            _logger.warning("rate_limit_backlog", provider=self.name, pending=len(self._waiters))

        if not self._pumping:
            self._pumping = True
            self._pump_task = loop.create_task(self._pump(), name=f"rate-limit:{self.name}")

        await waiter

    async def _pump(self) -> None:
        """Drain the queue, one dispatch per ``min_interval``."""
        try:
            while self._waiters:
                if self._last_dispatch is not None:
                    # Re-check after every sleep: the loop may wake a timer
                    # slightly before the clock reaches the target.
                    remaining = self._last_dispatch + self.min_interval - self._clock()
                    while remaining > 0:
                        await self._sleep(remaining)
                        remaining = self._last_dispatch + self.min_interval - self._clock()

                waiter = self._waiters.popleft()
                if waiter.done():
                    # Cancelled while queued; its slot goes to the next caller.
                    continue

                self._last_dispatch = self._clock()
                self._dispatched += 1
                waiter.set_result(None)
        finally:
            self._pumping = False


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently, at most ``semaphore`` slots at a time.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Semaphore bounding how many awaitables run simultaneously.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input coroutines.
    """

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)
