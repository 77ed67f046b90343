"""Single-flight FIFO request queue with a minimum dispatch interval and 429 backoff."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from inbox_triage.core.exceptions import RateLimitError

logger = logging.getLogger(__name__)

Operation = Callable[[], Awaitable[Any]]


def _default_is_rate_limited(exc: Exception) -> bool:
    return isinstance(exc, RateLimitError)


def _default_retry_after(exc: Exception) -> Any:
    return getattr(exc, "retry_after", None)


def parse_retry_after(value: Any, max_seconds: float) -> float | None:
    """Validate a server-supplied Retry-After hint.

    Args:
        value: Raw hint, usually the Retry-After header string (seconds).
        max_seconds: Upper bound applied to valid hints.

    Returns:
        The hint in seconds clamped to ``max_seconds``, or None if the value
        is missing, non-numeric or negative.
    """
    if value is None or value == "":
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    if seconds != seconds or seconds < 0:  # NaN or negative
        return None
    return min(seconds, max_seconds)


@dataclass
class QueuedOperation:
    """A pending call together with the future its caller awaits."""

    operation: Operation
    future: asyncio.Future[Any]
    retry_count: int = 0


class RateLimitedQueue:
    """Serialize calls against one external API.

    Operations run strictly one at a time, in FIFO order, with at least
    ``min_interval`` seconds between consecutive dispatches. A call that fails
    with a rate-limit signal is retried with exponential backoff (or the
    server's Retry-After hint) and reinserted at the front of the queue, so it
    runs again before anything enqueued after it.
    """

    def __init__(
        self,
        name: str,
        *,
        min_interval: float,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        max_retry_after: float = 60.0,
        is_rate_limited: Callable[[Exception], bool] = _default_is_rate_limited,
        retry_after: Callable[[Exception], Any] = _default_retry_after,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._name = name
        self._min_interval = min_interval
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._max_retry_after = max_retry_after
        self._is_rate_limited = is_rate_limited
        self._retry_after = retry_after
        self._clock = clock
        self._sleep = sleep

        self._queue: deque[QueuedOperation] = deque()
        self._processing = False
        self._last_dispatch: float | None = None
        self._drain_task: asyncio.Task[None] | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_processing(self) -> bool:
        return self._processing

    def __len__(self) -> int:
        return len(self._queue)

    async def enqueue(self, operation: Operation) -> Any:
        """Append an operation and wait for its final outcome.

        Args:
            operation: Zero-argument callable returning an awaitable.

        Returns:
            Whatever the operation's awaitable resolves to.

        Raises:
            Exception: The operation's own exception, once retries (if any)
                are exhausted.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        self._queue.append(QueuedOperation(operation=operation, future=future))
        self._start_draining()
        return await future

    def _start_draining(self) -> None:
        if self._processing:
            return
        self._processing = True
        self._drain_task = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        try:
            while self._queue:
                item = self._queue.popleft()
                if item.future.done():
                    # Caller went away (cancelled) before dispatch
                    continue
                await self._wait_for_slot()
                await self._dispatch(item)
        finally:
            self._processing = False
            self._drain_task = None

    async def _wait_for_slot(self) -> None:
        if self._last_dispatch is None:
            return
        wait = max(0.0, self._last_dispatch + self._min_interval - self._clock())
        if wait > 0:
            await self._sleep(wait)

    async def _dispatch(self, item: QueuedOperation) -> None:
        self._last_dispatch = self._clock()
        logger.debug(
            "[%s] dispatching operation (attempt %d, %d queued)",
            self._name, item.retry_count + 1, len(self._queue),
        )
        try:
            result = await item.operation()
        except Exception as e:
            if self._is_rate_limited(e) and item.retry_count < self._max_retries:
                delay = self._backoff_delay(item.retry_count, e)
                logger.warning(
                    "[%s] rate limited (attempt %d/%d), retrying in %.2fs",
                    self._name, item.retry_count + 1, self._max_retries + 1, delay,
                )
                await self._sleep(delay)
                item.retry_count += 1
                self._queue.appendleft(item)
                return
            if not item.future.done():
                item.future.set_exception(e)
            return

        if not item.future.done():
            item.future.set_result(result)

    def _backoff_delay(self, retry_count: int, exc: Exception) -> float:
        """Server hint if valid, otherwise capped exponential backoff."""
        hint = parse_retry_after(self._retry_after(exc), self._max_retry_after)
        if hint is not None:
            return hint
        return min(self._base_delay * (2 ** retry_count), self._max_delay)
