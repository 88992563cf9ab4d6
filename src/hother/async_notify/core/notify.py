"""
Broadcast wait/notify signal with an explicit closed state.
"""

import math
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import timedelta
from enum import Enum

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from hother.async_notify.core.exceptions import DisposedCancellation
from hother.async_notify.utils.logging import get_logger

logger = get_logger(__name__)

DISPOSED_MESSAGE = "Notify.dispose() called"


class _Wake(Enum):
    NOTIFY = "notify"
    DISPOSE = "dispose"


# A wake is either a _Wake member or the integer key of a pending delay() timer.
Wake = _Wake | int


def to_seconds(duration: float | timedelta) -> float:
    """Normalise a duration given as seconds or timedelta."""
    if isinstance(duration, timedelta):
        return duration.total_seconds()
    return float(duration)


class Notify:
    """
    Provides the wait/notify pattern for async code.

    ``notify()`` wakes every task currently blocked in ``wait()`` at once. It
    is not buffered: a notify with nobody waiting is lost, exactly like a
    condition variable. Callers that need to hand over data should queue it
    somewhere first (see NotifyChannel) and use the wake only as a hint.

    Once ``dispose()`` has been called the signal is closed for good; pending
    and future waits raise DisposedCancellation.
    """

    def __init__(self) -> None:
        self._subscribers: set[MemoryObjectSendStream[Wake]] = set()
        self._closed = False
        # Disambiguates this signal's own delay() timers from other wakes.
        self._timer_key = 0

    @property
    def is_closed(self) -> bool:
        """True once dispose() has been called."""
        return self._closed

    @property
    def waiter_count(self) -> int:
        """Number of tasks currently subscribed to wakes."""
        return len(self._subscribers)

    def notify(self) -> None:
        """Wake every task currently waiting. No-op once closed."""
        if self._closed:
            return
        self._broadcast(_Wake.NOTIFY)

    def dispose(self) -> None:
        """
        Close the signal.

        Every task currently waiting is woken with a DisposedCancellation.
        Calling this more than once has no further effect.
        """
        if self._closed:
            return
        self._broadcast(_Wake.DISPOSE)
        self._closed = True
        for send_stream in list(self._subscribers):
            send_stream.close()
        self._subscribers.clear()
        logger.debug("Notify disposed", notify_id=id(self))

    async def wait(self, message: str = DISPOSED_MESSAGE) -> None:
        """
        Wait until the next notify().

        Args:
            message: Message for the cancellation raised if the signal closes

        Raises:
            DisposedCancellation: If the signal is or becomes closed
        """
        self._ensure_open(message)
        with self._subscribe() as wakes:
            async for wake in wakes:
                if wake is _Wake.DISPOSE:
                    break
                if wake is _Wake.NOTIFY:
                    return
        raise DisposedCancellation(message)

    async def delay(self, duration: float | timedelta, message: str = DISPOSED_MESSAGE) -> None:
        """
        Sleep for ``duration``, unless the signal is disposed first.

        Ordinary notify() calls do not shorten the delay.

        Args:
            duration: Delay in seconds or as timedelta
            message: Message for the cancellation raised if the signal closes

        Raises:
            ValueError: If the duration is negative
            DisposedCancellation: If the signal is or becomes closed
        """
        seconds = to_seconds(duration)
        if seconds < 0:
            raise ValueError(f"Delay must not be negative, got {seconds}")

        self._ensure_open(message)
        self._timer_key += 1
        key = self._timer_key

        expired = False
        with self._subscribe() as wakes:
            async with anyio.create_task_group() as tg:
                tg.start_soon(self._fire_timer, seconds, key)
                async for wake in wakes:
                    if wake is _Wake.DISPOSE:
                        break
                    if wake == key:
                        expired = True
                        break
                tg.cancel_scope.cancel()

        if not expired or self._closed:
            raise DisposedCancellation(message)

    async def _fire_timer(self, seconds: float, key: int) -> None:
        await anyio.sleep(seconds)
        if not self._closed:
            self._broadcast(key)

    def _broadcast(self, wake: Wake) -> None:
        for send_stream in list(self._subscribers):
            send_stream.send_nowait(wake)

    @contextmanager
    def _subscribe(self) -> Iterator[MemoryObjectReceiveStream[Wake]]:
        # Registration happens before the caller's first await, so any wake
        # issued after this point is delivered.
        send_stream, receive_stream = anyio.create_memory_object_stream[Wake](math.inf)
        self._subscribers.add(send_stream)
        try:
            yield receive_stream
        finally:
            self._subscribers.discard(send_stream)
            send_stream.close()
            receive_stream.close()

    def _ensure_open(self, message: str) -> None:
        if self._closed:
            raise DisposedCancellation(message)

    def __repr__(self) -> str:
        state = "closed" if self._closed else f"waiters={len(self._subscribers)}"
        return f"Notify({state})"
