"""
FIFO channel whose lifetime is bound to a Notify.
"""

from collections import deque
from typing import Generic, TypeVar

from hother.async_notify.core.exceptions import DisposedCancellation
from hother.async_notify.core.notify import Notify

T = TypeVar("T")

CLOSED_MESSAGE = "Channel is closed."


class NotifyChannel(Generic[T]):
    """
    Unbounded FIFO queue that uses a shared Notify for wake-ups.

    The channel does not own its Notify: it is closed exactly when that
    Notify is disposed, and it never disposes it itself.

    Example:
        channel = NotifyChannel[int](Notify())
        channel.send(1)
        assert await channel.receive() == 1
    """

    def __init__(self, notify: Notify):
        self._notify = notify
        self._queue: deque[T] = deque()

    @property
    def is_closed(self) -> bool:
        return self._notify.is_closed

    @property
    def is_empty(self) -> bool:
        return not self._queue

    @property
    def is_not_empty(self) -> bool:
        return bool(self._queue)

    @property
    def pending_item_count(self) -> int:
        """Number of values sent but not yet received."""
        return len(self._queue)

    def __len__(self) -> int:
        return len(self._queue)

    def send(self, value: T, message: str = CLOSED_MESSAGE) -> None:
        """
        Queue a value and wake any task blocked in receive().

        Args:
            value: Value to send
            message: Message for the cancellation raised if the channel is closed

        Raises:
            DisposedCancellation: If the backing Notify is closed
        """
        if self._notify.is_closed:
            raise DisposedCancellation(message)
        self._queue.append(value)
        self._notify.notify()

    async def receive(self, message: str = CLOSED_MESSAGE) -> T:
        """
        Take the oldest value, waiting for one if the queue is empty.

        Several receivers may share a channel; each re-checks the queue after
        a wake-up rather than assuming the value is theirs.

        Args:
            message: Message for the cancellation raised if the channel closes

        Raises:
            DisposedCancellation: If the backing Notify is or becomes closed
        """
        while not self._notify.is_closed:
            if self._queue:
                return self._queue.popleft()
            await self._notify.wait(message=message)
        raise DisposedCancellation(message)

    def __repr__(self) -> str:
        return f"NotifyChannel(pending={len(self._queue)}, closed={self.is_closed})"
