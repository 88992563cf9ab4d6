"""
Stream utilities binding async iterators to a FutureContext.
"""

from collections.abc import AsyncIterable, AsyncIterator
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import anyio

from hother.async_notify.core.exceptions import CancellationError
from hother.async_notify.core.models import Outcome
from hother.async_notify.utils.logging import get_logger

if TYPE_CHECKING:
    from hother.async_notify.core.context import FutureContext

logger = get_logger(__name__)

T = TypeVar("T")

# Sent through the channel when the source is exhausted.
_END: Any = object()


class ContextStream(AsyncIterator[T], Generic[T]):
    """
    Async iterator that forwards a source only while its context is active.

    Each item is pulled from the source in a background task and handed over
    through a channel bound to the context. When the context is disposed the
    pending pull is cancelled, the source is closed and iteration stops.

    Leaving a plain ``async for`` early with ``break`` or an exception does not
    close the source. Use the stream as an async context manager, or call
    ``aclose()``, when the source holds resources.

    Example:
        async with FutureContext() as ctx:
            async with ctx.wrap_stream(fetch_items()) as stream:
                async for item in stream:
                    if done(item):
                        break
                    process(item)
    """

    def __init__(self, context: "FutureContext", source: AsyncIterable[T]):
        """
        Initialize the stream.

        Args:
            context: Context whose lifetime bounds the stream
            source: Async iterable to forward
        """
        self._context = context
        self._source = aiter(source)
        self._channel = context.make_channel()
        self._count = 0
        self._closed = False

    @property
    def item_count(self) -> int:
        """Number of items forwarded so far."""
        return self._count

    @property
    def is_closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> "ContextStream[T]":
        return self

    async def __anext__(self) -> T:
        if self._closed:
            raise StopAsyncIteration
        if not self._context.is_active:
            await self.aclose()
            raise StopAsyncIteration

        received: Any = None
        async with self._context._runner_scope(), anyio.create_task_group() as tg:
            tg.start_soon(self._pull)
            try:
                received = await self._channel.receive()
            except CancellationError:
                # context disposed while waiting for the source
                received = None
            tg.cancel_scope.cancel()

        if received is None or received is _END:
            await self.aclose()
            raise StopAsyncIteration
        if received.error is not None:
            await self.aclose()
            raise received.error

        self._count += 1
        return received.value

    async def _pull(self) -> None:
        try:
            item = await anext(self._source)
        except StopAsyncIteration:
            message: Any = _END
        except Exception as e:
            message = Outcome(error=e)
        else:
            message = Outcome(value=item)
        if not self._channel.is_closed:
            self._channel.send(message)

    async def aclose(self) -> None:
        """Stop forwarding and close the source."""
        if self._closed:
            return
        self._closed = True

        aclose = getattr(self._source, "aclose", None)
        if aclose is not None:
            await aclose()

        logger.debug(
            "Context stream closed",
            context_id=self._context.id,
            item_count=self._count,
        )

    async def __aenter__(self) -> "ContextStream[T]":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
