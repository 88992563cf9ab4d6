"""
Tests for FutureContext.wrap_stream.
"""

import anyio
import pytest

from hother.async_notify import ContextStream, FutureContext


class TestWrapStream:
    """Test stream bridging through a context."""

    @pytest.mark.anyio
    async def test_forwards_all_items(self):
        context = FutureContext()

        async def number_stream():
            for i in range(5):
                yield i
                await anyio.sleep(0.001)

        stream = context.wrap_stream(number_stream())
        assert isinstance(stream, ContextStream)

        items = [item async for item in stream]

        assert items == [0, 1, 2, 3, 4]
        assert stream.item_count == 5
        assert stream.is_closed
        assert context.is_active

    @pytest.mark.anyio
    async def test_stops_when_context_cancelled(self):
        context = FutureContext()
        source_closed = False

        async def infinite_stream():
            nonlocal source_closed
            i = 0
            try:
                while True:
                    await anyio.sleep(0.01)
                    yield i
                    i += 1
            finally:
                source_closed = True

        async def cancel_later():
            await anyio.sleep(0.1)
            context.cancel("stop streaming")

        items = []
        async with anyio.create_task_group() as tg:
            tg.start_soon(cancel_later)
            with anyio.fail_after(1.0):
                async for item in context.wrap_stream(infinite_stream()):
                    items.append(item)

        assert len(items) > 3
        assert source_closed

    @pytest.mark.anyio
    async def test_consumer_close_closes_source(self):
        context = FutureContext()
        source_closed = False

        async def number_stream():
            nonlocal source_closed
            try:
                for i in range(100):
                    yield i
            finally:
                source_closed = True

        async with context.wrap_stream(number_stream()) as stream:
            async for item in stream:
                if item == 2:
                    break

        assert source_closed
        assert stream.is_closed
        assert stream.item_count == 3

        # A closed stream stays exhausted
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()

    @pytest.mark.anyio
    async def test_break_leaves_source_open_until_aclose(self):
        context = FutureContext()
        source_closed = False

        async def number_stream():
            nonlocal source_closed
            try:
                for i in range(100):
                    yield i
            finally:
                source_closed = True

        stream = context.wrap_stream(number_stream())
        async for item in stream:
            if item == 1:
                break

        assert not source_closed
        assert not stream.is_closed

        await stream.aclose()

        assert source_closed
        assert stream.is_closed

    @pytest.mark.anyio
    async def test_source_error_reaches_consumer(self):
        context = FutureContext()

        async def broken_stream():
            yield 1
            raise ConnectionError("source failed")

        items = []
        with pytest.raises(ConnectionError, match="source failed"):
            async for item in context.wrap_stream(broken_stream()):
                items.append(item)

        assert items == [1]

    @pytest.mark.anyio
    async def test_inactive_context_yields_nothing(self):
        context = FutureContext()
        context.cancel("before start")

        async def number_stream():
            yield 1

        items = [item async for item in context.wrap_stream(number_stream())]

        assert items == []

    @pytest.mark.anyio
    async def test_plain_async_iterable_source(self):
        """Sources without ``aclose`` are accepted."""

        class Countdown:
            def __init__(self, start: int):
                self.current = start

            def __aiter__(self):
                return self

            async def __anext__(self):
                if self.current == 0:
                    raise StopAsyncIteration
                self.current -= 1
                return self.current + 1

        async with FutureContext() as context:
            items = [item async for item in context.wrap_stream(Countdown(3))]

        assert items == [3, 2, 1]
