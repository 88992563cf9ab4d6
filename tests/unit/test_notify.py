"""
Tests for the Notify broadcast signal.
"""

from datetime import timedelta

import anyio
import pytest

from hother.async_notify import CancellationReason, DisposedCancellation, Notify


class TestNotifyWait:
    """Test wait/notify behaviour."""

    @pytest.mark.anyio
    async def test_wait_returns_after_notify(self):
        """A pending wait completes once notify fires."""
        notify = Notify()

        async def notify_later():
            await anyio.sleep(0.05)
            notify.notify()

        async with anyio.create_task_group() as tg:
            tg.start_soon(notify_later)
            with anyio.fail_after(1.0):
                await notify.wait()

        notify.dispose()

    @pytest.mark.anyio
    async def test_notify_wakes_all_waiters(self):
        """One notify wakes every task currently waiting."""
        notify = Notify()
        woken = []

        async def waiter(index: int):
            await notify.wait()
            woken.append(index)

        async with anyio.create_task_group() as tg:
            for i in range(3):
                tg.start_soon(waiter, i)
            await anyio.sleep(0.01)
            assert notify.waiter_count == 3

            notify.notify()

        assert sorted(woken) == [0, 1, 2]
        assert notify.waiter_count == 0

    @pytest.mark.anyio
    async def test_notify_without_waiter_is_lost(self):
        """A notify issued before anyone waits is not replayed."""
        notify = Notify()
        notify.notify()

        with anyio.move_on_after(0.05) as scope:
            await notify.wait()

        assert scope.cancelled_caught

    @pytest.mark.anyio
    async def test_wait_on_closed_notify_fails_immediately(self):
        """Waiting on a disposed signal raises right away."""
        notify = Notify()
        notify.dispose()

        with pytest.raises(DisposedCancellation) as exc_info:
            await notify.wait(message="closed already")

        assert exc_info.value.message == "closed already"
        assert exc_info.value.reason == CancellationReason.DISPOSED

    @pytest.mark.anyio
    async def test_dispose_fails_pending_wait(self):
        """Disposing wakes a pending waiter with a cancellation."""
        notify = Notify()
        errors = []

        async def waiter():
            try:
                await notify.wait(message="waiter gave up")
            except DisposedCancellation as e:
                errors.append(e)

        async with anyio.create_task_group() as tg:
            tg.start_soon(waiter)
            await anyio.sleep(0.01)
            notify.dispose()

        assert len(errors) == 1
        assert errors[0].message == "waiter gave up"


class TestNotifyDelay:
    """Test Notify.delay."""

    @pytest.mark.anyio
    async def test_delay_sleeps(self):
        """Delay returns after roughly the requested time."""
        notify = Notify()
        start = anyio.current_time()

        await notify.delay(0.05)

        assert anyio.current_time() - start >= 0.04

    @pytest.mark.anyio
    async def test_delay_accepts_timedelta(self):
        notify = Notify()
        start = anyio.current_time()

        await notify.delay(timedelta(milliseconds=50))

        assert anyio.current_time() - start >= 0.04

    @pytest.mark.anyio
    async def test_notify_does_not_shorten_delay(self):
        """Ordinary notifications are ignored by a delay."""
        notify = Notify()

        async def notify_repeatedly():
            for _ in range(5):
                await anyio.sleep(0.02)
                notify.notify()

        start = anyio.current_time()
        async with anyio.create_task_group() as tg:
            tg.start_soon(notify_repeatedly)
            await notify.delay(0.2)

        assert anyio.current_time() - start >= 0.18

    @pytest.mark.anyio
    async def test_concurrent_delays_use_their_own_timers(self):
        """A short delay expiring does not end a longer one on the same signal."""
        notify = Notify()
        finished = {}

        async def sleeper(name: str, seconds: float):
            start = anyio.current_time()
            await notify.delay(seconds)
            finished[name] = anyio.current_time() - start

        async with anyio.create_task_group() as tg:
            tg.start_soon(sleeper, "short", 0.02)
            tg.start_soon(sleeper, "long", 0.15)

        assert finished["short"] < 0.1
        assert finished["long"] >= 0.13

    @pytest.mark.anyio
    async def test_dispose_interrupts_delay(self):
        """Disposing fails a running delay promptly."""
        notify = Notify()
        errors = []

        async def sleeper():
            try:
                await notify.delay(5.0)
            except DisposedCancellation as e:
                errors.append(e)

        start = anyio.current_time()
        async with anyio.create_task_group() as tg:
            tg.start_soon(sleeper)
            await anyio.sleep(0.05)
            notify.dispose()

        assert len(errors) == 1
        assert anyio.current_time() - start < 1.0

    @pytest.mark.anyio
    async def test_delay_on_closed_notify_fails_immediately(self):
        notify = Notify()
        notify.dispose()

        with pytest.raises(DisposedCancellation):
            await notify.delay(1.0)

    @pytest.mark.anyio
    async def test_negative_delay_rejected(self):
        notify = Notify()

        with pytest.raises(ValueError):
            await notify.delay(-1)


class TestNotifyDispose:
    """Test dispose semantics."""

    def test_dispose_closes_permanently(self):
        notify = Notify()
        assert not notify.is_closed

        notify.dispose()
        assert notify.is_closed

        notify.notify()
        assert notify.is_closed

    def test_dispose_is_idempotent(self):
        notify = Notify()
        notify.dispose()
        notify.dispose()

        assert notify.is_closed
        assert notify.waiter_count == 0
        assert "closed" in repr(notify)
