"""
Hierarchical cancellation context for cooperative async work.
"""

import contextvars
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Optional, TypeVar

import anyio
from anyio.abc import TaskGroup

from hother.async_notify.core.channel import NotifyChannel
from hother.async_notify.core.exceptions import (
    CancellationError,
    DisposedCancellation,
    ManualCancellation,
    TimeoutCancellation,
)
from hother.async_notify.core.models import CancellationReason, ContextInfo, ContextStatus, Outcome
from hother.async_notify.core.notify import Notify, to_seconds
from hother.async_notify.utils.logging import get_logger

if TYPE_CHECKING:
    from hother.async_notify.utils.streams import ContextStream

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")

DISPOSE_MESSAGE = "FutureContext.dispose()"
TIMEOUT_MESSAGE = "with_timeout.timeout"

SuspendBlock = Callable[["FutureContext"], Awaitable[R]]

# Context variable for the context whose block is currently running
_current_context: contextvars.ContextVar[Optional["FutureContext"]] = contextvars.ContextVar("current_context", default=None)


class FutureContext:
    """
    Cancellation handle for a tree of dependent async operations.

    Work is expressed as a sequence of ``suspend()`` calls. Each call checks
    the context (and its ancestors) before and after running its block, so a
    cancellation is noticed at the next suspend boundary. A block that has
    already started is never interrupted by the context itself.

    A context can be used bare, or as ``async with FutureContext() as ctx:``
    which gives it a task group for background work. Blocks abandoned by a
    cancelled caller then keep running to completion in the background. A
    bare context lends each ``suspend`` call its own task group, which waits
    for the block before the call returns.

    The context must be disposed when finished; ``async with`` does it on exit.
    """

    def __init__(self, name: str | None = None, parent: Optional["FutureContext"] = None):
        """
        Initialize a new context.

        Args:
            name: Human-readable context name
            parent: Parent context whose cancellation this context observes
        """
        self.info = ContextInfo(name=name, parent_id=parent.id if parent else None)
        self._parent = parent
        self._notify = Notify()
        self._error: CancellationError | None = None
        self._done = False
        self._runner: TaskGroup | None = None
        self._context_token: contextvars.Token | None = None

        logger.debug("FutureContext created", **self.info.log_context())

    # State
    @property
    def id(self) -> str:
        return self.info.id

    @property
    def name(self) -> str | None:
        return self.info.name

    @property
    def parent(self) -> Optional["FutureContext"]:
        return self._parent

    @property
    def error(self) -> CancellationError | None:
        """The recorded cancellation, if any. Never cleared once set."""
        return self._error

    @property
    def done(self) -> bool:
        return self._done

    @property
    def is_active(self) -> bool:
        """True while the context is neither done, cancelled nor disposed."""
        return not self._done and self._error is None and not self._notify.is_closed

    @property
    def is_canceled(self) -> bool:
        """True once a cancellation (including a timeout) has been recorded."""
        return isinstance(self._error, CancellationError)

    @property
    def is_disposed(self) -> bool:
        return self._notify.is_closed

    # Cancellation
    def cancel(self, message: str) -> None:
        """
        Cancel the context. Does nothing if it is already cancelled.

        The error is recorded at once and the status becomes CANCELLING. The
        dispose that wakes waiting tasks runs on a later scheduler turn: on the
        context's task group when it has one, otherwise at its next
        suspension point.

        Args:
            message: Cancellation message
        """
        self._cancel(ManualCancellation(message))

    def _cancel(self, error: CancellationError) -> None:
        if self._error is not None:
            return
        self._error = error
        self.info.cancel_reason = error.reason
        self.info.cancel_message = error.message
        self.info.update_status(ContextStatus.CANCELLING)

        logger.info(
            "FutureContext cancelled",
            **self.info.log_context(),
            cancel_message=error.message,
        )

        runner = self._find_runner()
        if runner is not None:
            runner.start_soon(self._dispose_soon)
        # Without a runner the dispose happens at the next suspension point.

    async def _dispose_soon(self) -> None:
        self.dispose()

    def dispose(self) -> None:
        """
        Close the context's Notify, waking every task waiting on it.

        A context disposed without a prior cancellation records a
        DisposedCancellation. Calling this more than once has no further effect.
        """
        if self._notify.is_closed:
            return
        self._notify.dispose()

        if self._error is None:
            self._error = DisposedCancellation(DISPOSE_MESSAGE)
            self.info.cancel_reason = CancellationReason.DISPOSED
            self.info.cancel_message = DISPOSE_MESSAGE

        if isinstance(self._error, TimeoutCancellation):
            status = ContextStatus.TIMED_OUT
        elif self._error.reason == CancellationReason.DISPOSED:
            status = ContextStatus.DISPOSED
        else:
            status = ContextStatus.CANCELLED
        self.info.update_status(status)

        logger.debug("FutureContext disposed", **self.info.log_context())

    # Building blocks
    def make_channel(self) -> NotifyChannel[Any]:
        """
        Create a channel bound to this context.

        The channel is closed exactly when this context is disposed.
        """
        return NotifyChannel(self._notify)

    async def delayed(self, duration: float | timedelta) -> None:
        """
        Sleep for ``duration``, stopping early if this context is disposed.

        Args:
            duration: Delay in seconds or as timedelta

        Raises:
            CancellationError: If this context or an ancestor is cancelled
        """
        self._resume()
        error: Exception | None = None
        async with self._runner_scope():
            try:
                await self._notify.delay(duration)
            except Exception as e:
                error = e
        if error is not None:
            if isinstance(error, DisposedCancellation):
                self._resume()
            raise error
        self._resume()

    async def suspend(self, block: SuspendBlock[R]) -> R:
        """
        Run one uninterruptible block of work.

        The context is checked before the block starts and after it returns.
        If the context is cancelled while the block runs, the caller receives
        the context's own error, whatever the block itself ends up returning
        or raising. The block is never interrupted: under ``async with`` the
        caller is woken right away and the block finishes in the background,
        on a bare context the call returns once the block has finished.

        Args:
            block: Async callable receiving this context

        Returns:
            The block's return value

        Raises:
            CancellationError: If this context or an ancestor is cancelled
            Exception: Whatever the block raised, when the context is still fine
        """
        self._resume()
        channel: NotifyChannel[Outcome[R]] = self.make_channel()

        # A task group lent for this call is joined on exit, so the block always
        # runs to completion even when the caller is woken early.
        async with self._runner_scope() as runner:
            runner.start_soon(self._run_block, block, channel)
            outcome = await self._receive_outcome(channel)

        if outcome.error is not None:
            if self._error is not None:
                self._settle()
                raise self._error.with_traceback(None)
            raise outcome.error
        self._resume()
        return outcome.value  # type: ignore[return-value]

    async def _run_block(self, block: SuspendBlock[R], channel: NotifyChannel[Outcome[R]]) -> None:
        _current_context.set(self)
        try:
            value = await block(self)
        except Exception as e:
            outcome: Outcome[R] = Outcome(error=e)
        else:
            outcome = Outcome(value=value)
        if not channel.is_closed:
            channel.send(outcome)

    @staticmethod
    async def _receive_outcome(channel: NotifyChannel[Outcome[R]]) -> Outcome[R]:
        try:
            return await channel.receive()
        except CancellationError as e:
            return Outcome(error=e)

    async def with_timeout(self, timeout: float | timedelta, block: SuspendBlock[R]) -> R:
        """
        Run ``block`` in a child context that is cancelled after ``timeout``.

        The child is disposed on every exit path, which also stops its timer.

        Args:
            timeout: Timeout in seconds or as timedelta
            block: Async callable receiving the child context

        Returns:
            The block's return value

        Raises:
            TimeoutCancellation: If the timeout elapsed first
            CancellationError: If this context or an ancestor is cancelled
        """
        seconds = to_seconds(timeout)
        if seconds <= 0:
            raise ValueError(f"Timeout must be positive, got {seconds}")

        child = FutureContext(name=f"{self.name or 'context'}.with_timeout", parent=self)
        value: R | None = None
        error: BaseException | None = None

        # Errors are kept out of the task group so callers never see an ExceptionGroup.
        async with anyio.create_task_group() as tg:
            borrowed = child._find_runner() is None
            if borrowed:
                child._runner = tg
            tg.start_soon(child._expire_after, seconds)
            try:
                value = await child.suspend(block)
            except Exception as e:
                error = e
            finally:
                if borrowed:
                    child._runner = None
                child.dispose()
                tg.cancel_scope.cancel()

        if error is not None:
            raise error
        return value  # type: ignore[return-value]

    async def _expire_after(self, seconds: float) -> None:
        try:
            await self.delayed(seconds)
        except CancellationError:
            # finished or cancelled before the deadline
            return
        if self.is_active:
            logger.info("FutureContext timed out", **self.info.log_context(), timeout_seconds=seconds)
            self._cancel(TimeoutCancellation(seconds, TIMEOUT_MESSAGE))

    def wrap_stream(self, source: AsyncIterable[T]) -> "ContextStream[T]":
        """
        Re-emit ``source`` for as long as this context stays active.

        Args:
            source: Async iterable to forward

        Returns:
            An async iterator that stops when the source ends, when the
            context becomes inactive, or when it is closed by the consumer
        """
        from hother.async_notify.utils.streams import ContextStream

        return ContextStream(self, source)

    def _resume(self) -> None:
        """Raise the first cancellation recorded on an ancestor or on this context."""
        if self._parent is not None:
            self._parent._resume()
        if self._error is not None:
            self._settle()
            raise self._error.with_traceback(None)

    def _settle(self) -> None:
        """Apply a dispose left pending by a cancel made without a runner."""
        if not self._notify.is_closed:
            self.dispose()

    def _find_runner(self) -> TaskGroup | None:
        context: FutureContext | None = self
        while context is not None:
            if context._runner is not None:
                return context._runner
            context = context._parent
        return None

    @asynccontextmanager
    async def _runner_scope(self) -> AsyncIterator[TaskGroup]:
        """Yield the nearest runner, lending a call-scoped task group if there is none."""
        runner = self._find_runner()
        if runner is not None:
            yield runner
            return
        async with anyio.create_task_group() as tg:
            self._runner = tg
            try:
                yield tg
            finally:
                if self._runner is tg:
                    self._runner = None

    # Context manager
    async def __aenter__(self) -> "FutureContext":
        """Start the context's task group and make it the current context."""
        if self._runner is not None:
            raise RuntimeError("FutureContext is already running")
        runner = anyio.create_task_group()
        await runner.__aenter__()
        self._runner = runner
        self._context_token = _current_context.set(self)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        """Dispose the context and tear down background work still attached to it."""
        self._done = True
        self.dispose()

        runner = self._runner
        self._runner = None
        try:
            if runner is not None:
                runner.cancel_scope.cancel()
                # The body's own exception is not handed to the task group so it
                # propagates unchanged instead of inside an ExceptionGroup.
                await runner.__aexit__(None, None, None)
        finally:
            if self._context_token is not None:
                _current_context.reset(self._context_token)
                self._context_token = None

        logger.debug(
            "Exited FutureContext",
            **self.info.log_context(),
            exc_type=exc_type.__name__ if exc_type else None,
        )
        return False

    def __str__(self) -> str:
        if self._error is not None:
            return f"FutureContext(id={self.id[:8]}, {self.info.status.value})"
        return f"FutureContext(id={self.id[:8]}, active)"

    def __repr__(self) -> str:
        return (
            f"FutureContext(id='{self.id}', name={self.name!r}, status={self.info.status.value}, "
            f"error={self._error!r})"
        )


def current_context() -> FutureContext | None:
    """Get the FutureContext whose block or ``async with`` body is running."""
    return _current_context.get()
