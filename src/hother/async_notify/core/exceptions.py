"""
Cancellation errors raised at suspension points.
"""

from datetime import timedelta

from hother.async_notify.core.models import CancellationReason


class CancellationError(Exception):
    """
    Base exception for cancellation-related errors.

    Attributes:
        reason: The reason for cancellation
        message: Human-readable cancellation message
    """

    def __init__(self, reason: CancellationReason, message: str | None = None):
        self.reason = reason
        self.message = message or f"Operation cancelled: {reason.value}"
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r})"


class ManualCancellation(CancellationError):
    """Context cancelled explicitly via ``FutureContext.cancel``."""

    def __init__(self, message: str | None = None):
        super().__init__(CancellationReason.MANUAL, message or "Operation cancelled manually")


class DisposedCancellation(CancellationError):
    """Wait, channel operation or context ended because its Notify was disposed."""

    def __init__(self, message: str | None = None):
        super().__init__(CancellationReason.DISPOSED, message or "Notify.dispose() called")


class TimeoutCancellation(CancellationError):
    """Operation cancelled because its timeout elapsed."""

    def __init__(self, timeout: float | timedelta, message: str | None = None):
        if isinstance(timeout, timedelta):
            timeout = timeout.total_seconds()
        self.timeout_seconds = timeout
        super().__init__(
            CancellationReason.TIMEOUT,
            message or f"Operation timed out after {timeout}s",
        )

    @property
    def duration(self) -> timedelta:
        """The elapsed timeout as a timedelta."""
        return timedelta(seconds=self.timeout_seconds)

    def __repr__(self) -> str:
        return f"TimeoutCancellation(message={self.message!r}, timeout_seconds={self.timeout_seconds})"
