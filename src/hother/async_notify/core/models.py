"""
Data models for the async notify library.
"""

import uuid
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any, Generic, NamedTuple, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ContextStatus(str, Enum):
    """Lifecycle states of a FutureContext."""

    ACTIVE = "active"
    CANCELLING = "cancelling"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    DISPOSED = "disposed"


class CancellationReason(str, Enum):
    """Reason a wait, channel or context was cancelled."""

    MANUAL = "manual"
    TIMEOUT = "timeout"
    DISPOSED = "disposed"


class ContextInfo(BaseModel):
    """
    Metadata describing a FutureContext.

    Attributes:
        id: Unique context identifier
        name: Human-readable context name
        parent_id: ID of the parent context, if any
        status: Current lifecycle status
        cancel_reason: Reason for cancellation once cancelled
        cancel_message: Message recorded with the cancellation
        created_at: When the context was created
        cancelled_at: When cancellation was requested
        disposed_at: When the context was disposed
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str | None = None
    parent_id: str | None = None
    status: ContextStatus = ContextStatus.ACTIVE
    cancel_reason: CancellationReason | None = None
    cancel_message: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    cancelled_at: datetime | None = None
    disposed_at: datetime | None = None

    @property
    def duration(self) -> timedelta | None:
        """Time between creation and disposal, None while still alive."""
        if self.disposed_at is None:
            return None
        return self.disposed_at - self.created_at

    @property
    def is_cancelled(self) -> bool:
        """True once a cancellation reason has been recorded."""
        return self.cancel_reason is not None

    def update_status(self, status: ContextStatus) -> None:
        """
        Move to a new status, stamping the relevant timestamps.

        Args:
            status: The new status
        """
        now = datetime.now(UTC)
        if status == ContextStatus.CANCELLING and self.cancelled_at is None:
            self.cancelled_at = now
        elif status in (ContextStatus.CANCELLED, ContextStatus.TIMED_OUT, ContextStatus.DISPOSED):
            if self.disposed_at is None:
                self.disposed_at = now
        self.status = status

    def log_context(self) -> dict[str, Any]:
        """Fields to attach to structured log records."""
        ctx: dict[str, Any] = {
            "context_id": self.id,
            "context_name": self.name,
            "status": self.status.value,
        }
        if self.parent_id:
            ctx["parent_id"] = self.parent_id
        if self.cancel_reason:
            ctx["cancel_reason"] = self.cancel_reason.value
        return ctx


class Outcome(NamedTuple, Generic[T]):
    """Result of a background block: a value or the error it raised."""

    value: T | None = None
    error: BaseException | None = None
