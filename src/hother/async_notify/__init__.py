"""
Async Notify - cooperative cancellation for async Python

Broadcast wait/notify signals, FIFO channels bound to them, and a
hierarchical cancellation context that lets a tree of dependent async
operations be cancelled or timed out as a unit.
"""

import importlib.metadata

from .core.channel import NotifyChannel
from .core.context import FutureContext, current_context
from .core.exceptions import (
    CancellationError,
    DisposedCancellation,
    ManualCancellation,
    TimeoutCancellation,
)
from .core.models import CancellationReason, ContextInfo, ContextStatus, Outcome
from .core.notify import Notify
from .utils.logging import configure_logging, get_logger
from .utils.streams import ContextStream

try:
    __version__ = importlib.metadata.version("hother-async-notify")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0+dev"

__all__ = [
    # Models
    "CancellationReason",
    "ContextInfo",
    "ContextStatus",
    "Outcome",
    # Core
    "Notify",
    "NotifyChannel",
    "FutureContext",
    "current_context",
    # Exceptions
    "CancellationError",
    "DisposedCancellation",
    "ManualCancellation",
    "TimeoutCancellation",
    # Utilities
    "ContextStream",
    "configure_logging",
    "get_logger",
]
