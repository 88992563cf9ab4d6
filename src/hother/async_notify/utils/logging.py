"""
Logging utilities for the async notify library.
"""

import logging
import sys
from typing import Any, Optional

import structlog


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger backed by a standard library logger.

    Keyword arguments passed to the log methods are rendered by structlog,
    while levels and handlers come from the stdlib logging tree.

    Args:
        name: Logger name. If None, uses the calling module's name

    Returns:
        A structlog BoundLogger wrapping ``logging.getLogger(name)``
    """
    if name is None:
        import inspect
        frame = inspect.currentframe()
        if frame and frame.f_back:
            name = frame.f_back.f_globals.get('__name__', 'async_notify')
        else:
            name = 'async_notify'

    return structlog.wrap_logger(
        logging.getLogger(name),
        wrapper_class=structlog.stdlib.BoundLogger,
    )


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = False,
    dev_mode: bool = True
) -> None:
    """
    Configure structlog and standard library logging for the library.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_output: Whether to output JSON format
        dev_mode: Whether to use dev-friendly console output
    """
    shared_processors: list[Any] = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
        structlog.processors.StackInfoRenderer(),
    ]

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if json_output:
        # JSON format for production
        renderer: Any = structlog.processors.JSONRenderer()
    elif dev_mode:
        # Human-readable format for development
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.KeyValueRenderer(key_order=["level", "logger", "event"])

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    # Prevent duplicate handlers if called multiple times
    for existing in list(root_logger.handlers):
        if getattr(existing, "_async_notify_handler", False):
            root_logger.removeHandler(existing)
    handler._async_notify_handler = True  # type: ignore[attr-defined]
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper()))
