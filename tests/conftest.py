"""
Shared fixtures and helpers for the async notify tests.
"""

from contextlib import asynccontextmanager

import anyio
import pytest

from hother.async_notify import CancellationError


@pytest.fixture
def anyio_backend():
    return "asyncio"


@asynccontextmanager
async def assert_cancelled_within(timeout: float, tolerance: float = 0.1):
    """
    Assert that the body raises a CancellationError within ``timeout`` seconds.

    Yields the ``pytest.raises`` info so the error can be inspected afterwards.
    """
    start = anyio.current_time()
    with pytest.raises(CancellationError) as exc_info:
        yield exc_info
    elapsed = anyio.current_time() - start
    assert elapsed <= timeout + tolerance, f"Cancellation took {elapsed:.3f}s, expected <= {timeout}s"
