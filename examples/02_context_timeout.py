#!/usr/bin/env python3
"""
Cancellable steps and timeouts with FutureContext.
"""

import anyio

from hother.async_notify import CancellationError, FutureContext, TimeoutCancellation
from hother.async_notify.utils.logging import configure_logging

configure_logging(log_level="INFO")


async def download(ctx: FutureContext) -> bytes:
    await anyio.sleep(1.0)
    return b"payload"


async def step(ctx: FutureContext) -> int:
    await anyio.sleep(0.1)
    return 1


async def main() -> None:
    async with FutureContext(name="job") as ctx:
        try:
            await ctx.with_timeout(0.2, download)
        except TimeoutCancellation as e:
            print(f"  Download timed out after {e.timeout_seconds}s")

        async def stop_soon() -> None:
            await anyio.sleep(0.35)
            ctx.cancel("user requested stop")

        done = 0
        async with anyio.create_task_group() as tg:
            tg.start_soon(stop_soon)
            try:
                while True:
                    done += await ctx.suspend(step)
            except CancellationError as e:
                print(f"  Stopped after {done} steps: {e.message}")

        print(f"  Final status: {ctx.info.status.value}")


if __name__ == "__main__":
    anyio.run(main)
