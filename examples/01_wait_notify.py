#!/usr/bin/env python3
"""
Wait/notify and channel basics.
"""

import anyio

from hother.async_notify import DisposedCancellation, Notify, NotifyChannel


async def main() -> None:
    notify = Notify()
    channel = NotifyChannel[str](notify)

    async def producer() -> None:
        for word in ("hello", "async", "world"):
            await anyio.sleep(0.1)
            channel.send(word)
        await anyio.sleep(0.1)
        notify.dispose()

    async with anyio.create_task_group() as tg:
        tg.start_soon(producer)
        try:
            while True:
                print(f"  Received: {await channel.receive()}")
        except DisposedCancellation as e:
            print(f"  Channel closed: {e.message}")


if __name__ == "__main__":
    anyio.run(main)
