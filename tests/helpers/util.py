import asyncio
import time
from collections.abc import Callable


async def wait_until(pred: Callable[[], bool], *, timeout: float = 2.0, interval: float = 0.01) -> None:
    """Poll `pred` until it holds or `timeout` seconds pass (then AssertionError)."""
    deadline = time.monotonic() + timeout
    while not pred():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)
