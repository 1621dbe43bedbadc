import asyncio
from typing import Callable, TypeVar

T = TypeVar("T")


async def run_blocking(func: Callable[..., T], *args, **kwargs) -> T:
    """Run blocking function in default executor.

    Central helper so file I/O never blocks the heartbeat loop.
    """
    return await asyncio.to_thread(func, *args, **kwargs)


def running_loop() -> asyncio.AbstractEventLoop | None:
    """Return the running event loop, or None when called outside one."""
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
