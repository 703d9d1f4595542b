"""
Cooperative shutdown helpers shared by the worker loop and the processor.
"""
import asyncio
import logging
import signal
from typing import Callable

logger = logging.getLogger(__name__)


async def wait_for_stop(stop_event: asyncio.Event, timeout: float) -> bool:
    """
    Sleep for up to `timeout` seconds, returning early if the stop event fires.
    Returns True if the stop event is set, False if the full timeout elapsed.
    """
    if stop_event.is_set():
        return True
    if timeout <= 0:
        return False
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=timeout)
    except asyncio.TimeoutError:
        return False
    return True


def install_stop_handlers(callback: Callable[[], None]) -> None:
    """Route SIGINT and SIGTERM to `callback` on the running event loop."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, callback)
        except NotImplementedError:
            # Windows event loops do not support add_signal_handler
            logger.debug("Signal handler for %s not supported on this platform", sig.name)
