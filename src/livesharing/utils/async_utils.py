"""Helpers for moving work onto the event loop that owns shared state.

Player, theme and reconciler state is only touched from the loop thread.
Transport callbacks may arrive on arbitrary threads and are redispatched
here before they run.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable


def call_on_loop(
    loop: asyncio.AbstractEventLoop, func: Callable[..., Any], /, *args: Any
) -> asyncio.Handle | None:
    """Schedule `func(*args)` on `loop` from any thread.

    Returns the scheduled handle, or `None` when the loop is already closed
    and the call was dropped.
    """
    if not callable(func):
        raise TypeError("func must be callable")
    if loop.is_closed():
        return None
    try:
        return loop.call_soon_threadsafe(func, *args)
    except RuntimeError:
        # Loop closed between the check and the call.
        return None


def current_thread_name() -> str:
    return threading.current_thread().name
