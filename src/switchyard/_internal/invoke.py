"""Invoke helpers — call sync or async units uniformly.

Units, provider factories, and lifecycle hooks can be ``def`` or
``async def``. The sync/async check lives here and nowhere else.

Usage::

    from switchyard._internal.invoke import invoke

    result = await invoke(unit.func, *args, **kwargs)
"""

import inspect
from typing import Any


async def invoke(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Call *func* and await the result if it is awaitable."""
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
