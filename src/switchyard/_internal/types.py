"""Shared type aliases used across switchyard modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

# Unit body — user-defined function with variable signature
UnitFunc: TypeAlias = Callable[..., Any]

# Zero-argument factory producing a component instance
Factory: TypeAlias = Callable[[], Any]

# Receives one finished trace record
TraceSink: TypeAlias = Callable[[dict[str, Any]], None]
