"""Continuation results returned by units.

Every unit tells the executor what happens next by returning one of
these. Guards that return ``None`` proceed; any other plain value ends
the chain successfully and becomes the response body.
"""

from dataclasses import dataclass
from typing import Any, TypeAlias

from switchyard.chain.units import MiddlewareUnit, unit_spec


@dataclass(frozen=True, slots=True)
class Proceed:
    """Continue with the next unit."""


@dataclass(frozen=True, slots=True)
class Terminate:
    """End the chain successfully; *value* becomes the response body."""

    value: Any = None


@dataclass(frozen=True, slots=True)
class Fail:
    """End the chain with *error*. Same as raising it."""

    error: Exception


class JumpTo:
    """Run the named later units next, skipping every unit between them.

    Targets may be unit ids, ``MiddlewareUnit`` objects, or functions
    decorated with ``@unit(uid=...)``.
    """

    __slots__ = ("targets",)

    def __init__(self, *targets: Any) -> None:
        if not targets:
            msg = "JumpTo needs at least one target."
            raise ValueError(msg)
        self.targets: tuple[str, ...] = tuple(_target_uid(t) for t in targets)

    def __repr__(self) -> str:
        return f"JumpTo({', '.join(map(repr, self.targets))})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, JumpTo) and other.targets == self.targets

    def __hash__(self) -> int:
        return hash(self.targets)


Continuation: TypeAlias = Proceed | Terminate | JumpTo | Fail

PROCEED = Proceed()


def _target_uid(target: Any) -> str:
    if isinstance(target, str):
        return target
    if isinstance(target, MiddlewareUnit):
        return target.uid
    spec = unit_spec(target)
    if spec is not None and spec.uid:
        return spec.uid
    if callable(target) and hasattr(target, "__qualname__"):
        return f"{target.__module__}.{target.__qualname__}"
    msg = f"Cannot derive a unit id from {target!r}."
    raise TypeError(msg)
