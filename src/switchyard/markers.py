"""Marker aggregation — route metadata implied by mounting topology.

A unit that carries a ``Marker`` is a *marker source*. When the route
tree compiles, every route's chain is walked once; each marker source
found on the way is asked to ``mark(route, cursor)`` and the entries it
returns are stored as one *group* under the marker's name.

The default ``scope_marks`` yields one ``{prefix}`` entry for every
distinct scope from the node that declared the unit down to the route
itself, plus the exact ``{method, path}``. An access guard declared on
``/api`` therefore marks ``PUT /api/users/user_:id`` with::

    {prefix: "/api"}
    {prefix: "/api/users"}
    {prefix: "/api/users/user_:id"}
    {method: "put", path: "/api/users/user_:id"}

The table is built once and never changes; request-time readers share
it without locks.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, TypeAlias

if TYPE_CHECKING:
    from switchyard.chain.units import Cursor
    from switchyard.routing.route import CompiledRoute


@dataclass(frozen=True, slots=True)
class MarkerEntry:
    """Either ``{prefix}`` or ``{method, path}``."""

    prefix: str | None = None
    method: str | None = None
    path: str | None = None

    @classmethod
    def for_prefix(cls, prefix: str) -> MarkerEntry:
        return cls(prefix=prefix)

    @classmethod
    def for_route(cls, method: str, path: str) -> MarkerEntry:
        return cls(method=method.lower(), path=path)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MarkerEntry:
        """Parse the serialized form. Unknown shapes raise ``ValueError``."""
        if "prefix" in data:
            return cls.for_prefix(str(data["prefix"]))
        if "method" in data and "path" in data:
            return cls.for_route(str(data["method"]), str(data["path"]))
        msg = f"Not a marker entry: {dict(data)!r}"
        raise ValueError(msg)

    def to_dict(self) -> dict[str, str]:
        if self.prefix is not None:
            return {"prefix": self.prefix}
        return {"method": self.method or "", "path": self.path or ""}


MarkerGroup: TypeAlias = tuple[MarkerEntry, ...]
MarkFunc: TypeAlias = "Callable[[CompiledRoute, Cursor], Iterable[MarkerEntry]]"


def scope_marks(route: CompiledRoute, cursor: Cursor) -> list[MarkerEntry]:
    """Every distinct scope from the cursor's node down to the exact route."""
    entries: list[MarkerEntry] = []
    seen: set[str] = set()
    for node in route.nodes[cursor.depth :]:
        if node.prefix and node.prefix not in seen:
            seen.add(node.prefix)
            entries.append(MarkerEntry.for_prefix(node.prefix))
    entries.append(MarkerEntry.for_route(route.method, route.path))
    return entries


@dataclass(frozen=True, slots=True)
class Marker:
    """Marker source metadata carried by a unit."""

    name: str
    mark: MarkFunc = scope_marks


class MarkerTable:
    """Per-route marker groups, keyed by ``(method, path)`` then marker name."""

    __slots__ = ("_by_route",)

    def __init__(
        self,
        by_route: Mapping[tuple[str, str], Mapping[str, tuple[MarkerGroup, ...]]] | None = None,
    ) -> None:
        self._by_route = MappingProxyType(dict(by_route or {}))

    def for_route(self, route: CompiledRoute) -> Mapping[str, tuple[MarkerGroup, ...]]:
        return self._by_route.get(route.key, MappingProxyType({}))

    def entries(self, route: CompiledRoute, name: str) -> tuple[MarkerEntry, ...]:
        """All entries for *name* on *route*, flattened, first occurrence kept."""
        return flatten(self.for_route(route).get(name, ()))

    def __len__(self) -> int:
        return len(self._by_route)


def flatten(groups: Iterable[MarkerGroup]) -> tuple[MarkerEntry, ...]:
    """Concatenate groups, dropping repeated entries."""
    seen: dict[MarkerEntry, None] = {}
    for group in groups:
        for entry in group:
            seen.setdefault(entry, None)
    return tuple(seen)


def aggregate_markers(routes: Iterable[CompiledRoute]) -> MarkerTable:
    """Replay every marker source over every route. Runs once, at compile."""
    by_route: dict[tuple[str, str], Mapping[str, tuple[MarkerGroup, ...]]] = {}
    for route in routes:
        groups: dict[str, list[MarkerGroup]] = {}
        for position, chain_unit in enumerate(route.chain):
            marker = chain_unit.marker
            if marker is None:
                continue
            cursor = route.cursor_at(position)
            groups.setdefault(marker.name, []).append(tuple(marker.mark(route, cursor)))
        if groups:
            by_route[route.key] = MappingProxyType(
                {name: tuple(found) for name, found in groups.items()}
            )
    return MarkerTable(by_route)
