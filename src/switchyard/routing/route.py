"""RouteNode, CompiledRoute, and RouteMatch frozen dataclasses."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import cached_property
from types import MappingProxyType
from typing import TYPE_CHECKING

from switchyard.chain.units import Cursor, MiddlewareUnit, ResolverKind
from switchyard.routing.params import SegmentPattern

if TYPE_CHECKING:
    from switchyard.markers import MarkerGroup


@dataclass(frozen=True, slots=True)
class RouteNode:
    """One node of the compiled tree.

    ``prefix`` is the full prefix from the root: prefixes compose by
    concatenation along the path from the root to this node.
    """

    prefix: str
    children: tuple[RouteNode, ...] = ()
    local_chain: tuple[MiddlewareUnit, ...] = ()
    terminals: Mapping[str, MiddlewareUnit] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True, eq=False)
class CompiledRoute:
    """A terminal handler with everything needed to run it.

    ``chain`` is the concatenation of every ancestor's local chain, root
    first, followed by the terminal handler. ``depths[i]`` is the index
    in ``nodes`` of the node that declared ``chain[i]``.
    ``markers`` maps marker name to the groups aggregated for this route.
    """

    method: str
    path: str
    nodes: tuple[RouteNode, ...]
    chain: tuple[MiddlewareUnit, ...]
    depths: tuple[int, ...]
    segments: tuple[SegmentPattern, ...]
    # Filled in by RouteTree after marker aggregation
    markers: Mapping[str, tuple[MarkerGroup, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @property
    def terminal(self) -> MiddlewareUnit:
        return self.chain[-1]

    @property
    def key(self) -> tuple[str, str]:
        return (self.method, self.path)

    @cached_property
    def scopes(self) -> tuple[str, ...]:
        """Distinct non-empty ancestor prefixes, root first."""
        seen: list[str] = []
        for node in self.nodes:
            if node.prefix and node.prefix not in seen:
                seen.append(node.prefix)
        return tuple(seen)

    @cached_property
    def param_names(self) -> frozenset[str]:
        return frozenset(name for seg in self.segments for name in seg.names)

    @property
    def responses(self) -> Mapping[int, object]:
        return self.terminal.responses

    def cursor_at(self, position: int) -> Cursor:
        """The cursor for ``chain[position]``."""
        depth = self.depths[position]
        return Cursor(
            unit=self.chain[position],
            prefix=self.nodes[depth].prefix,
            depth=depth,
            position=position,
        )

    def next_position(self, uid: str, after: int) -> int | None:
        """Index of the first unit with *uid* strictly after *after*."""
        for index in range(after + 1, len(self.chain)):
            if self.chain[index].uid == uid:
                return index
        return None

    def missing_params(self) -> list[tuple[str, str]]:
        """``(unit uid, param)`` pairs the path cannot supply."""
        missing: list[tuple[str, str]] = []
        for chain_unit in self.chain:
            for resolver in chain_unit.resolvers:
                if (
                    resolver.kind is ResolverKind.PATH_PARAM
                    and resolver.required
                    and resolver.name not in self.param_names
                ):
                    missing.append((chain_unit.uid, resolver.name))
        return missing

    def __repr__(self) -> str:
        return f"<CompiledRoute {self.method} {self.path}>"


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route match."""

    route: CompiledRoute
    path_params: dict[str, str]
    markers: Mapping[str, tuple[MarkerGroup, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
