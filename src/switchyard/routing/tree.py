"""Compiled route tree with trie-based path matching.

Built once by ``Router.compile()``; immutable afterwards, so concurrent
requests read it without locks.
"""

from dataclasses import dataclass, replace

from switchyard.context import check_component_keys
from switchyard.errors import ConfigurationError, MethodNotAllowed, RouteNotFoundError
from switchyard.markers import MarkerTable, aggregate_markers
from switchyard.routing.params import SegmentPattern, parse_path
from switchyard.routing.route import CompiledRoute, RouteMatch, RouteNode


class _TrieNode:
    """A node in the match trie. Mutable during compilation only."""

    __slots__ = ("children", "param_edges", "routes_by_method")

    def __init__(self) -> None:
        # Static segment children: "users" -> node
        self.children: dict[str, _TrieNode] = {}
        # Parameter edges, most specific first
        self.param_edges: list[_ParamEdge] = []
        # Routes at this node, keyed by HTTP method
        self.routes_by_method: dict[str, CompiledRoute] = {}


@dataclass(slots=True)
class _ParamEdge:
    """A parameter edge in the trie."""

    pattern: SegmentPattern
    node: _TrieNode


class RouteTree:
    """The immutable result of compiling a router tree.

    Usage::

        tree = root.compile()
        match = tree.match("PUT", "/api/users/user_42")
        match.route.chain      # every ancestor's local chain + the handler
        match.path_params      # {"id": "42"}
        match.markers          # {"access": (group, ...)}
    """

    __slots__ = ("_markers", "_root", "_routes", "_trie")

    def __init__(self, root: RouteNode) -> None:
        collected: list[CompiledRoute] = []
        _collect(root, (), (), (), collected)
        _check_routes(collected)

        self._markers: MarkerTable = aggregate_markers(collected)
        routes = [replace(route, markers=self._markers.for_route(route)) for route in collected]

        self._root = root
        self._routes: tuple[CompiledRoute, ...] = tuple(routes)
        self._trie = _TrieNode()
        for route in routes:
            self._add(route)

    @property
    def root(self) -> RouteNode:
        return self._root

    @property
    def routes(self) -> tuple[CompiledRoute, ...]:
        """All routes, depth-first in declaration order, methods sorted."""
        return self._routes

    @property
    def markers(self) -> MarkerTable:
        return self._markers

    def _add(self, route: CompiledRoute) -> None:
        node = self._trie
        for seg in route.segments:
            if not seg.is_param:
                node = node.children.setdefault(seg.value, _TrieNode())
                continue
            for edge in node.param_edges:
                if edge.pattern.value == seg.value:
                    node = edge.node
                    break
            else:
                edge = _ParamEdge(pattern=seg, node=_TrieNode())
                node.param_edges.append(edge)
                node.param_edges.sort(key=lambda e: (*e.pattern.sort_key(), e.pattern.value))
                node = edge.node
        node.routes_by_method[route.method] = route

    def match(self, method: str, path: str) -> RouteMatch:
        """Match a request against the tree.

        Returns a ``RouteMatch`` on success.
        Raises ``RouteNotFoundError`` if no route matches the path.
        Raises ``MethodNotAllowed`` if the path matches but the method doesn't.
        """
        method = method.upper()
        parts = [p for p in path.strip("/").split("/") if p]

        found = self._match_node(self._trie, parts, 0, {}, method)
        if found is not None:
            node, params = found
            route = node.routes_by_method[method]
            return RouteMatch(route=route, path_params=params, markers=route.markers)

        allowed = self._allowed_methods(self._trie, parts, 0)
        if allowed:
            raise MethodNotAllowed(frozenset(allowed))
        raise RouteNotFoundError()

    def _match_node(
        self,
        node: _TrieNode,
        parts: list[str],
        index: int,
        params: dict[str, str],
        method: str,
    ) -> tuple[_TrieNode, dict[str, str]] | None:
        """Depth-first: static child before parameter edges, then backtrack."""
        if index == len(parts):
            return (node, params) if method in node.routes_by_method else None

        part = parts[index]

        child = node.children.get(part)
        if child is not None:
            result = self._match_node(child, parts, index + 1, params, method)
            if result is not None:
                return result

        for edge in node.param_edges:
            captured = edge.pattern.match(part)
            if captured is None:
                continue
            result = self._match_node(edge.node, parts, index + 1, {**params, **captured}, method)
            if result is not None:
                return result

        return None

    def _allowed_methods(self, node: _TrieNode, parts: list[str], index: int) -> set[str]:
        """Union of methods over every node whose path matches, for ``Allow``."""
        if index == len(parts):
            return set(node.routes_by_method)

        part = parts[index]
        allowed: set[str] = set()
        child = node.children.get(part)
        if child is not None:
            allowed |= self._allowed_methods(child, parts, index + 1)
        for edge in node.param_edges:
            if edge.pattern.match(part) is not None:
                allowed |= self._allowed_methods(edge.node, parts, index + 1)
        return allowed


def _collect(
    node: RouteNode,
    ancestors: tuple[RouteNode, ...],
    chain: tuple,
    depths: tuple[int, ...],
    out: list[CompiledRoute],
) -> None:
    nodes = (*ancestors, node)
    depth = len(nodes) - 1
    chain = (*chain, *node.local_chain)
    depths = (*depths, *([depth] * len(node.local_chain)))

    segments = tuple(parse_path(node.prefix))
    for method in sorted(node.terminals):
        out.append(
            CompiledRoute(
                method=method,
                path=node.prefix or "/",
                nodes=nodes,
                chain=(*chain, node.terminals[method]),
                depths=(*depths, depth),
                segments=segments,
            )
        )
    for child in node.children:
        _collect(child, nodes, chain, depths, out)


def _check_routes(routes: list[CompiledRoute]) -> None:
    """Startup checks: overlapping routes, missing path params, component keys."""
    claimed: dict[tuple[str, str], CompiledRoute] = {}
    for route in routes:
        shape = "/" + "/".join(seg.shape for seg in route.segments)
        previous = claimed.setdefault((route.method, shape), route)
        if previous is not route:
            msg = (
                f"Routes overlap: {route.method} {previous.path!r} "
                f"and {route.method} {route.path!r} claim the same path."
            )
            raise ConfigurationError(msg)

        missing = route.missing_params()
        if missing:
            uid, name = missing[0]
            msg = (
                f"Unit {uid!r} on {route.method} {route.path!r} needs path "
                f"parameter {name!r}, which the path does not declare."
            )
            raise ConfigurationError(msg)

    check_component_keys(
        [cls for route in routes for chain_unit in route.chain for cls in chain_unit.component_types()]
    )
