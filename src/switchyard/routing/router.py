"""Router — the mutable, setup-time builder for a route tree.

Routers nest. Each one has a prefix, a local chain of units, terminal
handlers keyed by HTTP method, and mounted children::

    api = Router("/api")
    api.use(access_control)

    users = Router("/users")
    users.use(rate_limit(RateLimitConfig(10, 30, 60, 2)))

    @users.put("/user_:id")
    async def update_user(id: int, request: Request) -> dict: ...

    api.mount("", users)
    tree = api.compile()

Nothing is shared between a router and the tree it compiles into:
``compile()`` snapshots the builder into immutable ``RouteNode`` objects.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any

from switchyard._internal.types import UnitFunc
from switchyard.chain.units import MiddlewareUnit, as_unit, unit_spec
from switchyard.errors import ConfigurationError
from switchyard.routing.params import join_paths, normalize_path, parse_path
from switchyard.routing.route import RouteNode
from switchyard.routing.tree import RouteTree


class Router:
    """A node of the route tree under construction."""

    __slots__ = ("_children", "_local_chain", "_path_children", "_terminals", "prefix")

    def __init__(self, prefix: str = "") -> None:
        parse_path(prefix)  # malformed prefixes fail here, at registration
        self.prefix = normalize_path(prefix)
        self._local_chain: list[MiddlewareUnit] = []
        self._terminals: dict[str, MiddlewareUnit] = {}
        self._children: list[tuple[str, Router]] = []
        self._path_children: dict[str, Router] = {}

    def __repr__(self) -> str:
        return f"<Router {self.prefix or '/'!r}>"

    # -- Chain --

    def use(self, *units: Any) -> Router:
        """Append units to this router's local chain.

        They run, in order, before every handler at or below this router.
        """
        for obj in units:
            self._local_chain.append(as_unit(obj))
        return self

    # -- Terminal handlers --

    def route(
        self,
        path: str = "",
        *,
        methods: tuple[str, ...] | list[str] = ("GET",),
        uid: str | None = None,
        responses: Mapping[int, Any] | None = None,
    ) -> Callable[[UnitFunc], UnitFunc]:
        """Register a terminal handler via decorator.

        An empty *path* registers on this router's own node. Otherwise the
        handler lives on a child node with that prefix, which becomes its
        own scope for marker aggregation.
        """

        def decorator(func: UnitFunc) -> UnitFunc:
            target = self._child(path) if normalize_path(path) else self
            handler = as_unit(func, uid=uid, responses=responses)
            for method in methods:
                target.add_terminal(method, handler)
            return func

        return decorator

    def get(self, path: str = "", **kwargs: Any) -> Callable[[UnitFunc], UnitFunc]:
        return self.route(path, methods=("GET",), **kwargs)

    def post(self, path: str = "", **kwargs: Any) -> Callable[[UnitFunc], UnitFunc]:
        return self.route(path, methods=("POST",), **kwargs)

    def put(self, path: str = "", **kwargs: Any) -> Callable[[UnitFunc], UnitFunc]:
        return self.route(path, methods=("PUT",), **kwargs)

    def patch(self, path: str = "", **kwargs: Any) -> Callable[[UnitFunc], UnitFunc]:
        return self.route(path, methods=("PATCH",), **kwargs)

    def delete(self, path: str = "", **kwargs: Any) -> Callable[[UnitFunc], UnitFunc]:
        return self.route(path, methods=("DELETE",), **kwargs)

    def add_terminal(self, method: str, handler: Any) -> None:
        """Register *handler* for *method* on this router's own node."""
        method = method.upper()
        if method in self._terminals:
            msg = (
                f"{method} {self.prefix or '/'!r} already has a handler "
                f"({self._terminals[method].uid})."
            )
            raise ConfigurationError(msg)
        self._terminals[method] = as_unit(handler)

    # -- Controllers --

    def controller(self, cls: type, prefix: str = "") -> Router:
        """Register a controller class.

        Methods decorated with ``@guard`` form the controller's local
        chain in declaration order; methods decorated with ``@endpoint``
        become terminal handlers. The controller instance is a component,
        resolved from the per-request store before each call.

        Returns the router node created for the controller.
        """
        node = Router(prefix)
        for attribute, value in cls.__dict__.items():
            spec = unit_spec(value)
            if spec is None:
                continue
            if spec.role == "guard":
                node.use(as_unit(value, owner=cls, attribute=attribute))
            elif spec.role == "endpoint":
                target = node._child(spec.path) if normalize_path(spec.path) else node
                handler = as_unit(value, owner=cls, attribute=attribute)
                for method in spec.methods:
                    target.add_terminal(method, handler)
        self._children.append(("", node))
        return node

    # -- Composition --

    def mount(self, prefix: str, child: Router) -> Router:
        """Attach *child* under *prefix*.

        The child's own prefix, and every prefix below it, is appended.
        Overlapping method + path claims are reported by ``compile()``.
        """
        if child is self:
            msg = "A router cannot be mounted into itself."
            raise ConfigurationError(msg)
        parse_path(prefix)
        self._children.append((normalize_path(prefix), child))
        return self

    def _child(self, path: str) -> Router:
        key = normalize_path(path)
        child = self._path_children.get(key)
        if child is None:
            child = Router(key)
            self._path_children[key] = child
            self._children.append(("", child))
        return child

    # -- Compilation --

    def compile(self) -> RouteTree:
        """Snapshot this router and everything below it into a ``RouteTree``."""
        return RouteTree(self._build("", frozenset()))

    def _build(self, parent_prefix: str, active: frozenset[int]) -> RouteNode:
        if id(self) in active:
            msg = f"Router {self!r} is mounted inside itself."
            raise ConfigurationError(msg)
        active = active | {id(self)}
        full = join_paths(parent_prefix, self.prefix)
        return RouteNode(
            prefix=full,
            children=tuple(
                child._build(join_paths(full, mount_prefix), active)
                for mount_prefix, child in self._children
            ),
            local_chain=tuple(self._local_chain),
            terminals=MappingProxyType(dict(self._terminals)),
        )
