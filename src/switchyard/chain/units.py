"""Middleware units — the steps of a chain.

A unit is any callable. Its parameters are resolved per request from
the signature, once, at registration time::

    async def load_user(request: Request, users: UserCache, id: int) -> None: ...

Resolution rules, in order:

1. ``Cursor`` — where in the chain the unit is running.
2. Framework handles by exact type: ``Request``, ``RouteMatch``,
   ``RouteTree``, ``AppConfig``, ``ContextStore``. A parameter named
   ``request`` without an annotation is the request.
3. Components (classes declared with ``@component``) — memoized per
   request by the context store.
4. Anything else unannotated or annotated ``str``/``int``/``float`` is a
   path parameter, looked up by name.

Any other annotation is a ``ConfigurationError`` at registration.
"""

from __future__ import annotations

import inspect
import sys
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from switchyard._internal.types import UnitFunc
from switchyard.context import component_key
from switchyard.errors import ConfigurationError
from switchyard.routing.params import CONVERTERS

if TYPE_CHECKING:
    from switchyard.markers import Marker

_EMPTY: Mapping[int, Any] = MappingProxyType({})


class ResolverKind(Enum):
    CURSOR = "cursor"
    HANDLE = "handle"
    COMPONENT = "component"
    PATH_PARAM = "path_param"


@dataclass(frozen=True, slots=True)
class Resolver:
    """How one parameter of a unit is filled in."""

    name: str
    kind: ResolverKind
    annotation: Any = None
    default: Any = inspect.Parameter.empty

    @property
    def required(self) -> bool:
        return self.default is inspect.Parameter.empty


@dataclass(frozen=True, slots=True)
class UnitSpec:
    """Registration metadata attached to a function by the decorators below."""

    uid: str | None = None
    responses: Mapping[int, Any] | None = None
    marker: Marker | None = None
    role: str = "unit"
    path: str = ""
    methods: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True, eq=False)
class MiddlewareUnit:
    """An immutable, registered chain step.

    ``uid`` is assigned once at registration and is what ``JumpTo``,
    the route listing, and trace records refer to.
    """

    uid: str
    func: UnitFunc
    resolvers: tuple[Resolver, ...]
    owner: type | None = None
    attribute: str = ""
    responses: Mapping[int, Any] = field(default_factory=lambda: _EMPTY)
    marker: Marker | None = None

    @property
    def is_marker_source(self) -> bool:
        return self.marker is not None

    def component_types(self) -> list[type]:
        """Component classes this unit depends on, owner included."""
        types = [r.annotation for r in self.resolvers if r.kind is ResolverKind.COMPONENT]
        if self.owner is not None:
            types.append(self.owner)
        return types

    def __repr__(self) -> str:
        return f"<MiddlewareUnit {self.uid}>"


@dataclass(frozen=True, slots=True)
class Cursor:
    """Runtime handle to the current position in a chain.

    ``prefix`` is the full prefix of the node that declared the unit;
    ``depth`` is that node's index in the route's ancestor list.
    """

    unit: MiddlewareUnit
    prefix: str
    depth: int
    position: int

    @property
    def owner(self) -> type | None:
        return self.unit.owner

    @property
    def attribute(self) -> str:
        return self.unit.attribute


# -- Decorators ---------------------------------------------------------------


def unit(
    func: UnitFunc | None = None,
    *,
    uid: str | None = None,
    responses: Mapping[int, Any] | None = None,
    marker: Marker | None = None,
) -> Any:
    """Attach registration metadata to a plain function unit.

    Usable bare (``@unit``) or with arguments (``@unit(uid="auth.check")``).
    """

    def decorator(f: UnitFunc) -> UnitFunc:
        f.__switchyard_unit__ = UnitSpec(uid=uid, responses=responses, marker=marker)  # type: ignore[attr-defined]
        return f

    if func is not None:
        return decorator(func)
    return decorator


def endpoint(
    path: str = "",
    *,
    methods: tuple[str, ...] | list[str] = ("GET",),
    uid: str | None = None,
    responses: Mapping[int, Any] | None = None,
) -> Callable[[UnitFunc], UnitFunc]:
    """Mark a controller method as a terminal handler.

    Collected by ``Router.controller()``::

        @component("users.controller")
        class Users:
            @endpoint("/user_:id", methods=["PUT"])
            async def update(self, id: int, request: Request) -> dict: ...
    """

    def decorator(f: UnitFunc) -> UnitFunc:
        f.__switchyard_unit__ = UnitSpec(  # type: ignore[attr-defined]
            uid=uid,
            responses=responses,
            role="endpoint",
            path=path,
            methods=tuple(m.upper() for m in methods),
        )
        return f

    return decorator


def guard(
    func: UnitFunc | None = None,
    *,
    uid: str | None = None,
    marker: Marker | None = None,
) -> Any:
    """Mark a controller method as a guard on every endpoint of the controller.

    Guards run in declaration order, before any endpoint of the class.
    """

    def decorator(f: UnitFunc) -> UnitFunc:
        f.__switchyard_unit__ = UnitSpec(uid=uid, marker=marker, role="guard")  # type: ignore[attr-defined]
        return f

    if func is not None:
        return decorator(func)
    return decorator


# -- Registration -------------------------------------------------------------


def unit_spec(obj: Any) -> UnitSpec | None:
    """The ``UnitSpec`` attached to *obj* by a decorator, if any."""
    spec = getattr(obj, "__switchyard_unit__", None)
    return spec if isinstance(spec, UnitSpec) else None


def as_unit(
    obj: Any,
    *,
    owner: type | None = None,
    attribute: str = "",
    uid: str | None = None,
    responses: Mapping[int, Any] | None = None,
    marker: Marker | None = None,
) -> MiddlewareUnit:
    """Turn a callable into a ``MiddlewareUnit``.

    Explicit keyword arguments win over decorator metadata, which wins
    over defaults. Units pass through unchanged.
    """
    if isinstance(obj, MiddlewareUnit):
        return obj
    if not callable(obj):
        msg = f"{obj!r} is not callable and cannot be used as a unit."
        raise ConfigurationError(msg)

    spec = unit_spec(obj) or UnitSpec()
    if owner is not None and component_key(owner) is None:
        msg = f"Controller {owner.__qualname__} must be declared with @component(...)."
        raise ConfigurationError(msg)

    resolved_uid = uid or spec.uid or _default_uid(obj, owner)
    return MiddlewareUnit(
        uid=sys.intern(resolved_uid),
        func=obj,
        resolvers=build_resolvers(obj, uid=resolved_uid, skip_first=owner is not None),
        owner=owner,
        attribute=attribute or getattr(obj, "__name__", ""),
        responses=MappingProxyType(dict(responses or spec.responses or {})),
        marker=marker or spec.marker,
    )


def _default_uid(obj: Any, owner: type | None) -> str:
    if owner is not None:
        return f"{owner.__module__}.{owner.__qualname__}.{obj.__name__}"
    if inspect.isfunction(obj) or inspect.ismethod(obj):
        return f"{obj.__module__}.{obj.__qualname__}"
    cls = type(obj)
    return f"{cls.__module__}.{cls.__qualname__}"


def _handle_types() -> frozenset[type]:
    from switchyard.config import AppConfig
    from switchyard.context import ContextStore
    from switchyard.http.request import Request
    from switchyard.routing.route import RouteMatch
    from switchyard.routing.tree import RouteTree

    return frozenset({AppConfig, ContextStore, Request, RouteMatch, RouteTree})


def build_resolvers(
    func: UnitFunc,
    *,
    uid: str,
    skip_first: bool = False,
) -> tuple[Resolver, ...]:
    """Inspect *func*'s signature once and decide how to fill each parameter."""
    try:
        sig = inspect.signature(func, eval_str=True)
    except (NameError, TypeError, ValueError) as exc:
        msg = f"Cannot inspect the signature of unit {uid!r}: {exc}"
        raise ConfigurationError(msg) from exc

    params = list(sig.parameters.values())
    if skip_first:
        params = params[1:]

    handles = _handle_types()
    empty = inspect.Parameter.empty
    resolvers: list[Resolver] = []
    for param in params:
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            msg = f"Unit {uid!r} may not declare *args or **kwargs ({param.name!r})."
            raise ConfigurationError(msg)

        annotation = param.annotation
        if annotation is Cursor:
            kind = ResolverKind.CURSOR
        elif annotation in handles:
            kind = ResolverKind.HANDLE
        elif param.name == "request" and annotation is empty:
            from switchyard.http.request import Request

            kind, annotation = ResolverKind.HANDLE, Request
        elif component_key(annotation) is not None:
            kind = ResolverKind.COMPONENT
        elif annotation is empty or annotation in CONVERTERS:
            kind = ResolverKind.PATH_PARAM
        else:
            msg = (
                f"Cannot resolve parameter {param.name!r} of unit {uid!r}: "
                f"{annotation!r} is not a component, a framework handle, or a path type."
            )
            raise ConfigurationError(msg)

        resolvers.append(
            Resolver(
                name=param.name,
                kind=kind,
                annotation=None if annotation is empty else annotation,
                default=param.default,
            )
        )
    return tuple(resolvers)
