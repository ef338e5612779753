"""Per-request context store.

Components are plain classes declared with ``@component("key")``. The
key is an explicit, statically chosen identifier: two classes that
happen to share a ``__name__`` never collide, and two classes that
claim the same key are rejected when the route tree compiles.

A ``ContextStore`` is created for every request and dropped when the
request completes. Every unit in the chain that declares a parameter
annotated with a component type receives the *same* instance::

    @component("users.profile")
    class Profile:
        def __init__(self) -> None:
            self.user = None

    async def load_profile(profile: Profile, id: int) -> None:
        profile.user = await users.get(id)

    async def show(profile: Profile) -> dict:
        return profile.user.to_dict()   # same Profile as load_profile saw

Framework handles (``Request``, ``RouteMatch``, ``AppConfig``,
``RouteTree``, the store itself) are bound by the ASGI handler and
looked up by exact type.
"""

import sys
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

from switchyard.errors import ConfigurationError

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class ComponentKey:
    """Interned identity of a component type."""

    name: str

    def __str__(self) -> str:
        return self.name


def component(key: str) -> Callable[[type[T]], type[T]]:
    """Declare a class as a per-request component under *key*.

    The class must be constructible with no arguments, unless a factory
    is registered for it with ``App.provide()``.
    """
    if not key:
        msg = "Component keys must be non-empty strings."
        raise ConfigurationError(msg)

    def decorator(cls: type[T]) -> type[T]:
        cls.__component_key__ = ComponentKey(sys.intern(key))  # type: ignore[attr-defined]
        return cls

    return decorator


def component_key(cls: Any) -> ComponentKey | None:
    """Return the key declared directly on *cls*, or ``None``.

    Undecorated subclasses of a component are not components: the key
    is looked up on the class itself, never inherited.
    """
    if not isinstance(cls, type):
        return None
    key = cls.__dict__.get("__component_key__")
    return key if isinstance(key, ComponentKey) else None


def check_component_keys(classes: list[type]) -> None:
    """Raise ``ConfigurationError`` if two distinct classes share a key."""
    owners: dict[ComponentKey, type] = {}
    for cls in classes:
        key = component_key(cls)
        if key is None:
            continue
        existing = owners.setdefault(key, cls)
        if existing is not cls:
            msg = (
                f"Component key {key.name!r} is claimed by both "
                f"{existing.__module__}.{existing.__qualname__} and "
                f"{cls.__module__}.{cls.__qualname__}."
            )
            raise ConfigurationError(msg)


class ContextStore:
    """Per-request mapping from component key to instance.

    Instances are built lazily on first ``resolve()`` and memoized for
    the life of the store. Never shared between requests, so no locking.
    """

    __slots__ = ("_handles", "_instances", "_providers")

    def __init__(self, providers: Mapping[ComponentKey, Callable[[], Any]] | None = None) -> None:
        self._providers = providers or {}
        self._instances: dict[ComponentKey, Any] = {}
        self._handles: dict[type, Any] = {ContextStore: self}

    def resolve(self, cls: type[T]) -> T:
        """Return the instance for *cls*, constructing it on first use."""
        key = component_key(cls)
        if key is None:
            msg = f"{cls.__qualname__} is not a component; decorate it with @component(...)."
            raise ConfigurationError(msg)
        try:
            return self._instances[key]
        except KeyError:
            pass
        factory = self._providers.get(key, cls)
        instance = factory()
        self._instances[key] = instance
        return instance

    def get(self, cls: type[T]) -> T | None:
        """Return the instance for *cls* if it has been created, else ``None``."""
        key = component_key(cls)
        if key is None:
            return None
        return self._instances.get(key)

    def provide(self, instance: Any) -> None:
        """Seed an already-built component instance."""
        key = component_key(type(instance))
        if key is None:
            msg = f"{type(instance).__qualname__} is not a component."
            raise ConfigurationError(msg)
        self._instances[key] = instance

    def bind(self, annotation: type, handle: Any) -> None:
        """Bind a framework handle looked up by exact type."""
        self._handles[annotation] = handle

    def handle(self, annotation: type) -> Any:
        """Return the handle bound for *annotation*."""
        try:
            return self._handles[annotation]
        except KeyError:
            msg = f"No {annotation.__qualname__} is bound for this request."
            raise ConfigurationError(msg) from None

    def __contains__(self, cls: object) -> bool:
        key = component_key(cls)
        return key is not None and key in self._instances

    def instances(self) -> dict[str, Any]:
        """Snapshot of the created instances, keyed by component name."""
        return {key.name: instance for key, instance in self._instances.items()}
