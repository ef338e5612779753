"""Switchyard application class.

Mutable during setup (routers, units, providers, hooks).
Frozen at runtime when ``__call__()`` is first invoked.
"""

import threading
from collections.abc import Callable, Mapping
from typing import Any

from switchyard._internal.asgi import Receive, Scope, Send
from switchyard._internal.invoke import invoke
from switchyard._internal.types import Factory, TraceSink, UnitFunc
from switchyard.config import AppConfig
from switchyard.context import ComponentKey, component_key
from switchyard.errors import ConfigurationError
from switchyard.listing import list_routes
from switchyard.middleware.tracing import logging_sink, trace_init
from switchyard.routing.route import CompiledRoute
from switchyard.routing.router import Router
from switchyard.routing.tree import RouteTree
from switchyard.server.handler import handle_request


class App:
    """The switchyard application.

    Owns a root ``Router``; registration methods delegate to it. The
    first ASGI call (or ``TestClient`` entry) compiles the tree.

    Thread safety:
        The setup phase is single-threaded (decorators at import time).
        The freeze transition uses a Lock + double-check to ensure exactly
        one thread compiles the app, even when several ASGI workers call
        ``__call__()`` concurrently on first request.
    """

    __slots__ = (
        "_freeze_lock",
        "_frozen",
        "_providers",
        "_router",
        "_shutdown_hooks",
        "_startup_hooks",
        "_trace_sink",
        # Compiled state (populated by _freeze)
        "_tree",
        "config",
    )

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config: AppConfig = config or AppConfig()
        self._router = Router()
        self._providers: dict[ComponentKey, Factory] = {}
        self._trace_sink: TraceSink = logging_sink
        self._startup_hooks: list[Callable[..., Any]] = []
        self._shutdown_hooks: list[Callable[..., Any]] = []
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()
        self._tree: RouteTree | None = None

    # -- Registration (delegates to the root router) --

    @property
    def router(self) -> Router:
        return self._router

    def use(self, *units: Any) -> "App":
        """Append units to the root chain; they run before every handler."""
        self._check_not_frozen()
        self._router.use(*units)
        return self

    def route(
        self,
        path: str = "",
        *,
        methods: tuple[str, ...] | list[str] = ("GET",),
        uid: str | None = None,
        responses: Mapping[int, Any] | None = None,
    ) -> Callable[[UnitFunc], UnitFunc]:
        self._check_not_frozen()
        return self._router.route(path, methods=methods, uid=uid, responses=responses)

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

    def mount(self, prefix: str, child: Router) -> "App":
        self._check_not_frozen()
        self._router.mount(prefix, child)
        return self

    def controller(self, cls: type, prefix: str = "") -> Router:
        self._check_not_frozen()
        return self._router.controller(cls, prefix)

    # -- Providers and tracing --

    def provide(self, cls: type, factory: Factory) -> None:
        """Build *cls* with *factory* instead of ``cls()``.

        The factory runs once per request, on first use::

            app.provide(UserCache, lambda: UserCache(pool))
        """
        self._check_not_frozen()
        key = component_key(cls)
        if key is None:
            msg = f"{cls.__qualname__} is not a component; decorate it with @component(...)."
            raise ConfigurationError(msg)
        self._providers[key] = factory

    def trace_sink(self, sink: TraceSink) -> TraceSink:
        """Replace the default logging sink. Usable as a decorator."""
        self._check_not_frozen()
        self._trace_sink = sink
        return sink

    # -- Lifecycle hooks --

    def on_startup(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync startup hook via decorator.

        Hooks run in registration order during ASGI lifespan startup.
        """
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync shutdown hook via decorator."""
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    # -- Compiled state --

    @property
    def tree(self) -> RouteTree:
        """The compiled route tree. Freezes the app on first access."""
        self._ensure_frozen()
        assert self._tree is not None
        return self._tree

    def routes(self) -> tuple[CompiledRoute, ...]:
        return self.tree.routes

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(scope, receive, send)
            return

        self._ensure_frozen()
        assert self._tree is not None

        await handle_request(
            scope,
            receive,
            send,
            tree=self._tree,
            config=self.config,
            providers=self._providers,
            trace_sink=self._trace_sink,
        )

    async def _handle_lifespan(
        self,
        scope: Scope,
        receive: Receive,
        send: Send,
    ) -> None:
        """Run the ASGI lifespan protocol.

        Freezes the app at startup (before the first HTTP request), so
        configuration errors surface before any traffic is accepted.
        """
        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    self._ensure_frozen()
                    for hook in self._startup_hooks:
                        await invoke(hook)
                    await send({"type": "lifespan.startup.complete"})
                except Exception as exc:
                    await send(
                        {
                            "type": "lifespan.startup.failed",
                            "message": str(exc),
                        }
                    )
                    return

            elif msg_type == "lifespan.shutdown":
                for hook in self._shutdown_hooks:
                    await invoke(hook)
                await send({"type": "lifespan.shutdown.complete"})
                return

    # -- Internal --

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking."""
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Compile the app into its frozen runtime state.

        MUST only be called while holding _freeze_lock.
        """
        outer = Router()
        if self.config.trace_enabled:
            outer.use(trace_init)
        if self.config.routes_path:
            outer.route(self.config.routes_path, methods=("GET",))(list_routes)
        outer.mount("", self._router)

        self._tree = outer.compile()
        self._frozen = True

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register routers, units, and providers before the first request."
            )
            raise RuntimeError(msg)
