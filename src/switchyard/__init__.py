"""Switchyard — request pipelines built from mounted middleware chains.

Routers nest; every request walks the chain of units collected from the
root down to the matched handler. Units share typed per-request
components through the context store.

Basic usage::

    from switchyard import App, Router, RateLimitConfig, rate_limit

    app = App()

    users = Router("/users")
    users.use(rate_limit(RateLimitConfig(10, 30, 60, 2)))

    @users.get("/user_:id")
    async def show(id: int) -> dict:
        return {"id": id}

    app.mount("/api", users)
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "ConfigurationError",
    "ContextStore",
    "Cursor",
    "Fail",
    "Grants",
    "HTTPError",
    "JumpTo",
    "Marker",
    "MarkerEntry",
    "MethodNotAllowed",
    "PROCEED",
    "Proceed",
    "RateLimitConfig",
    "Request",
    "RequestTrace",
    "Response",
    "ResponseMeta",
    "RouteNotFoundError",
    "RouteTree",
    "Router",
    "Session",
    "SessionConfig",
    "SwitchyardError",
    "Terminate",
    "access_control",
    "component",
    "endpoint",
    "guard",
    "rate_limit",
    "require_auth",
    "session_unit",
    "unit",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import switchyard`` fast while providing a clean top-level API.
    """
    if name == "App":
        from switchyard.app import App

        return App

    if name == "AppConfig":
        from switchyard.config import AppConfig

        return AppConfig

    if name == "Request":
        from switchyard.http.request import Request

        return Request

    if name == "Response":
        from switchyard.http.response import Response

        return Response

    if name == "ResponseMeta":
        from switchyard.http.meta import ResponseMeta

        return ResponseMeta

    if name == "Router":
        from switchyard.routing.router import Router

        return Router

    if name == "RouteTree":
        from switchyard.routing.tree import RouteTree

        return RouteTree

    if name in ("ContextStore", "component"):
        from switchyard import context as _ctx

        return getattr(_ctx, name)

    if name in ("Cursor", "endpoint", "guard", "unit"):
        from switchyard.chain import units as _units

        return getattr(_units, name)

    if name in ("Fail", "JumpTo", "PROCEED", "Proceed", "Terminate"):
        from switchyard.chain import results as _results

        return getattr(_results, name)

    if name in ("Marker", "MarkerEntry"):
        from switchyard import markers as _markers

        return getattr(_markers, name)

    if name in ("Grants", "access_control"):
        from switchyard.middleware import access as _access

        return getattr(_access, name)

    if name in ("RateLimitConfig", "rate_limit"):
        from switchyard.middleware import rate_limit as _rate_limit

        return getattr(_rate_limit, name)

    if name == "RequestTrace":
        from switchyard.middleware.tracing import RequestTrace

        return RequestTrace

    if name in ("Session", "SessionConfig", "require_auth", "session_unit"):
        from switchyard.middleware import sessions as _sessions

        return getattr(_sessions, name)

    if name in (
        "ConfigurationError",
        "HTTPError",
        "MethodNotAllowed",
        "RouteNotFoundError",
        "SwitchyardError",
    ):
        from switchyard import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
