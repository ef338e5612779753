"""Switchyard exception hierarchy.

Shared across the router, the chain executor, the built-in units and
the ASGI handler so every module raises and catches the same types.

``HTTPError`` and its subclasses carry the response envelope fields
(``message``, ``status``, ``data``). Anything else that escapes a chain
is an internal error.
"""

from dataclasses import dataclass
from typing import Any


class SwitchyardError(Exception):
    """Base for all switchyard-specific errors."""


class ConfigurationError(SwitchyardError):
    """Raised when routes, markers, or chains are misconfigured.

    Normally raised while the app freezes. A few checks (jump targets)
    can only run on first use; those still surface as this type and are
    never turned into a silent no-op.
    """


class ChainAborted(SwitchyardError):
    """The client went away mid-chain. No further units are invoked."""


@dataclass(frozen=True, slots=True)
class HTTPError(SwitchyardError):
    """An error that maps directly to a response envelope.

    Raised by the router, by built-in units, or by business handlers.
    The ASGI handler catches these once, at the chain boundary.
    """

    status: int
    message: str = ""
    data: Any = None
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.message:
            return f"{self.status}: {self.message}"
        return str(self.status)

    def to_envelope(self) -> dict[str, Any]:
        """The ``{message, status, data?}`` body for this error."""
        envelope: dict[str, Any] = {
            "message": self.message or f"Error {self.status}",
            "status": self.status,
        }
        if self.data is not None:
            envelope["data"] = self.data
        return envelope


class RouteNotFoundError(HTTPError):
    """404 — no route matched the request path."""

    def __init__(self, message: str = "Not Found") -> None:
        super().__init__(status=404, message=message)


class MethodNotAllowed(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """405 — the path exists but not for this HTTP method."""

    def __init__(self, allowed: frozenset[str], message: str = "") -> None:
        allow_value = ", ".join(sorted(allowed))
        super().__init__(
            status=405,
            message=message or f"Method not allowed. Allowed methods: {allow_value}",
            headers=(("Allow", allow_value),),
        )


class ValidationError(HTTPError):
    """400 — input rejected by a unit or by the validation collaborator."""

    def __init__(self, message: str = "Invalid input", data: Any = None) -> None:
        super().__init__(status=400, message=message, data=data)


class AuthRequiredError(HTTPError):
    """401 — the request carries no valid session."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(status=401, message=message)


class AccessDeniedError(HTTPError):
    """403 — the caller's grants do not satisfy the route's markers."""

    def __init__(self, message: str = "Access denied", data: Any = None) -> None:
        super().__init__(status=403, message=message, data=data)


class RateLimitedError(HTTPError):
    """429 — the limiter ceiling for this key was exceeded."""

    def __init__(self, retry_after: int, message: str = "Too Many Requests") -> None:
        super().__init__(
            status=429,
            message=message,
            data={"retry_after": retry_after},
            headers=(("Retry-After", str(retry_after)),),
        )
