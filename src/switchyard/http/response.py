"""HTTP response with chainable .with_*() transformation API.

Each transformation returns a new Response. Immutable, built up
one call at a time. Bodies default to JSON: the engine
serializes every terminal value and every error envelope through
``Response.json``.
"""

from __future__ import annotations

import json as json_module
from dataclasses import dataclass, replace
from typing import Any

from switchyard.http.cookies import SetCookie

JSON_CONTENT_TYPE = "application/json"


@dataclass(frozen=True, slots=True)
class Response:
    """An HTTP response built through immutable transformations.

    Construct with a body, then chain ``.with_*()`` calls to set
    status, headers, and cookies. Each call returns a new ``Response``.
    """

    body: str | bytes = b""
    status: int = 200
    content_type: str = JSON_CONTENT_TYPE
    headers: tuple[tuple[str, str], ...] = ()
    cookies: tuple[SetCookie, ...] = ()

    @classmethod
    def json(cls, value: Any, *, status: int = 200) -> Response:
        """Serialize *value* as a JSON body."""
        body = json_module.dumps(value, default=str, separators=(",", ":"))
        return cls(body=body, status=status)

    # -- Chainable transformations --

    def with_status(self, status: int) -> Response:
        """Return a new Response with a different status code."""
        return replace(self, status=status)

    def with_header(self, name: str, value: str) -> Response:
        """Return a new Response with an additional header."""
        return replace(self, headers=(*self.headers, (name, value)))

    def with_cookie(self, cookie: SetCookie) -> Response:
        """Return a new Response with an additional Set-Cookie."""
        return replace(self, cookies=(*self.cookies, cookie))

    # -- Body helpers --

    @property
    def body_bytes(self) -> bytes:
        """Body as bytes."""
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return self.body

    @property
    def text(self) -> str:
        """Body as string."""
        if isinstance(self.body, bytes):
            return self.body.decode("utf-8")
        return self.body

    def header(self, name: str, default: str | None = None) -> str | None:
        """First value of header *name* (case-insensitive)."""
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return default

    def parsed(self) -> Any:
        """Decode a JSON body. Used by tests and the route-listing CLI."""
        return json_module.loads(self.body_bytes) if self.body_bytes else None
