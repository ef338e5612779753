"""Immutable HTTP request.

Frozen metadata with async body access. The request is honest about
what it is: received data that doesn't change.
"""

from __future__ import annotations

import json as json_module
from collections.abc import AsyncGenerator, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

import anyio

from switchyard._internal.asgi import Receive
from switchyard.errors import ValidationError
from switchyard.http.cookies import parse_cookies
from switchyard.http.headers import Headers
from switchyard.http.query import QueryParams


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    Metadata (method, path, headers, etc.) is frozen at creation.
    Body is accessed asynchronously via ``.body()``, ``.json()``, ``.text()``.

    ``_cache`` is shared between the pre-match request and the copy that
    carries path parameters, so a body read by one unit is visible to all.
    """

    method: str
    path: str
    headers: Headers
    query: QueryParams
    path_params: dict[str, str]
    client: tuple[str, int] | None
    cookies: Mapping[str, str]

    # Private: ASGI receive callable for body streaming
    _receive: Receive

    # Private: mutable cache for the body and the disconnect flag
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def client_host(self) -> str | None:
        """Transport-level client address, if the server reported one."""
        if self.client:
            return self.client[0]
        return None

    @property
    def content_type(self) -> str | None:
        """The Content-Type header value."""
        return self.headers.get("content-type")

    @property
    def disconnected(self) -> bool:
        """True once ``http.disconnect`` has been received for this request."""
        return self._cache.get("_disconnected", False)

    def mark_disconnected(self) -> None:
        """Record that the transport aborted the request."""
        self._cache["_disconnected"] = True

    def with_path_params(self, path_params: dict[str, str]) -> Request:
        """Return a copy carrying the matched path parameters."""
        return replace(self, path_params=path_params)

    # -- Async body access --

    async def body(self) -> bytes:
        """Read the full request body.

        Result is cached: the ASGI receive is consumed once, then the
        same bytes are returned on subsequent calls. Concurrent readers
        (a unit and the disconnect watcher) are serialized.
        """
        lock = self._cache.setdefault("_body_lock", anyio.Lock())
        async with lock:
            if "_body" not in self._cache:
                self._cache["_body"] = b"".join([chunk async for chunk in self._chunks()])
        return self._cache["_body"]

    async def wait_disconnected(self) -> None:
        """Return once the client has gone away.

        The body is buffered first, since ASGI only reports
        ``http.disconnect`` after it; units reading it later get the
        cached bytes.
        """
        await self.body()
        while not self.disconnected:
            message = await self._receive()
            if message.get("type") == "http.disconnect":
                self.mark_disconnected()

    async def _chunks(self) -> AsyncGenerator[bytes]:
        while True:
            message = await self._receive()
            if message.get("type") == "http.disconnect":
                self.mark_disconnected()
                break
            body = message.get("body", b"")
            if body:
                yield body
            if not message.get("more_body", False):
                break

    async def json(self) -> Any:
        """Parse the body as JSON. Empty bodies parse to ``None``."""
        raw = await self.body()
        if not raw:
            return None
        try:
            return json_module.loads(raw)
        except ValueError as exc:
            raise ValidationError("Malformed JSON body") from exc

    async def text(self) -> str:
        """Read the body as text (UTF-8)."""
        raw = await self.body()
        return raw.decode("utf-8")

    # -- Factory --

    @classmethod
    def from_asgi(cls, scope: Mapping[str, Any], receive: Receive) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        headers = Headers(tuple(scope.get("headers", ())))
        client = scope.get("client")
        return cls(
            method=scope["method"].upper(),
            path=scope["path"],
            headers=headers,
            query=QueryParams(scope.get("query_string", b"")),
            path_params={},
            client=tuple(client) if client else None,
            cookies=parse_cookies(headers.get("cookie", "")),
            _receive=receive,
        )
