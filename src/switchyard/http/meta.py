"""Per-request response metadata.

Units cannot touch the response directly: it does not exist until the
chain ends. Instead they declare ``ResponseMeta`` and queue headers,
cookies, or a hook that rewrites the final response::

    async def stamp(meta: ResponseMeta) -> None:
        meta.set_header("X-Served-By", "edge-1")

The ASGI handler applies the queued changes to whatever response the
request ends with, success or error envelope alike.
"""

from collections.abc import Callable
from typing import TypeAlias

from switchyard.context import component
from switchyard.http.cookies import SetCookie
from switchyard.http.response import Response

BeforeSend: TypeAlias = Callable[[Response], Response]


@component("switchyard.response_meta")
class ResponseMeta:
    __slots__ = ("_before_send", "cookies", "headers")

    def __init__(self) -> None:
        self.headers: list[tuple[str, str]] = []
        self.cookies: list[SetCookie] = []
        self._before_send: list[BeforeSend] = []

    def set_header(self, name: str, value: str) -> None:
        self.headers.append((name, value))

    def set_cookie(self, cookie: SetCookie) -> None:
        self.cookies.append(cookie)

    def before_send(self, hook: BeforeSend) -> None:
        """Run *hook* on the final response, in registration order."""
        self._before_send.append(hook)

    def apply(self, response: Response) -> Response:
        for name, value in self.headers:
            response = response.with_header(name, value)
        for cookie in self.cookies:
            response = response.with_cookie(cookie)
        for hook in self._before_send:
            response = hook(response)
        return response
