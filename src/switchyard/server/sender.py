"""ASGI response sending: one start message, one body message."""

from collections.abc import Iterator

from switchyard._internal.asgi import Send
from switchyard.http.response import Response

# 1xx, 204 and 304 carry no message body
_NO_BODY = frozenset({204, 304})


def _encode(name: str, value: str) -> tuple[bytes, bytes]:
    return name.lower().encode("latin-1"), value.encode("latin-1")


def _header_pairs(response: Response, body: bytes) -> Iterator[tuple[bytes, bytes]]:
    yield _encode("content-type", response.content_type)
    for name, value in response.headers:
        yield _encode(name, value)
    for cookie in response.cookies:
        yield _encode("set-cookie", cookie.to_header_value())
    yield _encode("content-length", str(len(body)))


async def send_response(response: Response, send: Send) -> None:
    """Send *response* through ASGI ``send``."""
    status = response.status
    body = b"" if status < 200 or status in _NO_BODY else response.body_bytes
    await send(
        {
            "type": "http.response.start",
            "status": status,
            "headers": list(_header_pairs(response, body)),
        }
    )
    await send({"type": "http.response.body", "body": body})
