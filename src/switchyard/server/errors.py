"""Response envelopes.

Every request ends in exactly one envelope. Terminal values become a
200 JSON body; errors become ``{"message", "status", "data"?}`` with
the transport status set to match.
"""

import logging
from typing import Any

from switchyard.errors import ConfigurationError, HTTPError
from switchyard.http.response import Response

logger = logging.getLogger("switchyard.server")

# Status recorded for requests whose client went away mid-chain
CLIENT_CLOSED = 499


def success_envelope(value: Any) -> Response:
    """Wrap a terminal value. ``Response`` values pass through as-is."""
    if isinstance(value, Response):
        return value
    return Response.json(value)


def http_error_envelope(exc: HTTPError) -> Response:
    """The envelope for a structured error, with its headers."""
    logger.debug("HTTP %d: %s", exc.status, exc.message)
    response = Response.json(exc.to_envelope(), status=exc.status)
    for name, value in exc.headers:
        response = response.with_header(name, value)
    return response


def internal_error_envelope(exc: Exception, *, debug: bool) -> Response:
    """500 envelope for anything that is not an ``HTTPError``.

    Logged with traceback. The exception text is only exposed when
    ``debug`` is on.
    """
    if isinstance(exc, ConfigurationError):
        logger.exception("Configuration error surfaced at request time")
    else:
        logger.exception("Unhandled exception in chain")
    envelope: dict[str, Any] = {"message": "Internal Server Error", "status": 500}
    if debug:
        envelope["data"] = {"error": f"{type(exc).__name__}: {exc}"}
    return Response.json(envelope, status=500)
