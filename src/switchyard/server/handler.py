"""ASGI handler — translates ASGI scope/messages to switchyard types.

The only component that touches raw ASGI directly. Builds the typed
Request and the per-request store, runs the matched chain, and sends
exactly one envelope back through ASGI send().
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any

import anyio

from switchyard._internal.asgi import Receive, Scope, Send
from switchyard._internal.types import TraceSink
from switchyard.chain.executor import ChainExecutor
from switchyard.config import AppConfig
from switchyard.context import ComponentKey, ContextStore
from switchyard.errors import ChainAborted, HTTPError
from switchyard.http.meta import ResponseMeta
from switchyard.http.request import Request
from switchyard.http.response import Response
from switchyard.middleware.tracing import RequestTrace
from switchyard.routing.route import RouteMatch
from switchyard.routing.tree import RouteTree
from switchyard.server.errors import (
    CLIENT_CLOSED,
    http_error_envelope,
    internal_error_envelope,
    success_envelope,
)
from switchyard.server.sender import send_response

logger = logging.getLogger("switchyard.server")

_executor = ChainExecutor()


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    tree: RouteTree,
    config: AppConfig,
    providers: Mapping[ComponentKey, Callable[[], Any]] | None = None,
    trace_sink: TraceSink | None = None,
) -> None:
    """Process a single HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope, receive)
    trace = RequestTrace.for_request(request, trace_sink)

    store = ContextStore(providers)
    store.provide(trace)
    store.bind(AppConfig, config)
    store.bind(RouteTree, tree)
    store.bind(Request, request)

    # Stays 499 unless a response is built; cancellation and aborts keep it
    status = CLIENT_CLOSED
    error: BaseException | None = None
    try:
        try:
            match = tree.match(request.method, request.path)
            store.bind(Request, request.with_path_params(match.path_params))
            store.bind(RouteMatch, match)
            response = success_envelope(await _run_chain(match, store))
        except ChainAborted as exc:
            error = exc
            logger.debug("Client disconnected: %s", exc)
            return
        except HTTPError as exc:
            error = exc
            response = http_error_envelope(exc)
        except Exception as exc:
            error = exc
            response = internal_error_envelope(exc, debug=config.debug)

        response = _apply_meta(response, store, config)
        status = response.status
        await send_response(response, send)
    finally:
        _complete(trace, status, error)


async def _run_chain(match: RouteMatch, store: ContextStore) -> Any:
    """Walk the chain next to a watcher that cancels it on client disconnect."""
    request: Request = store.handle(Request)
    value: Any = None
    failure: Exception | None = None
    async with anyio.create_task_group() as tg:
        tg.start_soon(_watch_disconnect, request, tg.cancel_scope)
        try:
            value = await _executor.run(match, store)
        except Exception as exc:
            failure = exc
        tg.cancel_scope.cancel()

    if request.disconnected:
        raise ChainAborted(f"{request.method} {request.path}")
    if failure is not None:
        raise failure
    return value


async def _watch_disconnect(request: Request, scope: anyio.CancelScope) -> None:
    await request.wait_disconnected()
    logger.debug("Client went away mid-chain: %s %s", request.method, request.path)
    scope.cancel()


def _apply_meta(response: Response, store: ContextStore, config: AppConfig) -> Response:
    meta = store.get(ResponseMeta)
    if meta is None:
        return response
    try:
        return meta.apply(response)
    except Exception as exc:
        return internal_error_envelope(exc, debug=config.debug)


def _complete(trace: RequestTrace, status: int, error: BaseException | None) -> None:
    try:
        trace.complete(status, error)
    except Exception:
        logger.exception("Trace completion failed for %s", trace.idempotence_key)
