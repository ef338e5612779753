"""Request tracing — one structured log record per request.

The ASGI handler seeds a ``RequestTrace`` component into every request's
store. ``trace_init`` is the first unit of every chain when tracing is
enabled: it stamps the start time and arms the sink. When the response
is finalized the handler calls ``complete()``, which fires every
completion hook exactly once.

Other units contribute to the record::

    async def load_user(trace: RequestTrace, profile: Profile, id: int) -> None:
        trace.attach_component(profile)                # snapshotted at flush
        trace.watch("lookup", {"id": id})              # copied now
        trace.attach("cache", lambda: cache.stats())   # read at flush
"""

import copy
import json
import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field, fields
from typing import Any

from switchyard._internal.types import TraceSink
from switchyard.chain.units import unit
from switchyard.context import component, component_key
from switchyard.http.request import Request
from switchyard.routing.route import RouteMatch

logger = logging.getLogger("switchyard.trace")

IDEMPOTENCE_HEADERS = ("idempotency-key", "x-request-id")


@dataclass(slots=True)
class LogEntry:
    """The record handed to the sink. Times are seconds since the epoch."""

    idempotence_key: str
    created_at: float
    start_time: float | None
    current_time: float
    finish_time: float
    route: str | None
    method: str
    status: int
    lifetime_ms: float
    duration_ms: float | None
    error: str | None = None
    attachments: dict[str, Any] = field(default_factory=dict)
    watches: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@component("switchyard.trace")
class RequestTrace:
    """Per-request trace state.

    Constructible with no arguments so a unit can declare it even when
    tracing is off; such a trace has no sink and records nothing.
    """

    def __init__(
        self,
        *,
        idempotence_key: str | None = None,
        method: str = "",
        sink: TraceSink | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._clock = clock
        self._sink = sink
        self.idempotence_key = idempotence_key or uuid.uuid4().hex
        self.method = method
        self.route: str | None = None
        self.created_at = clock()
        self.start_time: float | None = None
        self.current_time = self.created_at
        self._attachments: dict[str, Callable[[], Any]] = {}
        self._watches: dict[str, Any] = {}
        self._hooks: list[TraceSink] = []
        self._completed = False

    @classmethod
    def for_request(
        cls,
        request: Request,
        sink: TraceSink | None = None,
        clock: Callable[[], float] = time.time,
    ) -> "RequestTrace":
        """Build the trace for *request*, taking its key from the request headers."""
        key = None
        for name in IDEMPOTENCE_HEADERS:
            key = request.headers.get(name)
            if key:
                break
        return cls(idempotence_key=key, method=request.method, sink=sink, clock=clock)

    @property
    def started(self) -> bool:
        return self.start_time is not None

    @property
    def completed(self) -> bool:
        return self._completed

    def start(self, route: str | None = None) -> None:
        """Stamp the start time and register the sink as a completion hook."""
        if self.started:
            return
        self.start_time = self._clock()
        self.current_time = self.start_time
        self.route = route
        if self._sink is not None:
            self._hooks.append(self._sink)

    def on_complete(self, hook: TraceSink) -> None:
        self._hooks.append(hook)

    def attach(self, key: str, read: Callable[[], Any]) -> None:
        """Register *read*, evaluated only when the record is flushed."""
        self._attachments[key] = read

    def attach_component(self, instance: Any) -> None:
        """Snapshot ``vars(instance)`` at flush time."""
        key = component_key(type(instance))
        name = key.name if key is not None else type(instance).__qualname__
        self._attachments[name] = lambda: dict(vars(instance))

    def watch(self, name: str, fragment: Any) -> None:
        """Copy *fragment* into the record now."""
        self.current_time = self._clock()
        self._watches[name] = copy.deepcopy(fragment)

    def complete(self, status: int, error: BaseException | str | None = None) -> LogEntry | None:
        """Finalize the record and fire the hooks.

        Only the first call does anything. Returns ``None`` when no hook
        is registered (the chain never started) or on repeat calls.
        """
        if self._completed:
            return None
        self._completed = True
        if not self._hooks:
            return None

        finish = self._clock()
        entry = LogEntry(
            idempotence_key=self.idempotence_key,
            created_at=self.created_at,
            start_time=self.start_time,
            current_time=self.current_time,
            finish_time=finish,
            route=self.route,
            method=self.method,
            status=status,
            lifetime_ms=round((finish - self.created_at) * 1000, 3),
            duration_ms=(
                round((finish - self.start_time) * 1000, 3) if self.start_time is not None else None
            ),
            error=str(error) if error is not None else None,
            attachments={key: _read(key, read) for key, read in self._attachments.items()},
            watches=dict(self._watches),
        )
        record = entry.to_dict()
        for hook in self._hooks:
            try:
                hook(record)
            except Exception:
                logger.exception("Trace hook %r failed for %s", hook, self.idempotence_key)
        return entry


def _read(key: str, read: Callable[[], Any]) -> Any:
    """Evaluate one deferred attachment; a failing read is recorded, not raised."""
    try:
        return read()
    except Exception as exc:
        logger.warning("Trace attachment %r failed: %s", key, exc)
        return {"error": f"{type(exc).__name__}: {exc}"}


@unit(uid="switchyard.trace_init")
def trace_init(trace: RequestTrace, match: RouteMatch) -> None:
    trace.start(match.route.path)


def logging_sink(record: dict[str, Any]) -> None:
    """Default sink: one JSON line on ``switchyard.trace``.

    Non-2xx records are logged at ERROR, everything else at INFO.
    """
    status = record.get("status", 500)
    level = logging.INFO if 200 <= status < 300 else logging.ERROR
    logger.log(level, "%s", json.dumps(record, default=str, sort_keys=True))
