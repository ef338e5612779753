"""Rate limiting — a fixed-window limiter unit with a soft and a hard threshold.

Each key gets a window that starts with its first request. Within a
window, requests ``1..safe_requests`` pass at once, requests up to
``max_requests`` pass after ``wait_seconds``, and anything beyond is
rejected with 429 until the window ends::

    users = Router("/users")
    users.use(rate_limit(RateLimitConfig(10, 30, 60, 2)))

The key is the scope prefix plus the caller's identity, so two routers
that share a scope name also share the counters.
"""

import logging
import math
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

import anyio

from switchyard.chain.units import Cursor, MiddlewareUnit, as_unit
from switchyard.config import AppConfig
from switchyard.context import ContextStore
from switchyard.errors import ConfigurationError, RateLimitedError
from switchyard.http.request import Request
from switchyard.middleware.sessions import Session
from switchyard.middleware.tracing import RequestTrace

logger = logging.getLogger("switchyard.ratelimit")


@dataclass(frozen=True, slots=True)
class RateLimitConfig:
    """Thresholds for one protected scope."""

    safe_requests: int
    max_requests: int
    in_seconds: float
    wait_seconds: float = 0

    def __post_init__(self) -> None:
        if not 0 <= self.safe_requests <= self.max_requests:
            msg = (
                "RateLimitConfig needs 0 <= safe_requests <= max_requests, got "
                f"safe_requests={self.safe_requests}, max_requests={self.max_requests}."
            )
            raise ConfigurationError(msg)
        if self.in_seconds <= 0:
            msg = f"RateLimitConfig.in_seconds must be positive, got {self.in_seconds}."
            raise ConfigurationError(msg)
        if self.wait_seconds < 0:
            msg = f"RateLimitConfig.wait_seconds must not be negative, got {self.wait_seconds}."
            raise ConfigurationError(msg)

    def describe(self) -> str:
        """``"10/30 per 60s, wait 2s"``, used in unit ids and error messages."""
        return (
            f"{self.safe_requests}/{self.max_requests} per {self.in_seconds:g}s, "
            f"wait {self.wait_seconds:g}s"
        )


class Verdict(Enum):
    PASS = "pass"
    DELAY = "delay"
    REJECT = "reject"


@dataclass(slots=True)
class WindowState:
    started_at: float
    ends_at: float
    count: int = 0


@dataclass(frozen=True, slots=True)
class Decision:
    verdict: Verdict
    count: int
    retry_after: int = 0


class RateLimiterStore:
    """Counters for every key, shared by every request.

    ``hit()`` increments and compares under one lock and never awaits,
    so concurrent requests for the same key are counted exactly.
    """

    __slots__ = ("_clock", "_lock", "_state")

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._state: dict[str, WindowState] = {}

    def hit(self, key: str, config: RateLimitConfig, max_keys: int | None = None) -> Decision:
        with self._lock:
            now = self._clock()
            state = self._state.get(key)
            if state is None or now >= state.ends_at:
                state = WindowState(started_at=now, ends_at=now + config.in_seconds)
                self._state[key] = state
                if max_keys is not None and len(self._state) > max_keys:
                    self._prune(now)
            state.count += 1

            if state.count <= config.safe_requests:
                return Decision(Verdict.PASS, state.count)
            if state.count <= config.max_requests:
                return Decision(Verdict.DELAY, state.count)
            retry_after = max(1, math.ceil(state.ends_at - now))
            return Decision(Verdict.REJECT, state.count, retry_after)

    def _prune(self, now: float) -> None:
        # Live windows are kept even past the bound; dropping one would reset its limit.
        expired = [key for key, state in self._state.items() if now >= state.ends_at]
        for key in expired:
            del self._state[key]
        logger.debug("pruned %d expired rate limit windows", len(expired))

    def __len__(self) -> int:
        return len(self._state)

    def __contains__(self, key: object) -> bool:
        return key in self._state


def caller_identity(request: Request, session: Session | None, proxy_header: str | None) -> str:
    """Authenticated session id, then proxy header first hop, then client address."""
    if session is not None and session.authenticated:
        return f"session:{session.id}"
    if proxy_header:
        forwarded = request.headers.first_hop(proxy_header)
        if forwarded:
            return forwarded
    return request.client_host or "unknown"


class RateLimiter:
    """The chain unit for one scope."""

    __slots__ = ("_sleep", "_store", "config", "scope")

    def __init__(
        self,
        config: RateLimitConfig,
        store: RateLimiterStore,
        sleep: Callable[[float], Awaitable[None]],
        scope: str | None = None,
    ) -> None:
        self.config = config
        self.scope = scope
        self._store = store
        self._sleep = sleep

    def key_for(
        self,
        cursor: Cursor,
        request: Request,
        context: ContextStore,
        app_config: AppConfig,
    ) -> str:
        prefix = self.scope if self.scope is not None else cursor.prefix
        identity = caller_identity(request, context.get(Session), app_config.trusted_proxy_header)
        return f"{prefix}#{identity}"

    async def __call__(
        self,
        cursor: Cursor,
        request: Request,
        context: ContextStore,
        app_config: AppConfig,
    ) -> None:
        key = self.key_for(cursor, request, context, app_config)
        decision = self._store.hit(key, self.config, app_config.rate_limit_max_keys)

        trace = context.get(RequestTrace)
        if trace is not None:
            trace.watch(
                "rate_limit",
                {"key": key, "count": decision.count, "verdict": decision.verdict.value},
            )

        if decision.verdict is Verdict.REJECT:
            logger.info("rate limit exceeded for %s (%d requests)", key, decision.count)
            raise RateLimitedError(decision.retry_after)
        if decision.verdict is Verdict.DELAY:
            logger.debug(
                "delaying %s by %ss (request %d)", key, self.config.wait_seconds, decision.count
            )
            await self._sleep(self.config.wait_seconds)


class RateLimiterModule:
    """Builds limiter units and memoizes them by scope key."""

    __slots__ = ("_lock", "_sleep", "_units", "store")

    def __init__(
        self,
        store: RateLimiterStore | None = None,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        self.store = store if store is not None else RateLimiterStore()
        self._sleep = sleep
        self._lock = threading.Lock()
        self._units: dict[object, tuple[RateLimitConfig, MiddlewareUnit]] = {}

    def limit(self, config: RateLimitConfig, scope: str | None = None) -> MiddlewareUnit:
        """Return the unit for *scope*, or for *config* when no scope is named.

        Every caller asking for the same scope gets the same unit, and so
        the same counters. Asking for a known scope with different
        thresholds raises ``ConfigurationError``.
        """
        memo_key: object = scope if scope is not None else config
        with self._lock:
            existing = self._units.get(memo_key)
            if existing is not None:
                known, created = existing
                if known != config:
                    msg = (
                        f"Rate limit scope {scope!r} is already limited to {known.describe()}; "
                        f"cannot also limit it to {config.describe()}."
                    )
                    raise ConfigurationError(msg)
                return created
            limiter = RateLimiter(config, self.store, self._sleep, scope)
            label = scope if scope is not None else config.describe()
            created = as_unit(limiter, uid=f"switchyard.rate_limit[{label}]")
            self._units[memo_key] = (config, created)
            return created


_default_module = RateLimiterModule()


def rate_limit(config: RateLimitConfig, scope: str | None = None) -> MiddlewareUnit:
    """Limiter unit backed by the process-wide store."""
    return _default_module.limit(config, scope)
