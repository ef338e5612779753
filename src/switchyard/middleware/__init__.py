"""Built-in units — ordinary chain steps, no special casing in the executor.

    access_control -- Enforce aggregated access markers against Grants
    rate_limit -- Fixed-window limiter with soft delay and hard ceiling
    session_unit -- Signed cookie sessions (itsdangerous)
    require_auth -- Reject requests without an authenticated session
    trace_init -- Start the per-request trace record
"""

from switchyard.middleware.access import Grants, access_control
from switchyard.middleware.rate_limit import RateLimitConfig, RateLimiterModule, rate_limit
from switchyard.middleware.sessions import Session, SessionConfig, require_auth, session_unit
from switchyard.middleware.tracing import RequestTrace, logging_sink, trace_init

__all__ = [
    "Grants",
    "RateLimitConfig",
    "RateLimiterModule",
    "RequestTrace",
    "Session",
    "SessionConfig",
    "access_control",
    "logging_sink",
    "rate_limit",
    "require_auth",
    "session_unit",
    "trace_init",
]
