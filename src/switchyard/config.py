"""Application configuration.

AppConfig is a frozen dataclass — immutable after creation, IDE-autocompletable,
no string-key dict lookups.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, secret_key="s3cr3t", routes_path="/routes")
    """

    debug: bool = False

    # Security
    secret_key: str = ""
    # Proxy header trusted for caller identity (first comma-separated hop wins)
    trusted_proxy_header: str | None = "x-forwarded-for"

    # Route listing endpoint (None = not mounted)
    routes_path: str | None = None

    # Request tracing — prepends the trace unit to every chain
    trace_enabled: bool = True

    # Rate limiter: prune expired windows once the key map exceeds this size.
    # None never evicts.
    rate_limit_max_keys: int | None = None
