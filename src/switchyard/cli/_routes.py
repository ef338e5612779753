"""``switchyard routes`` — list compiled routes.

Resolves an import string to an App, freezes it, and prints every route
with its handler and aggregated markers.
"""

import argparse
import json
import sys

from switchyard.cli._resolve import resolve_app
from switchyard.errors import ConfigurationError
from switchyard.listing import describe_routes


def run_routes(args: argparse.Namespace) -> None:
    """Print METHOD, PATH, HANDLER and MARKERS for each route, or JSON with ``--json``."""
    try:
        app = resolve_app(args.app)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    try:
        listing = describe_routes(app.tree)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    if args.json:
        print(json.dumps(listing, indent=2, default=str))
        return

    if not listing:
        print("No routes registered.")
        return

    rows: list[tuple[str, str, str, str]] = [
        (item["method"], item["path"], item["handler"], ", ".join(sorted(item["markers"])))
        for item in listing
    ]

    max_method = max(max(len(r[0]) for r in rows), 6)  # "METHOD" header
    max_path = max(max(len(r[1]) for r in rows), 4)  # "PATH" header
    max_handler = max(max(len(r[2]) for r in rows), 7)  # "HANDLER" header

    fmt = f"{{:<{max_method}}}  {{:<{max_path}}}  {{:<{max_handler}}}  {{}}"
    print(fmt.format("METHOD", "PATH", "HANDLER", "MARKERS").rstrip())
    print("-" * min(max_method + max_path + max_handler + 13, 100))
    for row in rows:
        print(fmt.format(*row).rstrip())
