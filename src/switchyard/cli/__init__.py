"""Switchyard CLI — route inspection.

Entry point registered as ``switchyard`` in ``pyproject.toml``::

    [project.scripts]
    switchyard = "switchyard.cli:main"
"""

import argparse
import sys


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``switchyard`` command."""
    parser = argparse.ArgumentParser(
        prog="switchyard",
        description="Switchyard — request pipelines built from mounted middleware chains.",
    )
    parser.add_argument(
        "--log-level",
        default="warning",
        help="Logging level for switchyard loggers (default: warning)",
    )
    subparsers = parser.add_subparsers(dest="command")

    # -- switchyard routes -------------------------------------------------
    routes_parser = subparsers.add_parser("routes", help="List compiled routes")
    routes_parser.add_argument(
        "app",
        help="Import string (e.g. myapp:app)",
    )
    routes_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full listing (chains, markers, responses) as JSON",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    from switchyard.cli._logging import configure_logging

    configure_logging(args.log_level)

    if args.command == "routes":
        from switchyard.cli._routes import run_routes

        run_routes(args)
