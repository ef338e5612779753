"""Route listing — a serializable description of the compiled tree.

Shared by the ``AppConfig.routes_path`` endpoint and ``switchyard routes``.
Every listed ``{method, path}`` matches back to the handler it names.
"""

from typing import Any

from switchyard.chain.units import unit
from switchyard.markers import flatten
from switchyard.routing.route import CompiledRoute
from switchyard.routing.tree import RouteTree


def describe_route(route: CompiledRoute) -> dict[str, Any]:
    return {
        "method": route.method,
        "path": route.path,
        "handler": route.terminal.uid,
        "chain": [chain_unit.uid for chain_unit in route.chain],
        "markers": {
            name: [entry.to_dict() for entry in flatten(groups)]
            for name, groups in route.markers.items()
        },
        "responses": {str(status): schema for status, schema in route.responses.items()},
    }


def describe_routes(tree: RouteTree) -> list[dict[str, Any]]:
    """One description per compiled route, in tree order."""
    return [describe_route(route) for route in tree.routes]


@unit(uid="switchyard.list_routes")
def list_routes(tree: RouteTree) -> list[dict[str, Any]]:
    return describe_routes(tree)
