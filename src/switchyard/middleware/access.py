"""Access control — enforcement side of marker aggregation.

``access_control`` is a marker source named ``"access"``. Placing it in
a router's chain does two things:

1. At compile time, every route below that router is marked with the
   scopes between the router and the route (see ``switchyard.markers``).
2. At request time, the unit checks the caller's ``Grants`` against the
   groups aggregated for the matched route. Every group must be met by
   at least one held entry.

Usage::

    api = Router("/api")
    api.use(session_unit(), access_control)

    # A grant for the whole API:
    grants.grant(MarkerEntry.for_prefix("/api"))
    # Or for one operation only:
    grants.grant(MarkerEntry.for_route("put", "/api/users/user_:id"))
"""

import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from switchyard.chain.units import unit
from switchyard.context import component
from switchyard.errors import AccessDeniedError, ConfigurationError
from switchyard.markers import Marker, MarkerEntry, MarkerGroup
from switchyard.routing.route import RouteMatch

logger = logging.getLogger("switchyard.access")

ACCESS = "access"


@component("switchyard.grants")
class Grants:
    """The marker entries the caller holds for this request."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Iterable[MarkerEntry | Mapping[str, Any]] = ()) -> None:
        self._entries: set[MarkerEntry] = set()
        self.grant(*entries)

    def grant(self, *entries: MarkerEntry | Mapping[str, Any]) -> None:
        for entry in entries:
            if not isinstance(entry, MarkerEntry):
                entry = MarkerEntry.from_dict(entry)
            self._entries.add(entry)

    def satisfies(self, group: MarkerGroup) -> bool:
        """True when at least one entry of *group* is held."""
        return any(entry in self._entries for entry in group)

    def __contains__(self, entry: object) -> bool:
        return entry in self._entries

    def __iter__(self) -> Iterator[MarkerEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


@unit(uid="switchyard.access_control", marker=Marker(ACCESS))
def access_control(match: RouteMatch, grants: Grants) -> None:
    groups = match.markers.get(ACCESS, ())
    if not groups or not all(groups):
        # The marker table is built from the same chain this unit runs in,
        # so an empty result means the table and the chain disagree.
        msg = f"No access markers were aggregated for {match.route.method} {match.route.path!r}."
        raise ConfigurationError(msg)

    for group in groups:
        if not grants.satisfies(group):
            logger.debug("access denied for %s %s", match.route.method, match.route.path)
            raise AccessDeniedError(data={"required": [entry.to_dict() for entry in group]})
