"""Chain executor — walks the matched chain for one request.

Each unit returns a continuation (see ``chain.results``). The executor
interprets it:

- ``Proceed`` / ``None`` from a guard: run the next unit.
- ``Terminate(value)`` or any other value: the chain ends successfully.
- ``JumpTo(ids)``: run the named later units next, in chain order,
  skipping everything between them. Targets are checked against the
  chain computed for the route; an absent or earlier target is a
  ``ConfigurationError``.
- ``Fail(error)`` or a raised exception: the chain ends with the error.

The terminal handler runs at most once, because positions only ever
move forward. Nothing is rolled back when a unit fails after an
earlier one mutated shared state.
"""

import logging
from typing import Any

import anyio.lowlevel

from switchyard._internal.invoke import invoke
from switchyard.chain.results import Fail, JumpTo, Proceed, Terminate
from switchyard.chain.units import MiddlewareUnit, ResolverKind
from switchyard.context import ContextStore
from switchyard.errors import ChainAborted, ConfigurationError
from switchyard.http.request import Request
from switchyard.routing.params import convert_param
from switchyard.routing.route import CompiledRoute, RouteMatch

logger = logging.getLogger("switchyard.chain")


class ChainExecutor:
    """Stateless; one instance serves every request."""

    __slots__ = ()

    async def run(self, match: RouteMatch, store: ContextStore) -> Any:
        """Walk ``match.route.chain`` and return the terminal value."""
        route = match.route
        chain = route.chain
        last = len(chain) - 1
        request: Request = store.handle(Request)

        position = 0
        queued: list[int] = []
        while True:
            # Lets a concurrent disconnect watcher run between units
            await anyio.lowlevel.checkpoint()
            if request.disconnected:
                logger.debug("client disconnected before %s", chain[position].uid)
                raise ChainAborted(f"{request.method} {request.path}")

            chain_unit = chain[position]
            result = await self._call(route, position, chain_unit, match, store)
            logger.debug("%s -> %s", chain_unit.uid, type(result).__name__)

            if isinstance(result, Fail):
                raise result.error
            if isinstance(result, Terminate):
                return result.value
            if position == last:
                if isinstance(result, JumpTo):
                    msg = f"Terminal handler {chain_unit.uid!r} cannot jump; nothing follows it."
                    raise ConfigurationError(msg)
                return None if isinstance(result, Proceed) else result

            if isinstance(result, JumpTo):
                queued = self._jump_targets(route, position, result)
            elif result is not None and not isinstance(result, Proceed):
                return result

            position = queued.pop(0) if queued else position + 1

    def _jump_targets(self, route: CompiledRoute, position: int, jump: JumpTo) -> list[int]:
        targets: list[int] = []
        for uid in jump.targets:
            index = route.next_position(uid, position)
            if index is None:
                msg = (
                    f"{route.chain[position].uid!r} jumped to {uid!r}, which is not "
                    f"a later unit of {route.method} {route.path!r}."
                )
                raise ConfigurationError(msg)
            targets.append(index)
        return sorted(set(targets))

    async def _call(
        self,
        route: CompiledRoute,
        position: int,
        chain_unit: MiddlewareUnit,
        match: RouteMatch,
        store: ContextStore,
    ) -> Any:
        kwargs: dict[str, Any] = {}
        for resolver in chain_unit.resolvers:
            if resolver.kind is ResolverKind.CURSOR:
                kwargs[resolver.name] = route.cursor_at(position)
            elif resolver.kind is ResolverKind.HANDLE:
                kwargs[resolver.name] = store.handle(resolver.annotation)
            elif resolver.kind is ResolverKind.COMPONENT:
                kwargs[resolver.name] = store.resolve(resolver.annotation)
            elif resolver.name in match.path_params:
                kwargs[resolver.name] = convert_param(
                    resolver.name,
                    match.path_params[resolver.name],
                    resolver.annotation or str,
                )
            elif not resolver.required:
                kwargs[resolver.name] = resolver.default

        if chain_unit.owner is not None:
            owner = store.resolve(chain_unit.owner)
            return await invoke(chain_unit.func, owner, **kwargs)
        return await invoke(chain_unit.func, **kwargs)
