"""Routing — a tree of mounted routers compiled into an immutable lookup.

Routers are built during setup; ``Router.compile()`` produces a
``RouteTree`` that is read-only for the rest of the process.
"""
