"""Chains — ordered middleware units, continuation results, and the executor.

Units are registered once and never change. The executor walks the
chain computed for one matched route, once per request.
"""
