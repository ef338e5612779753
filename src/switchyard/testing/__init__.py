"""Test utilities for switchyard applications.

    from switchyard.testing import TestClient, assert_envelope
"""

from switchyard.testing.assertions import assert_envelope
from switchyard.testing.client import TestClient

__all__ = [
    "TestClient",
    "assert_envelope",
]
