"""Envelope assertion helpers for switchyard tests."""

from typing import Any

from switchyard.http.response import Response

_MISSING = object()


def assert_envelope(
    response: Response,
    status: int,
    *,
    message: str | None = None,
    data: Any = _MISSING,
) -> dict[str, Any]:
    """Assert *response* is an error envelope with the given fields.

    Returns the decoded envelope for further checks.
    """
    assert response.status == status, (
        f"Expected status {status}, got {response.status}.\n"
        f"Response body: {response.text[:500]}"
    )
    envelope = response.parsed()
    assert isinstance(envelope, dict), f"Response body is not an envelope: {response.text[:500]}"
    assert envelope.get("status") == status, (
        f"Envelope status {envelope.get('status')!r} does not match transport status {status}"
    )
    if message is not None:
        assert envelope.get("message") == message, (
            f"Expected message {message!r}, got {envelope.get('message')!r}"
        )
    if data is not _MISSING:
        assert envelope.get("data") == data, f"Expected data {data!r}, got {envelope.get('data')!r}"
    return envelope
