"""Tests for switchyard.errors — exception hierarchy and envelope fields."""

import pytest

from switchyard.errors import (
    AccessDeniedError,
    AuthRequiredError,
    ChainAborted,
    ConfigurationError,
    HTTPError,
    MethodNotAllowed,
    RateLimitedError,
    RouteNotFoundError,
    SwitchyardError,
    ValidationError,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "cls",
        [ConfigurationError, ChainAborted, HTTPError],
    )
    def test_base(self, cls: type) -> None:
        assert issubclass(cls, SwitchyardError)

    @pytest.mark.parametrize(
        ("error", "status"),
        [
            (RouteNotFoundError(), 404),
            (MethodNotAllowed(frozenset({"GET"})), 405),
            (ValidationError(), 400),
            (AuthRequiredError(), 401),
            (AccessDeniedError(), 403),
            (RateLimitedError(10), 429),
        ],
    )
    def test_status(self, error: HTTPError, status: int) -> None:
        assert isinstance(error, HTTPError)
        assert error.status == status


class TestHTTPError:
    def test_str_with_message(self) -> None:
        assert str(HTTPError(status=418, message="teapot")) == "418: teapot"

    def test_str_without_message(self) -> None:
        assert str(HTTPError(status=500)) == "500"

    def test_envelope_omits_missing_data(self) -> None:
        envelope = HTTPError(status=409, message="Conflict").to_envelope()
        assert envelope == {"message": "Conflict", "status": 409}

    def test_envelope_includes_data(self) -> None:
        envelope = HTTPError(status=422, message="Bad", data={"field": "name"}).to_envelope()
        assert envelope == {"message": "Bad", "status": 422, "data": {"field": "name"}}

    def test_envelope_default_message(self) -> None:
        assert HTTPError(status=503).to_envelope()["message"] == "Error 503"

    def test_raisable(self) -> None:
        with pytest.raises(HTTPError) as info:
            raise HTTPError(status=402, message="Payment Required")
        assert info.value.status == 402


class TestSubclasses:
    def test_not_found_message(self) -> None:
        assert RouteNotFoundError().to_envelope() == {"message": "Not Found", "status": 404}

    def test_method_not_allowed_allow_header(self) -> None:
        error = MethodNotAllowed(frozenset({"POST", "GET"}))
        assert dict(error.headers) == {"Allow": "GET, POST"}
        assert "GET, POST" in error.message

    def test_rate_limited_retry_after(self) -> None:
        error = RateLimitedError(42)
        assert error.data == {"retry_after": 42}
        assert dict(error.headers) == {"Retry-After": "42"}

    def test_access_denied_carries_data(self) -> None:
        error = AccessDeniedError(data={"required": []})
        assert error.to_envelope()["data"] == {"required": []}
