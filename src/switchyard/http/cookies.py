"""Cookies: the ``Cookie`` request header and ``Set-Cookie`` directives."""

from collections.abc import Iterator
from dataclasses import dataclass


def parse_cookies(header: str) -> dict[str, str]:
    """``"a=1; b=2"`` -> ``{"a": "1", "b": "2"}``. Pairs without a name are skipped."""
    pairs = (part.partition("=") for part in header.split(";"))
    return {name.strip(): value.strip() for name, sep, value in pairs if sep and name.strip()}


@dataclass(frozen=True, slots=True)
class SetCookie:
    """One ``Set-Cookie`` header, queued on a Response or on ``ResponseMeta``."""

    name: str
    value: str
    max_age: int | None = None
    path: str = "/"
    secure: bool = False
    httponly: bool = True
    samesite: str = "lax"

    def _attributes(self) -> Iterator[str]:
        if self.max_age is not None:
            yield f"Max-Age={self.max_age}"
        if self.path:
            yield f"Path={self.path}"
        if self.secure:
            yield "Secure"
        if self.httponly:
            yield "HttpOnly"
        if self.samesite:
            yield f"SameSite={self.samesite}"

    def to_header_value(self) -> str:
        return "; ".join((f"{self.name}={self.value}", *self._attributes()))
