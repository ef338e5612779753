"""Read-only multi-valued string mappings.

``Headers`` and ``QueryParams`` share one shape: ``m[key]`` is the
first value, ``m.get_list(key)`` is every value in arrival order.
Headers additionally fold names to lower case.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping


class MultiValueMap(Mapping[str, str]):
    __slots__ = ("_values",)

    def __init__(self, pairs: Iterable[tuple[str, str]] = ()) -> None:
        values: dict[str, list[str]] = {}
        for key, value in pairs:
            values.setdefault(self._fold(key), []).append(value)
        self._values = values

    @staticmethod
    def _fold(key: str) -> str:
        return key

    def __getitem__(self, key: str) -> str:
        return self._values[self._fold(key)][0]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._fold(key) in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({dict(self.items())!r})"

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        found = self._values.get(self._fold(key))
        return found[0] if found else default

    def get_list(self, key: str) -> list[str]:
        return list(self._values.get(self._fold(key), ()))


class Headers(MultiValueMap):
    """Case-insensitive request headers decoded from ASGI byte pairs."""

    __slots__ = ("_raw",)

    def __init__(self, raw: tuple[tuple[bytes, bytes], ...] = ()) -> None:
        super().__init__((name.decode("latin-1"), value.decode("latin-1")) for name, value in raw)
        self._raw = raw

    @staticmethod
    def _fold(key: str) -> str:
        return key.lower()

    @classmethod
    def from_dict(cls, headers: Mapping[str, str]) -> Headers:
        return cls(
            tuple(
                (name.lower().encode("latin-1"), value.encode("latin-1"))
                for name, value in headers.items()
            )
        )

    def first_hop(self, key: str) -> str | None:
        """First entry of a comma-separated proxy chain header, if any.

        ``X-Forwarded-For: client, proxy1, proxy2`` yields ``"client"``.
        """
        hop = (self.get(key) or "").split(",")[0].strip()
        return hop or None

    @property
    def raw(self) -> tuple[tuple[bytes, bytes], ...]:
        return self._raw
