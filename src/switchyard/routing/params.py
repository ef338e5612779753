"""Path parameter syntax, compiled once per segment.

A segment is either static (``users``) or contains one or more
``:name`` tokens, optionally surrounded by literal text and optionally
followed by a custom pattern in braces::

    "users"           static
    ":id"             id  -> [^/]+
    "user_:id"        id  -> [^/]+ after the literal "user_"
    "page_:n{\\d+}"   n   -> \\d+ after the literal "page_"
    ":slug.json"      slug before the literal ".json"

Only the shape is checked here. Whether ``id`` is a number is the
business of the unit that declares ``id: int``.
"""

import re
from dataclasses import dataclass

from switchyard.errors import ConfigurationError, ValidationError

DEFAULT_PATTERN = r"[^/]+"

_TOKEN = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)(?:\{([^{}]+)\})?")

# Annotations a path parameter may be converted to
CONVERTERS: dict[type, type] = {str: str, int: int, float: float}


@dataclass(frozen=True, slots=True)
class SegmentPattern:
    """A compiled path segment."""

    value: str
    names: tuple[str, ...] = ()
    regex: re.Pattern[str] | None = None
    literal_length: int = 0

    @property
    def is_param(self) -> bool:
        return self.regex is not None

    @property
    def shape(self) -> str:
        """The segment with parameter names erased.

        ``user_:id`` and ``user_:uid`` share a shape, so two routes
        using them for the same method overlap.
        """
        if self.regex is None:
            return self.value
        return _TOKEN.sub(lambda m: "{" + (m.group(2) or DEFAULT_PATTERN) + "}", self.value)

    @property
    def custom(self) -> bool:
        """True when any token carries its own ``{pattern}``."""
        return any(m.group(2) for m in _TOKEN.finditer(self.value))

    def sort_key(self) -> tuple[int, bool, str]:
        """More literal text first, then custom patterns before the default
        catch-all, then pattern text; never insertion order.
        """
        return (-self.literal_length, not self.custom, self.shape)

    def match(self, part: str) -> dict[str, str] | None:
        """Captured values for *part*, or ``None`` if it does not fit."""
        if self.regex is None:
            return {} if part == self.value else None
        found = self.regex.fullmatch(part)
        if found is None:
            return None
        return found.groupdict()


def compile_segment(segment: str) -> SegmentPattern:
    """Compile a single path segment."""
    tokens = list(_TOKEN.finditer(segment))
    if not tokens:
        if ":" in segment or "{" in segment or "}" in segment:
            msg = f"Malformed path segment {segment!r}: expected ':name' or ':name{{pattern}}'."
            raise ConfigurationError(msg)
        return SegmentPattern(value=segment, literal_length=len(segment))

    parts: list[str] = []
    names: list[str] = []
    literal_length = 0
    cursor = 0
    for token in tokens:
        literal = segment[cursor : token.start()]
        if "{" in literal or "}" in literal or ":" in literal:
            msg = f"Malformed path segment {segment!r}."
            raise ConfigurationError(msg)
        literal_length += len(literal)
        parts.append(re.escape(literal))
        name, pattern = token.group(1), token.group(2) or DEFAULT_PATTERN
        if name in names:
            msg = f"Duplicate parameter {name!r} in segment {segment!r}."
            raise ConfigurationError(msg)
        names.append(name)
        parts.append(f"(?P<{name}>{pattern})")
        cursor = token.end()
    tail = segment[cursor:]
    if "{" in tail or "}" in tail or ":" in tail:
        msg = f"Malformed path segment {segment!r}."
        raise ConfigurationError(msg)
    literal_length += len(tail)
    parts.append(re.escape(tail))

    try:
        regex = re.compile("".join(parts))
    except re.error as exc:
        msg = f"Invalid pattern in path segment {segment!r}: {exc}"
        raise ConfigurationError(msg) from exc
    return SegmentPattern(
        value=segment,
        names=tuple(names),
        regex=regex,
        literal_length=literal_length,
    )


def normalize_path(path: str) -> str:
    """``"users/"`` -> ``"/users"``; the empty path stays empty."""
    stripped = path.strip("/")
    return f"/{stripped}" if stripped else ""


def join_paths(*paths: str) -> str:
    """Concatenate prefixes: ``join_paths("/api", "users/")`` -> ``"/api/users"``."""
    return "".join(normalize_path(p) for p in paths)


def parse_path(path: str) -> list[SegmentPattern]:
    """Compile every segment of *path*."""
    return [compile_segment(part) for part in path.strip("/").split("/") if part]


def convert_param(name: str, value: str, annotation: type) -> object:
    """Convert a captured value to the declaring unit's annotation.

    Raises ``ValidationError`` (400) when the value does not convert.
    """
    target = CONVERTERS.get(annotation, str)
    try:
        return target(value)
    except ValueError as exc:
        msg = f"Invalid value for path parameter {name!r}"
        raise ValidationError(msg, data={"param": name, "value": value}) from exc
