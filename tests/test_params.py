"""Tests for switchyard.routing.params — segment compilation and conversion."""

import pytest

from switchyard.errors import ConfigurationError, ValidationError
from switchyard.routing.params import (
    compile_segment,
    convert_param,
    join_paths,
    normalize_path,
    parse_path,
)


class TestCompileSegment:
    def test_static(self) -> None:
        seg = compile_segment("users")
        assert not seg.is_param
        assert seg.match("users") == {}
        assert seg.match("user") is None

    def test_bare_param(self) -> None:
        seg = compile_segment(":id")
        assert seg.names == ("id",)
        assert seg.match("42") == {"id": "42"}

    def test_literal_prefix(self) -> None:
        seg = compile_segment("user_:id")
        assert seg.match("user_42") == {"id": "42"}
        assert seg.match("admin_42") is None
        assert seg.literal_length == len("user_")

    def test_literal_suffix(self) -> None:
        seg = compile_segment(":slug.json")
        assert seg.match("post.json") == {"slug": "post"}
        assert seg.match("post.xml") is None

    def test_custom_pattern(self) -> None:
        seg = compile_segment(r"page_:n{\d+}")
        assert seg.match("page_3") == {"n": "3"}
        assert seg.match("page_x") is None

    def test_literal_text_is_escaped(self) -> None:
        seg = compile_segment("v1.:id")
        assert seg.match("v1.7") == {"id": "7"}
        assert seg.match("v1x7") is None

    def test_two_params_in_one_segment(self) -> None:
        seg = compile_segment(r":a{\d+}-:b")
        assert seg.match("12-xy") == {"a": "12", "b": "xy"}

    @pytest.mark.parametrize("bad", ["user:", "{x}", ":id}", r"x{\d}:id"])
    def test_malformed(self, bad: str) -> None:
        with pytest.raises(ConfigurationError):
            compile_segment(bad)

    def test_duplicate_name(self) -> None:
        with pytest.raises(ConfigurationError, match="Duplicate"):
            compile_segment(":a-:a")

    def test_invalid_regex(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid pattern"):
            compile_segment(":a{[}")

    def test_shape_erases_names(self) -> None:
        assert compile_segment("user_:id").shape == compile_segment("user_:uid").shape
        assert compile_segment(r":n{\d+}").shape != compile_segment(":n").shape

    def test_sort_key_prefers_literal_text(self) -> None:
        segments = [compile_segment(":id"), compile_segment("user_:id")]
        keys = sorted(segments, key=lambda s: s.sort_key())
        assert keys[0].value == "user_:id"


class TestPaths:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("", ""), ("/", ""), ("users", "/users"), ("/users/", "/users"), ("a/b", "/a/b")],
    )
    def test_normalize(self, raw: str, expected: str) -> None:
        assert normalize_path(raw) == expected

    def test_join(self) -> None:
        assert join_paths("/api", "users/", "", ":id") == "/api/users/:id"

    def test_parse(self) -> None:
        assert [s.value for s in parse_path("/api/users/user_:id")] == ["api", "users", "user_:id"]


class TestConvertParam:
    def test_int(self) -> None:
        assert convert_param("id", "42", int) == 42

    def test_float(self) -> None:
        assert convert_param("x", "1.5", float) == 1.5

    def test_str_default(self) -> None:
        assert convert_param("slug", "abc", str) == "abc"

    def test_bad_int(self) -> None:
        with pytest.raises(ValidationError) as info:
            convert_param("id", "abc", int)
        assert info.value.status == 400
        assert info.value.data == {"param": "id", "value": "abc"}
