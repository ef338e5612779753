"""Tests for switchyard.routing — router building, compilation, and matching."""

import pytest

from switchyard.chain.units import endpoint, guard, unit
from switchyard.context import component
from switchyard.errors import ConfigurationError, MethodNotAllowed, RouteNotFoundError
from switchyard.routing.router import Router


@unit(uid="root.mw")
def root_mw() -> None:
    pass


@unit(uid="api.mw")
def api_mw() -> None:
    pass


@unit(uid="users.mw")
def users_mw() -> None:
    pass


def build_tree():
    root = Router()
    root.use(root_mw)

    api = Router("/api")
    api.use(api_mw)

    users = Router("/users")
    users.use(users_mw)

    @users.put("/user_:id", uid="users.update")
    def update(id: int) -> dict:
        return {"id": id}

    @users.get("", uid="users.list")
    def list_users() -> list:
        return []

    api.mount("", users)
    root.mount("", api)
    return root.compile()


class TestCompile:
    def test_chain_is_root_first_concatenation(self) -> None:
        tree = build_tree()
        match = tree.match("PUT", "/api/users/user_42")
        assert [u.uid for u in match.route.chain] == [
            "root.mw",
            "api.mw",
            "users.mw",
            "users.update",
        ]
        assert match.route.terminal.uid == "users.update"

    def test_routes_depth_first(self) -> None:
        tree = build_tree()
        assert [(r.method, r.path) for r in tree.routes] == [
            ("GET", "/api/users"),
            ("PUT", "/api/users/user_:id"),
        ]

    def test_scopes(self) -> None:
        tree = build_tree()
        route = tree.match("PUT", "/api/users/user_1").route
        assert route.scopes == ("/api", "/api/users", "/api/users/user_:id")

    def test_mount_prefix_composes(self) -> None:
        root = Router()
        child = Router("/b")

        @child.get("/c")
        def handler() -> str:
            return "ok"

        root.mount("/a", child)
        tree = root.compile()
        assert tree.routes[0].path == "/a/b/c"

    def test_overlap_rejected(self) -> None:
        root = Router()
        first, second = Router(), Router()

        @first.get("/items/:id")
        def one(id: str) -> str:
            return id

        @second.get("/items/:key")
        def two(key: str) -> str:
            return key

        root.mount("", first)
        root.mount("", second)
        with pytest.raises(ConfigurationError, match="overlap"):
            root.compile()

    def test_same_path_different_methods_is_fine(self) -> None:
        root = Router()

        @root.get("/items")
        def read() -> str:
            return "r"

        @root.post("/items")
        def write() -> str:
            return "w"

        assert len(root.compile().routes) == 2

    def test_duplicate_terminal_on_node(self) -> None:
        root = Router()

        @root.get("/x")
        def one() -> str:
            return "1"

        with pytest.raises(ConfigurationError, match="already has a handler"):

            @root.get("/x")
            def two() -> str:
                return "2"

    def test_missing_path_param(self) -> None:
        root = Router()

        @root.get("/items")
        def show(id: int) -> int:
            return id

        with pytest.raises(ConfigurationError, match="'id'"):
            root.compile()

    def test_optional_param_may_be_missing(self) -> None:
        root = Router()

        @root.get("/items")
        def show(page: int = 1) -> int:
            return page

        root.compile()

    def test_mount_into_itself(self) -> None:
        root = Router()
        with pytest.raises(ConfigurationError):
            root.mount("", root)

    def test_mount_cycle(self) -> None:
        a, b = Router("/a"), Router("/b")
        a.mount("", b)
        b.mount("", a)
        with pytest.raises(ConfigurationError, match="inside itself"):
            a.compile()

    def test_malformed_prefix(self) -> None:
        with pytest.raises(ConfigurationError):
            Router("/bad{")

    def test_component_key_collision(self) -> None:
        @component("tests.router.dup")
        class First:
            pass

        @component("tests.router.dup")
        class Second:
            pass

        root = Router()

        @root.get("/a")
        def a(first: First) -> str:
            return "a"

        @root.get("/b")
        def b(second: Second) -> str:
            return "b"

        with pytest.raises(ConfigurationError, match="tests.router.dup"):
            root.compile()


class TestMatch:
    def test_params_captured(self) -> None:
        match = build_tree().match("PUT", "/api/users/user_42")
        assert match.path_params == {"id": "42"}

    def test_trailing_slash(self) -> None:
        match = build_tree().match("GET", "/api/users/")
        assert match.route.path == "/api/users"

    def test_not_found(self) -> None:
        with pytest.raises(RouteNotFoundError):
            build_tree().match("GET", "/nope")

    def test_literal_prefix_mismatch_is_not_found(self) -> None:
        with pytest.raises(RouteNotFoundError):
            build_tree().match("PUT", "/api/users/admin_42")

    def test_method_not_allowed(self) -> None:
        with pytest.raises(MethodNotAllowed) as info:
            build_tree().match("DELETE", "/api/users/user_1")
        assert dict(info.value.headers) == {"Allow": "PUT"}

    def test_lowercase_method(self) -> None:
        assert build_tree().match("put", "/api/users/user_1").route.method == "PUT"

    def test_static_beats_param(self) -> None:
        root = Router()

        @root.get("/items/:id", uid="by_id")
        def by_id(id: str) -> str:
            return id

        @root.get("/items/new", uid="new")
        def new() -> str:
            return "new"

        tree = root.compile()
        assert tree.match("GET", "/items/new").route.terminal.uid == "new"
        assert tree.match("GET", "/items/7").route.terminal.uid == "by_id"

    @pytest.mark.parametrize("reverse", [False, True])
    def test_specificity_not_insertion_order(self, reverse: bool) -> None:
        root = Router()

        def bare(id: str) -> str:
            return id

        def prefixed(id: str) -> str:
            return id

        registrations = [("/:id", bare, "bare"), ("/user_:id", prefixed, "prefixed")]
        if reverse:
            registrations.reverse()
        for path, func, uid in registrations:
            root.get(path, uid=uid)(func)

        tree = root.compile()
        assert tree.match("GET", "/user_5").route.terminal.uid == "prefixed"
        assert tree.match("GET", "/5").route.terminal.uid == "bare"

    def test_custom_pattern_falls_back(self) -> None:
        root = Router()

        @root.get(r"/page_:n{\d+}", uid="numbered")
        def numbered(n: int) -> int:
            return n

        @root.get("/:slug", uid="slug")
        def slug(slug: str) -> str:
            return slug

        tree = root.compile()
        assert tree.match("GET", "/page_3").route.terminal.uid == "numbered"
        assert tree.match("GET", "/page_x").route.terminal.uid == "slug"

    @pytest.mark.parametrize("reverse", [False, True])
    def test_custom_pattern_beats_default_with_same_literal(self, reverse: bool) -> None:
        root = Router()

        def numbered(n: int) -> int:
            return n

        def slug(slug: str) -> str:
            return slug

        registrations = [(r"/page_:n{\d+}", numbered, "numbered"), ("/page_:slug", slug, "slug")]
        if reverse:
            registrations.reverse()
        for path, func, uid in registrations:
            root.get(path, uid=uid)(func)

        tree = root.compile()
        assert tree.match("GET", "/page_5").route.terminal.uid == "numbered"
        assert tree.match("GET", "/page_five").route.terminal.uid == "slug"

    def test_allow_lists_methods_from_every_matching_route(self) -> None:
        root = Router()

        @root.get("/docs/:name", uid="read")
        def read(name: str) -> str:
            return name

        @root.put("/docs/doc_:name", uid="write")
        def write(name: str) -> str:
            return name

        with pytest.raises(MethodNotAllowed) as info:
            root.compile().match("DELETE", "/docs/doc_1")
        assert dict(info.value.headers) == {"Allow": "GET, PUT"}

    def test_backtracking(self) -> None:
        root = Router()

        @root.get("/files/static/raw", uid="raw")
        def raw() -> str:
            return "raw"

        @root.get("/files/:name/meta", uid="meta")
        def meta(name: str) -> str:
            return name

        tree = root.compile()
        match = tree.match("GET", "/files/static/meta")
        assert match.route.terminal.uid == "meta"
        assert match.path_params == {"name": "static"}

    def test_root_path(self) -> None:
        root = Router()

        @root.get()
        def index() -> str:
            return "home"

        assert root.compile().match("GET", "/").route.path == "/"


class TestController:
    def test_guards_then_endpoints(self) -> None:
        @component("tests.router.controller")
        class Users:
            @guard(uid="users.check")
            def check(self) -> None:
                pass

            @endpoint("/user_:id", methods=["GET", "PUT"], uid="users.one")
            def one(self, id: int) -> dict:
                return {"id": id}

            @endpoint(uid="users.all")
            def all(self) -> list:
                return []

            def helper(self) -> None:
                pass

        root = Router()
        root.controller(Users, "/users")
        tree = root.compile()

        assert [(r.method, r.path) for r in tree.routes] == [
            ("GET", "/users"),
            ("GET", "/users/user_:id"),
            ("PUT", "/users/user_:id"),
        ]
        route = tree.match("PUT", "/users/user_1").route
        assert [u.uid for u in route.chain] == ["users.check", "users.one"]
        assert route.terminal.owner is Users

    def test_controller_must_be_component(self) -> None:
        class Plain:
            @endpoint()
            def index(self) -> str:
                return "x"

        with pytest.raises(ConfigurationError, match="@component"):
            Router().controller(Plain)
