"""Tests for switchyard.app — registration, freezing, lifespan, envelopes."""

from typing import Any

import anyio
import pytest

from switchyard.app import App
from switchyard.chain.results import Terminate
from switchyard.chain.units import unit
from switchyard.config import AppConfig
from switchyard.context import component
from switchyard.errors import ConfigurationError, HTTPError, ValidationError
from switchyard.http.meta import ResponseMeta
from switchyard.http.request import Request
from switchyard.http.response import Response
from switchyard.routing.router import Router
from switchyard.testing import TestClient, assert_envelope


def plain_app(**config: Any) -> App:
    config.setdefault("trace_enabled", False)
    return App(AppConfig(**config))


async def run_lifespan(app: App) -> list[dict[str, Any]]:
    incoming = [{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}]
    sent: list[dict[str, Any]] = []

    async def receive() -> dict[str, Any]:
        return incoming.pop(0)

    async def send(message: dict[str, Any]) -> None:
        sent.append(message)

    await app({"type": "lifespan"}, receive, send)
    return sent


class TestFreeze:
    def test_registration_after_freeze_fails(self) -> None:
        app = plain_app()

        @app.get("/")
        def index() -> str:
            return "ok"

        assert len(app.routes()) == 1
        with pytest.raises(RuntimeError, match="after it has started"):
            app.use(lambda: None)
        with pytest.raises(RuntimeError):
            app.get("/late")

    def test_overlap_surfaces_at_freeze(self) -> None:
        app = plain_app()

        @app.get("/a/:x")
        def one(x: str) -> str:
            return x

        @app.get("/a/:y")
        def two(y: str) -> str:
            return y

        with pytest.raises(ConfigurationError):
            app.tree

    def test_provide_requires_component(self) -> None:
        app = plain_app()
        with pytest.raises(ConfigurationError, match="not a component"):
            app.provide(str, str)


class TestLifespan:
    async def test_hooks_run_in_order(self) -> None:
        app = plain_app()
        calls: list[str] = []

        @app.on_startup
        async def start() -> None:
            calls.append("start")

        @app.on_shutdown
        def stop() -> None:
            calls.append("stop")

        sent = await run_lifespan(app)
        assert [m["type"] for m in sent] == [
            "lifespan.startup.complete",
            "lifespan.shutdown.complete",
        ]
        assert calls == ["start", "stop"]

    async def test_bad_tree_fails_startup(self) -> None:
        app = plain_app()
        first, second = Router(), Router()

        @first.get("/dup")
        def one() -> str:
            return "1"

        @second.get("/dup")
        def two() -> str:
            return "2"

        app.mount("", first)
        app.mount("", second)

        sent = await run_lifespan(app)
        assert sent[0]["type"] == "lifespan.startup.failed"
        assert sent[0]["message"]


class TestEnvelopes:
    async def test_value_becomes_json(self) -> None:
        app = plain_app()

        @app.get("/users/:id")
        def show(id: int) -> dict:
            return {"id": id}

        async with TestClient(app) as client:
            response = await client.get("/users/7")
        assert response.status == 200
        assert response.content_type.startswith("application/json")
        assert response.parsed() == {"id": 7}

    async def test_response_passes_through(self) -> None:
        app = plain_app()

        @app.get("/raw")
        def raw() -> Response:
            return Response(body="hi", status=201, content_type="text/plain")

        async with TestClient(app) as client:
            response = await client.get("/raw")
        assert response.status == 201
        assert response.text == "hi"

    async def test_not_found(self) -> None:
        async with TestClient(plain_app()) as client:
            response = await client.get("/nowhere")
        assert_envelope(response, 404, message="Not Found")

    async def test_method_not_allowed(self) -> None:
        app = plain_app()

        @app.get("/thing")
        def thing() -> str:
            return "x"

        async with TestClient(app) as client:
            response = await client.delete("/thing")
        assert_envelope(response, 405)
        assert response.header("allow") == "GET"

    async def test_http_error_data(self) -> None:
        app = plain_app()

        @app.post("/items")
        def create() -> None:
            raise ValidationError("name is required", data={"field": "name"})

        async with TestClient(app) as client:
            response = await client.post("/items")
        assert_envelope(response, 400, message="name is required", data={"field": "name"})

    async def test_bad_path_param_is_400(self) -> None:
        app = plain_app()

        @app.get("/users/:id")
        def show(id: int) -> int:
            return id

        async with TestClient(app) as client:
            response = await client.get("/users/abc")
        assert_envelope(response, 400)

    async def test_internal_error_hidden(self) -> None:
        app = plain_app()

        @app.get("/boom")
        def boom() -> None:
            raise RuntimeError("secret detail")

        async with TestClient(app) as client:
            response = await client.get("/boom")
        envelope = assert_envelope(response, 500, message="Internal Server Error")
        assert "data" not in envelope
        assert "secret detail" not in response.text

    async def test_internal_error_debug(self) -> None:
        app = plain_app(debug=True)

        @app.get("/boom")
        def boom() -> None:
            raise RuntimeError("secret detail")

        async with TestClient(app) as client:
            response = await client.get("/boom")
        assert_envelope(response, 500, data={"error": "RuntimeError: secret detail"})

    async def test_terminate_from_middleware(self) -> None:
        app = plain_app()
        calls: list[str] = []

        @unit(uid="cache")
        def cached() -> Terminate:
            return Terminate({"cached": True})

        app.use(cached)

        @app.get("/data")
        def data() -> dict:
            calls.append("handler")
            return {"cached": False}

        async with TestClient(app) as client:
            response = await client.get("/data")
        assert response.parsed() == {"cached": True}
        assert calls == []


class TestExactlyOneResponse:
    async def test_single_start_message(self) -> None:
        app = plain_app()

        @app.get("/boom")
        def boom() -> None:
            raise HTTPError(status=409, message="conflict")

        starts: list[int] = []
        messages = [{"type": "http.request", "body": b"", "more_body": False}]

        async def receive() -> dict[str, Any]:
            if messages:
                return messages.pop(0)
            await anyio.sleep_forever()

        async def send(message: dict[str, Any]) -> None:
            if message["type"] == "http.response.start":
                starts.append(message["status"])

        scope = {
            "type": "http",
            "method": "GET",
            "path": "/boom",
            "headers": [],
            "query_string": b"",
        }
        await app(scope, receive, send)
        assert starts == [409]

    async def test_disconnect_sends_nothing(self) -> None:
        app = plain_app()
        calls: list[str] = []

        @unit(uid="read_body")
        async def read_body(request: Request) -> None:
            await request.body()

        app.use(read_body)

        @app.post("/upload")
        def upload() -> str:
            calls.append("handler")
            return "stored"

        async with TestClient(app) as client:
            response = await client.request("POST", "/upload", disconnect=True)
        assert response.status == 499
        assert response.body_bytes == b""
        assert calls == []

    async def test_disconnect_without_body_read(self) -> None:
        app = plain_app()
        calls: list[str] = []

        def recorder(name: str) -> Any:
            @unit(uid=name)
            def record() -> None:
                calls.append(name)

            return record

        app.use(*(recorder(name) for name in ("audit", "stamp", "tag", "count", "label")))

        @app.get("/report")
        def report() -> str:
            calls.append("handler")
            return "report"

        async with TestClient(app) as client:
            response = await client.request("GET", "/report", disconnect=True)
        assert response.status == 499
        assert response.body_bytes == b""
        assert "handler" not in calls

    async def test_disconnect_cancels_waiting_unit(self) -> None:
        app = plain_app()
        calls: list[str] = []
        never = anyio.Event()

        @unit(uid="slow_lookup")
        async def slow_lookup() -> None:
            await never.wait()

        app.use(slow_lookup)

        @app.get("/slow")
        def slow() -> str:
            calls.append("handler")
            return "done"

        async with TestClient(app) as client:
            with anyio.fail_after(5):
                response = await client.request("GET", "/slow", disconnect=True)
        assert response.status == 499
        assert response.body_bytes == b""
        assert calls == []


@component("tests.app.pool")
class Pool:
    def __init__(self, name: str = "default") -> None:
        self.name = name


class TestProviders:
    async def test_factory_used(self) -> None:
        app = plain_app()
        app.provide(Pool, lambda: Pool("primary"))

        @app.get("/pool")
        def pool(pool: Pool) -> str:
            return pool.name

        async with TestClient(app) as client:
            response = await client.get("/pool")
        assert response.parsed() == "primary"


class TestResponseMeta:
    async def test_headers_on_success_and_error(self) -> None:
        app = plain_app()

        @unit(uid="stamp")
        def stamp(meta: ResponseMeta) -> None:
            meta.set_header("X-Served-By", "switchyard")

        app.use(stamp)

        @app.get("/ok")
        def ok() -> str:
            return "ok"

        @app.get("/bad")
        def bad() -> None:
            raise ValidationError()

        async with TestClient(app) as client:
            good = await client.get("/ok")
            failed = await client.get("/bad")
        assert good.header("x-served-by") == "switchyard"
        assert failed.header("x-served-by") == "switchyard"
        assert failed.status == 400


class TestMountedRouters:
    async def test_nested_chain_order(self) -> None:
        app = plain_app()
        order: list[str] = []

        def mark(name: str):
            @unit(uid=name)
            def step() -> None:
                order.append(name)

            return step

        app.use(mark("root"))
        api = Router("/api")
        api.use(mark("api"))
        users = Router("/users")
        users.use(mark("users"))

        @users.get("/:id")
        def show(id: int) -> int:
            order.append("handler")
            return id

        api.mount("", users)
        app.mount("", api)

        async with TestClient(app) as client:
            response = await client.get("/api/users/3")
        assert response.parsed() == 3
        assert order == ["root", "api", "users", "handler"]
