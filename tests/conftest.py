"""Shared fixtures: a stub asset build server and entrypoint files."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

from asset_pipe_client.client import Client
from asset_pipe_client.config import Settings
from asset_pipe_client.transport import Transport

BUILD_SERVER = "http://build.test"

Handler = Callable[[httpx.Request], httpx.Response]


class StubBuildServer:
    """Routes requests by (method, path) and records what it received.

    Mounted with httpx.MockTransport, which reads streamed request bodies
    before calling the handler, so streamed feed uploads can be decoded
    from ``request.content`` in every test.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Handler] = {}
        self.requests: list[httpx.Request] = []

    def route(self, method: str, path: str, handler: Handler | httpx.Response) -> None:
        if isinstance(handler, httpx.Response):
            response = handler
            self.routes[(method, path)] = lambda request: response
        else:
            self.routes[(method, path)] = handler

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r for r in self.requests if r.method == method and r.url.path == path
        ]

    def json_bodies(self, method: str, path: str) -> list:
        return [json.loads(r.content) for r in self.calls(method, path)]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, text="Not Found")
        return handler(request)


@pytest.fixture
def server() -> StubBuildServer:
    """A stub build server with no routes."""
    return StubBuildServer()


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment."""
    return Settings(_env_file=None, server=BUILD_SERVER)


@pytest.fixture
def make_client(server, settings):
    """Factory for clients talking to the stub build server."""

    def factory(**kwargs) -> Client:
        transport = Transport(
            client=httpx.AsyncClient(transport=httpx.MockTransport(server)),
            server_id=kwargs.pop("server_id", None),
        )
        kwargs.setdefault("tag", "test")
        return Client(settings=settings, transport=transport, **kwargs)

    return factory


@pytest.fixture
def script(tmp_path):
    """A JavaScript entrypoint."""
    path = tmp_path / "script.js"
    path.write_text("console.log('hello');\n")
    return str(path)


@pytest.fixture
def style(tmp_path):
    """A CSS entrypoint."""
    path = tmp_path / "style.css"
    path.write_text("body { background-color: red; }\n")
    return str(path)
