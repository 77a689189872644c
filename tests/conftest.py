"""Shared test fixtures for routecli.

Provides a fake REST server behind :class:`httpx.MockTransport`, captured
output managers, an isolated config environment and the ``FooClient`` used
throughout the suite. These fixtures are automatically discovered by pytest
and available to all test modules without explicit imports.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from io import StringIO
from pathlib import Path
from typing import Any

import httpx
import pytest

from routecli.client import Client
from routecli.models import RequestConfig
from routecli.output import OutputFormat, OutputManager, reset_output, set_output
from routecli.registry import registry


BASE_URL = "http://x"


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _reset_registry_between_tests() -> None:
    """Forget every declaration so fixtures can declare fresh client classes."""
    yield
    registry.clear()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path,
    clears ROUTECLI_* overrides and changes the working directory to
    tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in [
        "ROUTECLI_CONFIG_DIR",
        "ROUTECLI_KEEP_ALIVE_TIMEOUT",
        "ROUTECLI_FOO_URL",
    ]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@dataclass
class Captured:
    """An OutputManager writing to in-memory sinks."""

    manager: OutputManager
    out: StringIO
    err: StringIO

    @property
    def stdout(self) -> str:
        return self.out.getvalue()

    @property
    def stderr(self) -> str:
        return self.err.getvalue()


@pytest.fixture
def captured() -> Captured:
    """Plain YAML output, no colour, installed as the global manager too."""
    out, err = StringIO(), StringIO()
    manager = OutputManager(
        format=OutputFormat.YAML, no_color=True, stdout=out, stderr=err,
    )
    set_output(manager)
    return Captured(manager, out, err)


# ---------------------------------------------------------------------------
# Fake server
# ---------------------------------------------------------------------------


@dataclass
class FakeServer:
    """Records requests and answers from a ``(METHOD, path)`` table.

    Unknown paths answer 404. A handler in the table is called with the
    request; a plain value is sent back as a JSON body.
    """

    responses: dict[tuple[str, str], Any] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)

    def on(self, method: str, path: str, response: Any) -> None:
        self.responses[(method, path)] = response

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        answer = self.responses.get((request.method, request.url.path))
        if answer is None:
            return httpx.Response(404)
        if callable(answer):
            return answer(request)
        if isinstance(answer, httpx.Response):
            return answer
        return httpx.Response(200, json=answer)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> Any:
        return json.loads(self.last.content)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


# ---------------------------------------------------------------------------
# Client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def foo_class() -> type[Client]:
    """A client declaring plain routes, an object and routes with ``args``."""

    class FooClient(Client):
        app_name = "foo"

    FooClient.route("welcome", url="/", doc="Say hello")
    FooClient.route("status", doc="Get the status")
    FooClient.route("remove", "DELETE", "/something")
    FooClient.object("obj", doc="An object")
    FooClient.route(
        "foo",
        args=[{"name": "name", "type": "=s", "required": True, "doc": "who"}],
        description="Look up a foo by name.",
    )
    FooClient.route(
        "widget_search",
        url="/widget/search",
        args=[
            {"name": "color", "alt": "c|colour", "type": "=s"},
            {"name": "limit", "type": "=s"},
        ],
    )
    FooClient.object("widget", doc="A widget")
    return FooClient


@pytest.fixture
def foo(foo_class: type[Client], server: FakeServer, captured: Captured) -> Client:
    client = foo_class(
        server_url=BASE_URL,
        transport=server.transport(),
        output=captured.manager,
        request_config=RequestConfig(),
    )
    yield client
    client.close()
