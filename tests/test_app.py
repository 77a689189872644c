"""Tests for the routecli Typer app and the ``main`` entry point."""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest
from typer.testing import CliRunner

from routecli import __version__
from routecli import loader
from routecli.app import app, main
from routecli.exit_codes import (
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SUCCESS,
)


ROUTES_YAML = """\
app: foo
routes:
  - name: status
    doc: Get the status
  - name: find
    url: /widgets/find
    args:
      - {name: colour, type: "=s", required: true}
objects:
  - name: widget
"""


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def routes_file(tmp_path: Path) -> Path:
    path = tmp_path / "routes.yml"
    path.write_text(ROUTES_YAML, encoding="utf-8")
    return path


@pytest.fixture
def wired(monkeypatch: pytest.MonkeyPatch, server, isolated_config):
    """Route every client the app loads through the fake server."""
    real = loader.load_client

    def load_with_fake_server(source, server_url=None, transport=None):
        return real(source, server_url=server_url, transport=server.transport())

    monkeypatch.setattr("routecli.loader.load_client", load_with_fake_server)
    return server


class TestRootOptions:
    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"routecli {__version__}" in result.output

    def test_no_args_shows_help(self, runner: CliRunner) -> None:
        result = runner.invoke(app, [])
        assert "call" in result.output
        assert "routes" in result.output

    def test_call_without_routes_file(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["call", "status"])
        assert result.exit_code == EXIT_INVALID_USAGE
        assert "No route file given" in result.output

    def test_missing_routes_file(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--routes", str(tmp_path / "nope.yml"), "call", "status"])
        assert result.exit_code != 0
        assert "Route file not found" in result.output


class TestCallCommand:
    def test_status(self, runner: CliRunner, routes_file: Path, wired) -> None:
        wired.on("GET", "/status", {"server_version": "1.0"})
        result = runner.invoke(
            app, ["--routes", str(routes_file), "--url", "http://x", "--no-color", "call", "status"],
        )
        assert result.exit_code == EXIT_SUCCESS, result.output
        assert "server_version: '1.0'" in result.output
        assert str(wired.last.url) == "http://x/status"

    def test_json_output(self, runner: CliRunner, routes_file: Path, wired) -> None:
        wired.on("GET", "/status", {"ok": True})
        result = runner.invoke(
            app, ["--routes", str(routes_file), "--url", "http://x", "--json", "call", "status"],
        )
        assert result.exit_code == EXIT_SUCCESS, result.output
        assert json.loads(result.output) == {"ok": True}

    def test_bound_route_with_options(self, runner: CliRunner, routes_file: Path, wired) -> None:
        wired.on("GET", "/widgets/find", [{"id": "w1"}])
        result = runner.invoke(
            app,
            ["--routes", str(routes_file), "--url", "http://x", "--no-color",
             "call", "find", "--colour", "red"],
        )
        assert result.exit_code == EXIT_SUCCESS, result.output
        assert wired.last.url.params["colour"] == "red"
        assert "id: w1" in result.output

    def test_not_found_exit_code(self, runner: CliRunner, routes_file: Path, wired) -> None:
        result = runner.invoke(
            app,
            ["--routes", str(routes_file), "--url", "http://x", "--no-color",
             "call", "widget", "w9"],
        )
        assert result.exit_code == EXIT_NOT_FOUND
        assert "(404) Not Found" in result.output

    def test_help_passes_through(self, runner: CliRunner, routes_file: Path, wired) -> None:
        result = runner.invoke(
            app, ["--routes", str(routes_file), "--url", "http://x", "--no-color", "call", "help"],
        )
        assert result.exit_code == EXIT_SUCCESS, result.output
        assert "routecli call [opts] status Get the status" in result.output
        assert wired.requests == []


class TestRoutesCommand:
    def test_table(self, runner: CliRunner, routes_file: Path, wired) -> None:
        result = runner.invoke(
            app, ["--routes", str(routes_file), "--url", "http://x", "--no-color", "routes"],
        )
        assert result.exit_code == 0, result.output
        lines = result.output.splitlines()
        assert lines[0] == "Name\tMethod\tURL\tDoc"
        assert "status\tGET\t/status\tGet the status" in lines
        assert "widget_delete\tDELETE\t/widget\t" in lines


class TestMain:
    @pytest.fixture(autouse=True)
    def _no_signal_handlers(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("routecli.app._setup_signal_handlers", lambda: None)

    def test_exits_with_runner_code(self, foo, server, captured) -> None:
        server.on("GET", "/status", {"ok": True})
        with pytest.raises(SystemExit) as exc_info:
            main(foo, ["status"])
        assert exc_info.value.code == EXIT_SUCCESS
        assert captured.stdout == "ok: true\n"
        assert foo._http.is_closed

    def test_failure_code(self, foo, captured) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(foo, ["status"])
        assert exc_info.value.code == EXIT_NOT_FOUND

    def test_unexpected_error_writes_crash_log(
        self, foo, captured, isolated_config: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr("routecli.runner.run", explode)
        with pytest.raises(SystemExit) as exc_info:
            main(foo, ["status"])
        assert exc_info.value.code == 1
        assert "Unexpected error. Debug log:" in captured.stderr
        logs = list((isolated_config / "data" / "routecli").glob("crash-*.log"))
        assert len(logs) == 1
        assert "RuntimeError: boom" in logs[0].read_text()
