"""Tests for routecli.client -- declaration API, dispatch table and retained state."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import httpx
import pytest

from routecli.client import Client
from routecli.exceptions import ConfigError, DispatchError, MissingRequiredArgument
from routecli.models import HTTPMethod, RequestConfig


BASE_URL = "http://x"


def _write_config(root: Path, app: str, data: dict) -> None:
    path = root / "config" / "routecli" / f"{app}.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


# ---------------------------------------------------------------------------
# Declarations
# ---------------------------------------------------------------------------


class TestDeclarations:
    def test_routes_and_objects_listed(self, foo_class) -> None:
        assert foo_class.routes() == [
            ("welcome", "Say hello"),
            ("status", "Get the status"),
            ("remove", ""),
            ("foo", ""),
            ("widget_search", ""),
        ]
        assert foo_class.objects() == [("obj", "An object"), ("widget", "A widget")]

    def test_route_attribute_round_trip(self, foo_class) -> None:
        foo_class.set_route_attribute("status", "quiet_post", True)
        assert foo_class.get_route_attribute("status", "quiet_post") is True
        assert foo_class.get_route_attribute("status", "description", "-") == "-"
        assert foo_class.get_route_attribute("missing", "args") is None

    def test_subclass_inherits_routes(self, foo_class) -> None:
        class BarClient(foo_class):
            pass

        BarClient.route("bar", "POST")
        assert BarClient.get_route("status").url == "/status"
        assert BarClient.get_route("bar").method == HTTPMethod.POST
        assert foo_class.get_route("bar") is None
        assert ("bar", "") in BarClient.routes()
        assert ("status", "Get the status") in BarClient.routes()

    def test_application_name_defaults_to_package(self) -> None:
        class Anonymous(Client):
            pass

        assert Anonymous.application_name() == Anonymous.__module__.split(".")[0]


# ---------------------------------------------------------------------------
# Calling
# ---------------------------------------------------------------------------


class TestCalling:
    def test_can(self, foo) -> None:
        assert foo.can("status")
        assert foo.can("obj_delete")
        assert not foo.can("nope")

    def test_unknown_attribute(self, foo) -> None:
        with pytest.raises(AttributeError):
            foo.nope
        with pytest.raises(AttributeError):
            foo._private

    def test_call_unknown_operation(self, foo) -> None:
        with pytest.raises(DispatchError, match="Unknown operation 'nope'"):
            foo.call("nope")

    def test_call_by_name(self, foo, server) -> None:
        server.on("GET", "/status", {"ok": True})
        assert foo.call("status") == {"ok": True}

    def test_kwargs_on_legacy_route_become_payload(self, foo, server) -> None:
        server.on("POST", "/obj/w1", {"id": "w1"})
        foo.obj("w1", colour="red")
        assert server.last.method == "POST"
        assert server.last_json() == {"colour": "red"}

    def test_args_route_binds_keywords(self, foo, server) -> None:
        server.on("GET", "/foo", {"name": "baz"})
        assert foo.foo(name="baz") == {"name": "baz"}
        assert server.last.url.params["name"] == "baz"

    def test_args_route_binds_bare_names(self, foo, server) -> None:
        server.on("GET", "/foo", {"name": "baz"})
        foo.foo("name", "baz")
        assert server.last.url.params["name"] == "baz"

    def test_binding_failure_raises_before_any_request(self, foo, server) -> None:
        with pytest.raises(MissingRequiredArgument):
            foo.foo()
        assert server.requests == []
        assert foo.last_request is None

    def test_context_manager_closes_transport(self, foo_class, server, isolated_config) -> None:
        with foo_class(server_url=BASE_URL, transport=server.transport()) as client:
            assert client.server_url == BASE_URL
        assert client._http.is_closed


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class TestConfiguration:
    def test_url_from_env(self, foo_class, isolated_config, monkeypatch) -> None:
        monkeypatch.setenv("ROUTECLI_FOO_URL", "http://from-env")
        assert foo_class().server_url == "http://from-env"

    def test_url_from_config_file(self, foo_class, isolated_config) -> None:
        _write_config(isolated_config, "foo", {"url": "http://from-file"})
        assert foo_class().server_url == "http://from-file"

    def test_missing_url_raises(self, foo_class, isolated_config) -> None:
        with pytest.raises(ConfigError, match="No URL configured for foo"):
            foo_class()

    def test_use_remote(self, foo_class, isolated_config, server) -> None:
        _write_config(isolated_config, "foo", {
            "url": "http://local",
            "remotes": {"prod": {"url": "http://prod"}},
        })
        server.on("GET", "/status", {"ok": True})
        client = foo_class(transport=server.transport())
        client.use_remote("prod")
        assert client.remote == "prod"
        client.status()
        assert str(server.last.url) == "http://prod/status"

    def test_unknown_remote(self, foo_class, isolated_config) -> None:
        client = foo_class(server_url=BASE_URL)
        with pytest.raises(ConfigError, match="Unknown remote 'qa'"):
            client.use_remote("qa")

    def test_request_config_applied(self, foo_class, isolated_config) -> None:
        client = foo_class(
            server_url=BASE_URL,
            request_config=RequestConfig(timeout=5, keep_alive_timeout=12),
        )
        assert client._http.timeout == httpx.Timeout(5)
        assert client._request_config.keep_alive_timeout == 12

    def test_keep_alive_env(self, foo_class, isolated_config, monkeypatch) -> None:
        monkeypatch.setenv("ROUTECLI_KEEP_ALIVE_TIMEOUT", "42")
        client = foo_class(server_url=BASE_URL)
        assert client._request_config.keep_alive_timeout == 42.0


class TestTransports:
    def test_async_transport_serves_async_calls(self, foo_class, isolated_config) -> None:
        sync = httpx.MockTransport(lambda request: httpx.Response(200, json={"via": "sync"}))
        background = httpx.MockTransport(lambda request: httpx.Response(200, json={"via": "async"}))
        client = foo_class(server_url=BASE_URL, transport=sync, async_transport=background)

        assert client.status() == {"via": "sync"}
        assert asyncio.run(client.call_async("status")) == {"via": "async"}

    def test_mock_transport_serves_both_paths(self, foo_class, isolated_config, server) -> None:
        server.on("GET", "/status", {"ok": True})
        client = foo_class(server_url=BASE_URL, transport=server.transport())

        assert asyncio.run(client.call_async("status")) == {"ok": True}
        assert len(server.requests) == 1

    def test_sync_only_transport_not_given_to_async_client(self, foo_class, isolated_config) -> None:
        sync = httpx.HTTPTransport()
        client = foo_class(server_url=BASE_URL, transport=sync)

        http = client._make_async_http()
        try:
            assert http._transport is not sync
            assert isinstance(http._transport, httpx.AsyncBaseTransport)
        finally:
            asyncio.run(http.aclose())
            client.close()
