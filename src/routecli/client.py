"""Declarative REST client base class.

Subclass :class:`Client`, declare routes and objects on the subclass, and
every declaration becomes an operation callable by name::

    class FooClient(Client):
        app_name = "Foo"

    FooClient.route("welcome", url="/")                 # GET /
    FooClient.route("status", doc="Get the status")     # GET /status
    FooClient.route("remove", "DELETE", "/something")   # DELETE /something
    FooClient.object("obj")                             # GET|POST /obj, DELETE via obj_delete
    FooClient.route("foo", args=[{"name": "name", "type": "=s", "required": True}])

    f = FooClient(server_url="http://localhost:9999")
    f.status()                       # GET    http://localhost:9999/status
    f.obj("this", 27)                # GET    .../obj/this/27 -> ClientObject
    f.obj("this", 27, {"set": "x"})  # POST   .../obj/this/27 with a JSON body
    f.obj_delete("this", 27)         # DELETE .../obj/this/27
    f.foo(name="baz")                # GET    .../foo?name=baz

Operations are not synthesised methods: attribute access looks the name up
in the :mod:`~routecli.registry` and returns a bound call through one
generic path, :meth:`Client.call`.

After a failed call the operation returns ``None``; ``last_response`` (or
``last_error`` for network failures) and :meth:`Client.errorstring` explain
what happened.
"""

from __future__ import annotations

import asyncio
import functools
from typing import Any, Callable, ClassVar, Optional, TextIO

import httpx

from routecli.binder import bind
from routecli.config import resolve_base_url, resolve_request_config
from routecli.dispatcher import Dispatcher
from routecli.exceptions import DispatchError, RoutecliError
from routecli.models import HTTPMethod, RequestConfig, RouteSpec
from routecli.output import OutputManager, get_output
from routecli.registry import registry


class Client:
    """Base class for declarative REST clients.

    Args:
        server_url: Base URL prefixed to every route. When empty it is
            resolved from configuration for :attr:`app_name`.
        transport: Optional httpx transport for the synchronous path. A
            transport that is also asynchronous (e.g.
            :class:`httpx.MockTransport`) serves the asynchronous path too.
        async_transport: Optional transport for the asynchronous path; needed
            when *transport* is synchronous only.
        output: Logging collaborator. Defaults to the process-wide
            :class:`~routecli.output.OutputManager`.
        request_config: Timeouts and SSL settings. Defaults to the
            application's configured values.

    Example::

        with FooClient(server_url="http://localhost:9999") as f:
            print(f.status())
    """

    app_name: ClassVar[Optional[str]] = None
    """Name used to look up configuration. Defaults to the top-level package name."""

    def __init__(
        self,
        server_url: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
        output: Optional[OutputManager] = None,
        request_config: Optional[RequestConfig] = None,
        async_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._output = output
        self._remote: Optional[str] = None
        self._server_url = server_url or resolve_base_url(self.application_name())
        self._request_config = request_config or resolve_request_config(
            self.application_name()
        )
        self._transport = transport
        self._async_transport = async_transport
        self._http = httpx.Client(**self._http_options(transport))
        self._dispatcher = Dispatcher(self._http, self._make_async_http)

        self._last_request: Optional[httpx.Request] = None
        self._last_response: Optional[httpx.Response] = None
        self._last_error: Optional[RoutecliError] = None

    # ------------------------------------------------------------------ #
    # Declaration API
    # ------------------------------------------------------------------ #

    @classmethod
    def registry_key(cls) -> str:
        return f"{cls.__module__}.{cls.__qualname__}"

    @classmethod
    def application_name(cls) -> str:
        return cls.app_name or cls.__module__.split(".")[0]

    @classmethod
    def route(
        cls,
        name: str,
        method: HTTPMethod | str = HTTPMethod.GET,
        url: Optional[str] = None,
        *,
        response_type: Optional[Callable[..., Any]] = None,
        doc: str = "",
        **attributes: Any,
    ) -> RouteSpec:
        """Declare the operation *name* (see :meth:`Registry.register_route`)."""
        return registry.register_route(
            cls.registry_key(), name, method, url,
            response_type=response_type, doc=doc, **attributes,
        )

    @classmethod
    def object(
        cls,
        name: str,
        url: Optional[str] = None,
        *,
        doc: str = "",
        response_type: Optional[Callable[..., Any]] = None,
    ) -> tuple[RouteSpec, RouteSpec]:
        """Declare ``name`` and ``name_delete`` sharing one URL."""
        return registry.register_object(
            cls.registry_key(), name, url, doc=doc, response_type=response_type,
        )

    @classmethod
    def set_route_attribute(cls, name: str, key: str, value: Any) -> None:
        registry.set_attribute(cls.registry_key(), name, key, value)

    @classmethod
    def get_route_attribute(cls, name: str, key: str, default: Any = None) -> Any:
        spec = cls.get_route(name)
        if spec is None:
            return default
        value = getattr(spec.attributes, key, None)
        return default if value is None else value

    @classmethod
    def get_route(cls, name: str) -> Optional[RouteSpec]:
        """Find *name* on this class or the nearest client base class declaring it."""
        for klass in cls.__mro__:
            if isinstance(klass, type) and issubclass(klass, Client):
                spec = registry.get_route(klass.registry_key(), name)
                if spec is not None:
                    return spec
        return None

    @classmethod
    def routes(cls) -> list[tuple[str, str]]:
        """``(name, doc)`` for every plain route, base classes first."""
        return cls._collect(registry.list_routes)

    @classmethod
    def objects(cls) -> list[tuple[str, str]]:
        """``(name, doc)`` for every object, base classes first."""
        return cls._collect(registry.list_objects)

    @classmethod
    def _collect(cls, lister: Callable[[str], list[tuple[str, str]]]) -> list[tuple[str, str]]:
        merged: dict[str, str] = {}
        for klass in reversed(cls.__mro__):
            if isinstance(klass, type) and issubclass(klass, Client):
                merged.update(lister(klass.registry_key()))
        return list(merged.items())

    # ------------------------------------------------------------------ #
    # Calling
    # ------------------------------------------------------------------ #

    def can(self, name: str) -> bool:
        return self.get_route(name) is not None

    def call(
        self,
        name: str,
        *args: Any,
        command_line: bool = False,
        stdin: Optional[TextIO] = None,
        **kwargs: Any,
    ) -> Any:
        """Invoke the operation *name*.

        Keyword arguments are named arguments for routes with an ``args``
        spec, and the JSON payload for routes without one.

        When a callable is among *args* the request is scheduled on the
        running event loop and the :class:`asyncio.Task` is returned; the
        callable is invoked with the decoded body once the response arrives.

        Raises:
            DispatchError: Unknown operation, or a callback without a
                running event loop.
            BindingError: The arguments do not fit the route's spec.
        """
        route = self._require_route(name)
        payload, callback = self._prepare(route, args, kwargs, command_line, stdin)

        if callback is None and not route.args and any(callable(a) for a in payload):
            callback = next(a for a in payload if callable(a))
        if callback is not None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                raise DispatchError(
                    f"Calling '{name}' with a callback needs a running event loop; "
                    "use call_async() instead"
                ) from None
            return loop.create_task(
                self._dispatcher.invoke_async(
                    route, payload, self._server_url, self, callback,
                )
            )
        return self._dispatcher.invoke(route, payload, self._server_url, self)

    async def call_async(
        self,
        name: str,
        *args: Any,
        callback: Optional[Callable[..., Any]] = None,
        **kwargs: Any,
    ) -> Any:
        """Asynchronous :meth:`call`; *callback* fires after the response is retained."""
        route = self._require_route(name)
        payload, found = self._prepare(route, args, kwargs, False, None)
        return await self._dispatcher.invoke_async(
            route, payload, self._server_url, self, callback or found,
        )

    def __getattr__(self, name: str) -> Callable[..., Any]:
        if name.startswith("_"):
            raise AttributeError(name)
        if type(self).get_route(name) is None:
            raise AttributeError(
                f"{type(self).__name__!r} has no attribute or route {name!r}"
            )
        return functools.partial(self.call, name)

    def _require_route(self, name: str) -> RouteSpec:
        route = self.get_route(name)
        if route is None:
            raise DispatchError(f"Unknown operation '{name}' for {type(self).__name__}")
        return route

    @staticmethod
    def _prepare(
        route: RouteSpec,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        command_line: bool,
        stdin: Optional[TextIO],
    ) -> tuple[list[Any], Optional[Callable[..., Any]]]:
        """Bind or pass through *args*; returns the dispatch arguments and any callback."""
        if not route.args:
            payload = list(args)
            if kwargs:
                payload.append(dict(kwargs))
            return payload, None

        callbacks = [a for a in args if callable(a)]
        plain = [a for a in args if not callable(a)]
        bound = bind(route, plain, command_line=command_line, kwargs=kwargs, stdin=stdin)
        return bound, callbacks[-1] if callbacks else None

    # ------------------------------------------------------------------ #
    # Retained exchange
    # ------------------------------------------------------------------ #

    @property
    def server_url(self) -> str:
        return self._server_url

    @server_url.setter
    def server_url(self, value: str) -> None:
        self._server_url = value

    @property
    def remote(self) -> Optional[str]:
        return self._remote

    def use_remote(self, name: str) -> None:
        """Switch the base URL to the configured remote profile *name*."""
        self._server_url = resolve_base_url(self.application_name(), remote=name)
        self._remote = name
        self.output.debug(f"Using remote {name} ({self._server_url})")

    @property
    def output(self) -> OutputManager:
        return self._output if self._output is not None else get_output()

    @output.setter
    def output(self, value: OutputManager) -> None:
        self._output = value

    @property
    def last_request(self) -> Optional[httpx.Request]:
        return self._last_request

    @property
    def last_response(self) -> Optional[httpx.Response]:
        return self._last_response

    @property
    def last_error(self) -> Optional[RoutecliError]:
        return self._last_error

    @property
    def has_error(self) -> bool:
        """``True`` when the latest exchange failed (transport error or non-2xx)."""
        if self._last_error is not None:
            return True
        return self._last_response is not None and not self._last_response.is_success

    def errorstring(self) -> Optional[str]:
        """Describe the latest failure, e.g. ``"(500) Internal Server Error"``."""
        if self._last_error is not None:
            return str(self._last_error)
        response = self._last_response
        if response is None or response.is_success:
            return None
        return f"({response.status_code}) {response.reason_phrase}"

    def _retain(
        self,
        request: httpx.Request,
        response: Optional[httpx.Response],
        error: Optional[RoutecliError],
    ) -> None:
        self._last_request = request
        self._last_response = response
        self._last_error = error

    # ------------------------------------------------------------------ #
    # Transport lifecycle
    # ------------------------------------------------------------------ #

    def _http_options(self, transport: Any = None) -> dict[str, Any]:
        config = self._request_config
        options: dict[str, Any] = {
            "timeout": config.timeout,
            "verify": config.verify_ssl,
            "limits": httpx.Limits(keepalive_expiry=config.keep_alive_timeout),
            "follow_redirects": True,
        }
        if transport is not None:
            options["transport"] = transport
        return options

    def _make_async_http(self) -> httpx.AsyncClient:
        transport = self._async_transport
        if transport is None and isinstance(self._transport, httpx.AsyncBaseTransport):
            transport = self._transport
        return httpx.AsyncClient(**self._http_options(transport))

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
