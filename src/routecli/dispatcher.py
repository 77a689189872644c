"""Build and execute one HTTP exchange for a route.

The dispatcher turns a route plus its arguments into a request, sends it with
:mod:`httpx`, retains the exchange on the client, decodes the body and
applies the route's response wrapper.

Two argument shapes are understood:

* **Legacy lists** (routes without ``args``), consumed left to right: a
  ``dict`` switches the method to POST and becomes the JSON body, a
  callable marks the call asynchronous, anything else is appended to the
  URL as ``/value``.
* **Bound arguments** (routes with ``args``), the ``(name, value)`` pairs
  produced by :func:`routecli.binder.bind`: ``modifies_url`` values are
  appended as path segments, a ``modifies_payload`` value becomes the body,
  and the remaining named values go to the query string -- or into a JSON
  object body when the route is POST or a value is map-shaped.

A non-2xx response or a transport error never raises: the call returns
``None``, the failure is logged, and the details stay on the client
(``last_response``, ``last_error``).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Optional

import httpx

from routecli.exceptions import TransportFailure
from routecli.models import HTTPMethod, RouteSpec

if TYPE_CHECKING:
    from routecli.client import Client

JSON_CONTENT_TYPE = "application/json"


@dataclass
class RequestPlan:
    """Everything needed to build the request, before it reaches httpx."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    body: Optional[str] = None
    callback: Optional[Callable[..., Any]] = None


def plan_request(route: RouteSpec, args: list[Any], base_url: str = "") -> RequestPlan:
    """Work out method, URL, headers and body for *route* called with *args*."""
    url = f"{base_url}{route.url}" if base_url else route.url
    plan = RequestPlan(method=route.method.value, url=url)
    if route.args:
        _plan_bound(route, args, plan)
    else:
        _plan_legacy(args, plan)
    return plan


def _plan_legacy(args: list[Any], plan: RequestPlan) -> None:
    for arg in args:
        if arg is None:
            continue
        if isinstance(arg, dict):
            _set_json_body(plan, arg)
        elif callable(arg):
            plan.callback = arg
        else:
            plan.url += f"/{arg}"


def _plan_bound(route: RouteSpec, bound: list[Any], plan: RequestPlan) -> None:
    specs = {spec.name: spec for spec in route.args or []}
    payload: Any = None
    fields: dict[str, Any] = {}
    for name, value in bound:
        spec = specs[name]
        if spec.modifies_url:
            for segment in value if isinstance(value, list) else [value]:
                plan.url += f"/{segment}"
        elif spec.modifies_payload:
            payload = value
        else:
            fields[name] = value

    if payload is not None:
        _set_json_body(plan, payload)
        plan.params = fields
    elif plan.method == HTTPMethod.POST.value or any(
        isinstance(v, dict) for v in fields.values()
    ):
        _set_json_body(plan, fields)
    else:
        plan.params = fields


def _set_json_body(plan: RequestPlan, payload: Any) -> None:
    plan.method = HTTPMethod.POST.value
    plan.body = json.dumps(payload, default=str)
    plan.headers = {"Content-Type": JSON_CONTENT_TYPE}


def decode_body(response: httpx.Response, client: Optional[Client] = None) -> Any:
    """JSON-decode a response with a JSON content type, else return its text.

    An empty body decodes to ``""``.
    """
    if not response.content:
        return ""
    content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type == JSON_CONTENT_TYPE:
        try:
            return response.json()
        except ValueError:
            if client is not None:
                client.output.warning(
                    f"Response claims {JSON_CONTENT_TYPE} but is not valid JSON"
                )
    return response.text


class Dispatcher:
    """Sends planned requests for one client.

    Args:
        http: Synchronous transport used by :meth:`invoke`.
        async_http_factory: Returns a fresh :class:`httpx.AsyncClient` for
            each asynchronous call, so that no connection outlives the event
            loop it was opened on.
    """

    def __init__(
        self,
        http: httpx.Client,
        async_http_factory: Callable[[], httpx.AsyncClient],
    ) -> None:
        self._http = http
        self._async_http_factory = async_http_factory

    def invoke(self, route: RouteSpec, args: list[Any], base_url: str, client: Client) -> Any:
        """Send the request synchronously and return the (wrapped) result or ``None``."""
        plan = plan_request(route, args, base_url)
        request = self._build(self._http, plan)
        client.output.debug(f"Sending {plan.method} request to {plan.url}")
        try:
            response = self._http.send(request)
        except httpx.RequestError as exc:
            self._transport_failed(client, request, plan, exc)
            return None
        return self._complete(route, plan, request, response, client)[0]

    async def invoke_async(
        self,
        route: RouteSpec,
        args: list[Any],
        base_url: str,
        client: Client,
        callback: Optional[Callable[..., Any]] = None,
    ) -> Any:
        """Send the request on the running event loop.

        The client's retained response is updated before *callback* runs.
        The callback receives the decoded body (``True`` for an empty body)
        on success and no arguments on failure.
        """
        plan = plan_request(route, args, base_url)
        callback = callback or plan.callback
        async with self._async_http_factory() as http:
            request = self._build(http, plan)
            client.output.debug(f"Sending async {plan.method} request to {plan.url}")
            try:
                response = await http.send(request)
            except httpx.RequestError as exc:
                self._transport_failed(client, request, plan, exc)
                if callback is not None:
                    callback()
                return None

        result, body = self._complete(route, plan, request, response, client)
        if callback is not None:
            if result is None:
                callback()
            else:
                callback(body if body not in (None, "") else True)
        return result

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _build(http: httpx.Client | httpx.AsyncClient, plan: RequestPlan) -> httpx.Request:
        return http.build_request(
            plan.method,
            plan.url,
            headers=plan.headers or None,
            params=plan.params or None,
            content=plan.body,
        )

    @staticmethod
    def _transport_failed(
        client: Client, request: httpx.Request, plan: RequestPlan, exc: Exception,
    ) -> None:
        failure = TransportFailure(f"Error trying to {plan.method} {plan.url} : {exc}")
        client._retain(request, None, failure)
        client.output.error(str(failure))

    @staticmethod
    def _complete(
        route: RouteSpec,
        plan: RequestPlan,
        request: httpx.Request,
        response: httpx.Response,
        client: Client,
    ) -> tuple[Any, Any]:
        """Retain the exchange, then return ``(wrapped result, decoded body)``."""
        client._retain(request, response, None)
        if not response.is_success:
            client.output.error(
                f"Error trying to {plan.method} {plan.url} : "
                f"({response.status_code}) {response.reason_phrase}"
            )
            return None, None

        body = decode_body(response, client)
        client.output.debug(f"Got response : {response.status_code} {response.reason_phrase}")
        if route.response_type is not None:
            return route.response_type(body, client), body
        return body, body
