"""Process-wide catalogue of declared routes and objects.

Every :class:`~routecli.client.Client` subclass declares its operations
against the module-level :data:`registry` while the class is being set up.
After that the registry is only read: the dispatcher looks up a
:class:`~routecli.models.RouteSpec` by ``(client type, route name)`` on each
call, and the CLI runner lists declarations for usage text.

Registration takes a lock so that declarations made from several threads
cannot interleave; reads are not locked because the catalogue is not
mutated once clients are in use.

Example::

    registry.register_route("foo.FooClient", "status", doc="Get the status")
    registry.register_object("foo.FooClient", "widget")
    registry.get_route("foo.FooClient", "widget_delete").method  # DELETE
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Iterable, Optional

from pydantic import ValidationError

from routecli.exceptions import DeclarationError
from routecli.models import (
    ArgSpec,
    HTTPMethod,
    Positional,
    RouteAttributes,
    RouteSpec,
)
from routecli.objects import ClientObject


def validate_arg_specs(route_name: str, args: Iterable[Any]) -> list[ArgSpec]:
    """Normalise *args* into :class:`ArgSpec` objects and check their invariants.

    Raises:
        DeclarationError: On duplicate names or alternates, a ``many``
            positional that is not the last positional argument, or more
            than one ``modifies_payload`` argument.
    """
    try:
        specs = [a if isinstance(a, ArgSpec) else ArgSpec.model_validate(a) for a in args]
    except ValidationError as exc:
        raise DeclarationError(f"Invalid argument spec for '{route_name}': {exc}") from exc

    seen: set[str] = set()
    for spec in specs:
        for name in spec.names:
            if name in seen:
                raise DeclarationError(
                    f"Duplicate argument name '{name}' in route '{route_name}'"
                )
            seen.add(name)

    positionals = [s for s in specs if s.positional is not None]
    many = [s for s in positionals if s.positional == Positional.MANY]
    if len(many) > 1:
        raise DeclarationError(
            f"Route '{route_name}' declares more than one 'many' positional argument"
        )
    if many and positionals[-1] is not many[0]:
        raise DeclarationError(
            f"Positional argument '{many[0].name}' in route '{route_name}' "
            "consumes all remaining tokens and must be the last positional"
        )
    if sum(1 for s in specs if s.modifies_payload) > 1:
        raise DeclarationError(
            f"Route '{route_name}' declares more than one payload argument"
        )
    return specs


class Registry:
    """Routes and objects keyed by client type, in declaration order."""

    def __init__(self) -> None:
        self._routes: dict[str, dict[str, RouteSpec]] = {}
        self._objects: dict[str, dict[str, str]] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # Declaration
    # ------------------------------------------------------------------ #

    def register_route(
        self,
        client_type: str,
        name: str,
        method: HTTPMethod | str = HTTPMethod.GET,
        url: Optional[str] = None,
        response_type: Optional[Callable[..., Any]] = None,
        doc: str = "",
        **attributes: Any,
    ) -> RouteSpec:
        """Declare the route *name* for *client_type*.

        Registering the same route twice is allowed as long as the method,
        URL and response type agree; the later ``doc`` and attributes win.

        Args:
            client_type: Registry key of the client class.
            name: Operation name, unique within the client type.
            method: ``GET``, ``POST`` or ``DELETE``.
            url: URL template; defaults to ``/<name>``.
            response_type: Callable applied as ``response_type(result, client)``.
            doc: Short usage text shown after the command name.
            **attributes: Any :class:`~routecli.models.RouteAttributes` field
                (``args``, ``description``, ``dont_read_files``, ``quiet_post``).

        Raises:
            DeclarationError: On a conflicting re-registration or invalid
                attributes.
        """
        attrs = self._build_attributes(name, RouteAttributes(), attributes)
        if not isinstance(method, HTTPMethod):
            method = str(method).upper()
        try:
            spec = RouteSpec(
                name=name,
                method=HTTPMethod(method),
                url=url or f"/{name}",
                response_type=response_type,
                doc=doc or "",
                attributes=attrs,
            )
        except (ValueError, ValidationError) as exc:
            raise DeclarationError(f"Invalid route '{name}': {exc}") from exc
        return self._store(client_type, spec)

    def register_object(
        self,
        client_type: str,
        name: str,
        url: Optional[str] = None,
        doc: str = "",
        response_type: Optional[Callable[..., Any]] = None,
    ) -> tuple[RouteSpec, RouteSpec]:
        """Declare an object: ``name`` (GET, or POST with a payload) and ``name_delete``.

        Both routes share *url* (default ``/<name>``). Results of the
        retrieving route are wrapped in *response_type*, or in
        :class:`~routecli.objects.ClientObject` when none is given.
        """
        url = url or f"/{name}"
        main = RouteSpec(
            name=name,
            url=url,
            response_type=response_type or ClientObject,
            doc=doc or "",
            is_object=True,
        )
        delete = RouteSpec(
            name=f"{name}_delete",
            method=HTTPMethod.DELETE,
            url=url,
            is_object=True,
        )
        main = self._store(client_type, main)
        delete = self._store(client_type, delete)
        with self._lock:
            self._objects.setdefault(client_type, {})[name] = main.doc
        return main, delete

    def set_attribute(self, client_type: str, name: str, key: str, value: Any) -> None:
        """Set one :class:`~routecli.models.RouteAttributes` field on a declared route.

        Raises:
            DeclarationError: If the route is unknown, *key* is not an
                attribute field, or ``args`` fails validation.
        """
        with self._lock:
            spec = self._require(client_type, name)
            attrs = self._build_attributes(name, spec.attributes, {key: value})
            self._routes[client_type][name] = spec.model_copy(update={"attributes": attrs})

    def get_attribute(self, client_type: str, name: str, key: str, default: Any = None) -> Any:
        spec = self.get_route(client_type, name)
        if spec is None:
            return default
        value = getattr(spec.attributes, key, None)
        return default if value is None else value

    def set_doc(self, client_type: str, name: str, doc: str) -> None:
        with self._lock:
            spec = self._require(client_type, name)
            self._routes[client_type][name] = spec.model_copy(update={"doc": doc})
            if name in self._objects.get(client_type, {}):
                self._objects[client_type][name] = doc

    # ------------------------------------------------------------------ #
    # Lookup
    # ------------------------------------------------------------------ #

    def get_route(self, client_type: str, name: str) -> Optional[RouteSpec]:
        return self._routes.get(client_type, {}).get(name)

    def list_routes(self, client_type: str) -> list[tuple[str, str]]:
        """``(name, doc)`` for plain routes, in declaration order."""
        return [
            (spec.name, spec.doc)
            for spec in self._routes.get(client_type, {}).values()
            if not spec.is_object
        ]

    def list_objects(self, client_type: str) -> list[tuple[str, str]]:
        """``(name, doc)`` for objects, in declaration order."""
        return list(self._objects.get(client_type, {}).items())

    def route_names(self, client_type: str) -> list[str]:
        return list(self._routes.get(client_type, {}))

    def clear(self, client_type: Optional[str] = None) -> None:
        """Forget declarations for one client type, or for all of them."""
        with self._lock:
            if client_type is None:
                self._routes.clear()
                self._objects.clear()
            else:
                self._routes.pop(client_type, None)
                self._objects.pop(client_type, None)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _store(self, client_type: str, spec: RouteSpec) -> RouteSpec:
        with self._lock:
            routes = self._routes.setdefault(client_type, {})
            existing = routes.get(spec.name)
            if existing is not None:
                if (
                    existing.method != spec.method
                    or existing.url != spec.url
                    or existing.response_type is not spec.response_type
                    or existing.is_object != spec.is_object
                ):
                    raise DeclarationError(
                        f"Route '{spec.name}' is already declared as "
                        f"{existing.method.value} {existing.url}"
                    )
                if spec.attributes == RouteAttributes():
                    spec = spec.model_copy(update={"attributes": existing.attributes})
            routes[spec.name] = spec
            return spec

    def _require(self, client_type: str, name: str) -> RouteSpec:
        spec = self._routes.get(client_type, {}).get(name)
        if spec is None:
            raise DeclarationError(f"No route '{name}' declared for {client_type}")
        return spec

    @staticmethod
    def _build_attributes(
        name: str, base: RouteAttributes, updates: dict[str, Any],
    ) -> RouteAttributes:
        unknown = set(updates) - set(RouteAttributes.model_fields)
        if unknown:
            raise DeclarationError(
                f"Unknown route attribute(s) for '{name}': {', '.join(sorted(unknown))}"
            )
        if updates.get("args") is not None:
            updates = {**updates, "args": validate_arg_specs(name, updates["args"])}
        try:
            return RouteAttributes.model_validate({**base.model_dump(), **updates})
        except ValidationError as exc:
            raise DeclarationError(f"Invalid attributes for '{name}': {exc}") from exc


registry = Registry()
"""The process-wide registry shared by every client class."""
