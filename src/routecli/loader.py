"""Build a client from a route file instead of Python declarations.

A route file is a YAML (or JSON) document describing one application::

    app: widgets
    url: http://localhost:9999
    routes:
      - name: status
        doc: Get the status
      - name: find
        method: GET
        url: /widgets/find
        args:
          - {name: colour, alt: c, type: "=s", required: true}
    objects:
      - name: widget

:func:`build_client_class` turns it into a :class:`~routecli.client.Client`
subclass with exactly those declarations, so ``routecli --routes FILE call
...`` behaves like a hand-written client script.
"""

from __future__ import annotations

import re
import sys
from pathlib import Path
from typing import Any, Optional

import httpx
import yaml
from pydantic import ValidationError

from routecli.client import Client
from routecli.exceptions import ConfigError, DeclarationError
from routecli.models import RouteFile
from routecli.registry import registry


def load_route_file(source: str) -> RouteFile:
    """Read and validate a route file from a path, or from stdin when *source* is ``-``.

    Raises:
        ConfigError: The file cannot be read or is not a YAML/JSON mapping.
        DeclarationError: The mapping does not describe valid routes.
    """
    if source == "-":
        content = sys.stdin.read()
    else:
        path = Path(source)
        if not path.is_file():
            raise ConfigError(f"Route file not found: {source}")
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Failed to read route file {source}: {exc}") from exc

    try:
        raw = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in route file {source}: {exc}") from exc
    if not isinstance(raw, dict):
        kind = type(raw).__name__ if raw is not None else "empty document"
        raise ConfigError(f"Route file must be a mapping (got {kind}): {source}")

    try:
        return RouteFile.model_validate(raw)
    except ValidationError as exc:
        raise DeclarationError(f"Invalid route file {source}: {exc}") from exc


def _class_name(app: str) -> str:
    words = re.split(r"[^0-9a-zA-Z]+", app)
    return "".join(w[:1].upper() + w[1:] for w in words if w) + "Client"


def build_client_class(route_file: RouteFile) -> type[Client]:
    """Create a :class:`Client` subclass declaring every route and object of *route_file*.

    Building the same application twice replaces the earlier declarations.
    """
    cls = type(
        _class_name(route_file.app),
        (Client,),
        {"app_name": route_file.app, "__module__": __name__},
    )
    registry.clear(cls.registry_key())

    for entry in route_file.routes:
        attributes: dict[str, Any] = {
            "dont_read_files": entry.dont_read_files,
            "quiet_post": entry.quiet_post,
        }
        if entry.description is not None:
            attributes["description"] = entry.description
        if entry.args is not None:
            attributes["args"] = entry.args
        cls.route(entry.name, entry.method, entry.url, doc=entry.doc, **attributes)

    for entry in route_file.objects:
        cls.object(entry.name, entry.url, doc=entry.doc)

    return cls


def load_client(
    source: str,
    server_url: Optional[str] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> Client:
    """Load *source* and return a client instance for it.

    The base URL is *server_url*, else the file's ``url``, else whatever the
    configuration resolves for the file's ``app``.
    """
    route_file = load_route_file(source)
    cls = build_client_class(route_file)
    return cls(server_url=server_url or route_file.url, transport=transport)
