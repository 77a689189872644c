"""Canonical Pydantic models shared across all routecli modules.

This is the single source of truth for data shapes in the project. The
models fall into three groups:

**Declaration models** -- built when a client class declares its routes and
read on every call:
    :class:`HTTPMethod`, :class:`ArgType`, :class:`Positional`,
    :class:`Preprocess`, :class:`ArgSpec`, :class:`RouteAttributes` and
    :class:`RouteSpec`.

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`RequestConfig`, :class:`RemoteConfig` and :class:`AppConfig`.

**Route-file models** -- the YAML/JSON documents read by :mod:`routecli.loader`:
    :class:`RouteEntry`, :class:`ObjectEntry` and :class:`RouteFile`.

All models use Pydantic v2. Argument specs accept the short spellings used
in hand-written declarations (``type="=s"``, ``alt="n|nm"``,
``preprocess="yamldoc"``) and normalise them on validation.
"""

from __future__ import annotations

import enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Declaration enums ---


class HTTPMethod(str, enum.Enum):
    """HTTP methods a route may declare."""

    GET = "GET"
    POST = "POST"
    DELETE = "DELETE"


class ArgType(str, enum.Enum):
    """Whether a named argument takes a value."""

    FLAG = "flag"
    STRING = "string"


class Positional(str, enum.Enum):
    """How many bare tokens a positional argument consumes."""

    ONE = "one"
    MANY = "many"


class Preprocess(str, enum.Enum):
    """Transforms applied to a bound value before dispatch."""

    YAML_DOCUMENT = "yaml-document"
    LINE_LIST = "line-list"
    DATETIME = "datetime"


_ARG_TYPE_ALIASES: dict[str, ArgType] = {
    "": ArgType.FLAG,
    "!": ArgType.FLAG,
    "bool": ArgType.FLAG,
    "flag": ArgType.FLAG,
    "=s": ArgType.STRING,
    ":s": ArgType.STRING,
    "string": ArgType.STRING,
}

_PREPROCESS_ALIASES: dict[str, Preprocess] = {
    "yamldoc": Preprocess.YAML_DOCUMENT,
    "yaml": Preprocess.YAML_DOCUMENT,
    "list": Preprocess.LINE_LIST,
}


# --- Argument specs ---


class ArgSpec(BaseModel):
    """One named or positional parameter of a route.

    Example::

        ArgSpec(name="start", alt="s|from", type="=s", preprocess="datetime",
                doc="earliest timestamp")
    """

    model_config = ConfigDict(frozen=True)

    name: str
    alt: list[str] = Field(default_factory=list, description="Alternate names")
    type: ArgType = ArgType.FLAG
    required: bool = False
    positional: Optional[Positional] = None
    preprocess: Optional[Preprocess] = None
    modifies_url: bool = Field(
        default=False, description="Append the value to the URL as path segment(s)"
    )
    modifies_payload: bool = Field(
        default=False, description="Send the value as the whole JSON body"
    )
    doc: str = ""

    @field_validator("alt", mode="before")
    @classmethod
    def _split_alt(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [part for part in value.split("|") if part]
        return value

    @field_validator("type", mode="before")
    @classmethod
    def _normalise_type(cls, value: Any) -> Any:
        if value is None:
            return ArgType.FLAG
        if isinstance(value, str) and value in _ARG_TYPE_ALIASES:
            return _ARG_TYPE_ALIASES[value]
        return value

    @field_validator("preprocess", mode="before")
    @classmethod
    def _normalise_preprocess(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _PREPROCESS_ALIASES.get(value, value)
        return value

    @property
    def names(self) -> list[str]:
        """Canonical name followed by every alternate."""
        return [self.name, *self.alt]

    @property
    def takes_value(self) -> bool:
        return self.type == ArgType.STRING


class RouteAttributes(BaseModel):
    """Per-route metadata set once at declaration time."""

    model_config = ConfigDict(frozen=True)

    args: Optional[list[ArgSpec]] = None
    description: Optional[str] = None
    dont_read_files: bool = False
    quiet_post: bool = False


class RouteSpec(BaseModel):
    """A declared operation: method, URL template, wrapper and metadata.

    ``response_type`` is any callable accepting ``(result, client)``; a
    class whose constructor takes those two arguments is the usual choice.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    method: HTTPMethod = HTTPMethod.GET
    url: str
    response_type: Optional[Callable[..., Any]] = None
    doc: str = ""
    is_object: bool = False
    attributes: RouteAttributes = Field(default_factory=RouteAttributes)

    @property
    def args(self) -> Optional[list[ArgSpec]]:
        return self.attributes.args


# --- Configuration models ---


class RequestConfig(BaseModel):
    """HTTP settings handed to the transport when a client is constructed."""

    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    keep_alive_timeout: float = Field(
        default=300.0, description="Idle keep-alive expiry in seconds"
    )
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class RemoteConfig(BaseModel):
    """A named remote profile selectable with ``--remote``."""

    model_config = ConfigDict(extra="allow")

    url: str


class AppConfig(BaseModel):
    """Per-application configuration stored at ``<config_dir>/<app>.json``.

    Extra fields are preserved in ``model_extra`` so that applications can
    keep their own settings alongside the client's.
    """

    model_config = ConfigDict(extra="allow")

    url: Optional[str] = Field(default=None, description="Base URL of the service")
    remotes: dict[str, RemoteConfig] = Field(default_factory=dict)
    request: RequestConfig = Field(default_factory=RequestConfig)


# --- Route files ---


class RouteEntry(BaseModel):
    """One route in a route file; mirrors the arguments of ``Client.route``."""

    name: str
    method: HTTPMethod = HTTPMethod.GET
    url: Optional[str] = None
    doc: str = ""
    description: Optional[str] = None
    args: Optional[list[ArgSpec]] = None
    dont_read_files: bool = False
    quiet_post: bool = False

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


class ObjectEntry(BaseModel):
    """One object in a route file; mirrors the arguments of ``Client.object``."""

    name: str
    url: Optional[str] = None
    doc: str = ""


class RouteFile(BaseModel):
    """A YAML or JSON document declaring a whole client.

    Example::

        app: widgets
        url: http://localhost:9999
        routes:
          - name: status
            doc: Get the status
        objects:
          - name: widget
    """

    app: str
    url: Optional[str] = None
    routes: list[RouteEntry] = Field(default_factory=list)
    objects: list[ObjectEntry] = Field(default_factory=list)
