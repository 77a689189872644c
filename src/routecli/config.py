"""Configuration management with XDG paths and precedence resolution.

This module resolves where a client talks to:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.routecli/`` on macOS and Windows, overridable with
  ``ROUTECLI_CONFIG_DIR``. See :func:`get_config_dir` and :func:`get_data_dir`.
* **Application config** -- one JSON file per application
  (``<config_dir>/<app>.json``) deserialised into an
  :class:`~routecli.models.AppConfig`: the service ``url``, named
  ``remotes`` selectable with ``--remote``, and request settings.
* **Precedence resolution** -- :func:`resolve_base_url` merges an explicit
  URL, environment variables and the application config.

Example ``~/.config/routecli/Foo.json``::

    {
      "url": "http://localhost:9999",
      "remotes": {"prod": {"url": "https://foo.example.com"}},
      "request": {"timeout": 10}
    }
"""

from __future__ import annotations

import json
import os
import platform
import re
from pathlib import Path
from typing import Optional

from routecli.exceptions import ConfigError
from routecli.models import AppConfig, RequestConfig

_APP_NAME = "routecli"
_CONFIG_DIR_ENV = "ROUTECLI_CONFIG_DIR"
_KEEP_ALIVE_ENV = "ROUTECLI_KEEP_ALIVE_TIMEOUT"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory (not created).

    ``$ROUTECLI_CONFIG_DIR`` wins when set. Otherwise on Linux/BSD
    ``$XDG_CONFIG_HOME/routecli/`` (default ``~/.config/routecli/``), and
    ``~/.routecli/`` elsewhere.
    """
    override = os.environ.get(_CONFIG_DIR_ENV, "")
    if override:
        return Path(override)
    if _is_xdg_platform():
        return _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    return _fallback_base_dir()


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/routecli/`` (default ``~/.local/share/routecli/``).
    On macOS/Windows: ``~/.routecli/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Application config ---


def app_config_path(app_name: str) -> Path:
    """Path to the JSON config file for *app_name*."""
    return get_config_dir() / f"{app_name}.json"


def load_app_config(app_name: str) -> AppConfig:
    """Load the configuration for *app_name*.

    Returns:
        The deserialised :class:`~routecli.models.AppConfig`. A missing
        file yields a default (URL-less) instance.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = app_config_path(app_name)
    if not path.is_file():
        return AppConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return AppConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config for '{app_name}' at {path}: {exc}") from exc


# --- Precedence resolution ---


def url_env_var(app_name: str) -> str:
    """Environment variable that overrides the base URL, e.g. ``ROUTECLI_FOO_URL``."""
    slug = re.sub(r"[^A-Za-z0-9]+", "_", app_name).strip("_").upper()
    return f"ROUTECLI_{slug}_URL"


def resolve_base_url(
    app_name: str,
    remote: Optional[str] = None,
    explicit: Optional[str] = None,
) -> str:
    """Resolve the base URL for *app_name*.

    Precedence (high to low):
        1. ``explicit`` (a ``server_url`` passed to the client)
        2. The named ``remote`` profile from the app config
        3. ``ROUTECLI_<APP>_URL`` environment variable
        4. ``url`` from the app config

    Raises:
        ConfigError: If the remote is unknown or no URL can be found.
    """
    if explicit:
        return explicit

    config = load_app_config(app_name)
    if remote is not None:
        entry = config.remotes.get(remote)
        if entry is None:
            known = ", ".join(sorted(config.remotes)) or "none"
            raise ConfigError(
                f"Unknown remote '{remote}' for {app_name} (known: {known})"
            )
        return entry.url

    env_url = os.environ.get(url_env_var(app_name))
    if env_url:
        return env_url
    if config.url:
        return config.url
    raise ConfigError(
        f"No URL configured for {app_name}: set {url_env_var(app_name)} "
        f"or 'url' in {app_config_path(app_name)}"
    )


def resolve_request_config(app_name: str) -> RequestConfig:
    """Request settings for *app_name*, with the keep-alive env override applied."""
    request = load_app_config(app_name).request
    env_keep_alive = os.environ.get(_KEEP_ALIVE_ENV)
    if env_keep_alive:
        try:
            keep_alive = float(env_keep_alive)
        except ValueError as exc:
            raise ConfigError(
                f"{_KEEP_ALIVE_ENV} must be a number of seconds, got {env_keep_alive!r}"
            ) from exc
        request = request.model_copy(update={"keep_alive_timeout": keep_alive})
    return request
